"""
Errores de la liquidación de caja y del ciclo de vida de comprobantes.

Solo ConcurrencyError admite reintento por parte del cliente.
"""


class SettlementError(Exception):
    """Excepción base del núcleo de liquidación"""
    retryable = False


class ValidationError(SettlementError):
    """Datos de entrada inválidos (motivo faltante, cliente sin RUC, caja no seleccionada)"""
    pass


class NotFoundError(SettlementError):
    """Caja, comprobante o cierre inexistente"""
    pass


class ConflictError(SettlementError):
    """La caja no puede cerrarse en el estado actual"""
    pass


class ConcurrencyError(SettlementError):
    """Otra operación en curso bloquea la misma caja o comprobante"""
    retryable = True


class StateError(SettlementError):
    """Transición de estado de facturación no permitida"""
    pass

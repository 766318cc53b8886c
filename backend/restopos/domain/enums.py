from enum import Enum


def _require_labels(enum_cls, labels: dict) -> dict:
    """Falla al importar si algún miembro del enum no tiene etiqueta."""
    missing = [member.name for member in enum_cls if member not in labels]
    if missing:
        raise RuntimeError(f"{enum_cls.__name__} sin etiqueta para: {', '.join(missing)}")
    return labels


class CashType(str, Enum):
    CASH = "CASH"
    DIGITAL = "DIGITAL"
    BANK = "BANK"

    @property
    def label(self) -> str:
        return CASH_TYPE_LABELS[self]


class PaymentMethod(str, Enum):
    CASH = "CASH"
    YAPE = "YAPE"
    PLIN = "PLIN"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    OTROS = "OTROS"

    @property
    def label(self) -> str:
        return PAYMENT_METHOD_LABELS[self]


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class TableStatus(str, Enum):
    FREE = "FREE"
    OCCUPIED = "OCCUPIED"
    RESERVED = "RESERVED"
    MAINTENANCE = "MAINTENANCE"


class OperationStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class WarningType(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"


class BillingStatus(str, Enum):
    """Estado del comprobante frente a SUNAT"""
    PROCESSING = "PROCESSING"
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    ACCEPTED_WITH_OBSERVATIONS = "ACCEPTED_WITH_OBSERVATIONS"
    REJECTED = "REJECTED"
    ERROR = "ERROR"
    PROCESSING_CANCELLATION = "PROCESSING_CANCELLATION"
    CANCELLATION_PENDING = "CANCELLATION_PENDING"
    CANCELLED = "CANCELLED"
    CANCELLATION_ERROR = "CANCELLATION_ERROR"

    @property
    def label(self) -> str:
        return BILLING_STATUS_LABELS[self]


class DocumentTypeCode(str, Enum):
    """Catálogo 01 SUNAT (subconjunto usado en restaurante)"""
    FACTURA = "01"
    BOLETA = "03"
    NOTA_CREDITO = "07"
    NOTA_DEBITO = "08"
    NOTA_VENTA = "80"


class PersonDocumentType(str, Enum):
    DNI = "DNI"
    RUC = "RUC"
    CE = "CE"
    PASAPORTE = "PASAPORTE"


class CancellationReason(str, Enum):
    """Motivos de anulación aceptados por SUNAT"""
    ANULACION_OPERACION = "01"
    ERROR_RUC = "02"
    ERROR_DESCRIPCION = "03"
    DESCUENTO_GLOBAL = "04"
    DESCUENTO_ITEM = "05"
    DEVOLUCION_TOTAL = "06"
    DEVOLUCION_ITEM = "07"
    BONIFICACION = "08"

    @property
    def description(self) -> str:
        return CANCELLATION_REASON_DESCRIPTIONS[self]


CASH_TYPE_LABELS = _require_labels(CashType, {
    CashType.CASH: "Efectivo",
    CashType.DIGITAL: "Digital",
    CashType.BANK: "Bancario",
})

PAYMENT_METHOD_LABELS = _require_labels(PaymentMethod, {
    PaymentMethod.CASH: "Efectivo",
    PaymentMethod.YAPE: "Yape",
    PaymentMethod.PLIN: "Plin",
    PaymentMethod.CARD: "Tarjeta",
    PaymentMethod.TRANSFER: "Transferencia",
    PaymentMethod.OTROS: "Otros",
})

BILLING_STATUS_LABELS = _require_labels(BillingStatus, {
    BillingStatus.PROCESSING: "Procesando",
    BillingStatus.SENT: "Enviado",
    BillingStatus.ACCEPTED: "Emitido",
    BillingStatus.ACCEPTED_WITH_OBSERVATIONS: "Emitido con observaciones",
    BillingStatus.REJECTED: "Rechazado",
    BillingStatus.ERROR: "Error",
    BillingStatus.PROCESSING_CANCELLATION: "Procesando anulación",
    BillingStatus.CANCELLATION_PENDING: "Anulación pendiente",
    BillingStatus.CANCELLED: "Anulado",
    BillingStatus.CANCELLATION_ERROR: "Error en anulación",
})

CANCELLATION_REASON_DESCRIPTIONS = _require_labels(CancellationReason, {
    CancellationReason.ANULACION_OPERACION: "Anulación de la operación",
    CancellationReason.ERROR_RUC: "Anulación por error en el RUC",
    CancellationReason.ERROR_DESCRIPCION: "Corrección por error en la descripción",
    CancellationReason.DESCUENTO_GLOBAL: "Descuento global aplicado después",
    CancellationReason.DESCUENTO_ITEM: "Descuento por ítem aplicado después",
    CancellationReason.DEVOLUCION_TOTAL: "Devolución total",
    CancellationReason.DEVOLUCION_ITEM: "Devolución por ítem",
    CancellationReason.BONIFICACION: "Bonificación",
})

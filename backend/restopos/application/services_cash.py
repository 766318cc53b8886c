"""
Servicio de Caja: consultas de pagos y transacciones manuales.

Las transacciones manuales (ingresos / egresos sin operación) quedan PAGADAS
y pendientes de cierre. La impresión del ticket se encola después del commit.
"""
from datetime import datetime
from typing import List, Optional
import logging

from ..domain.enums import PaymentStatus
from ..domain.models import Payment
from ..infrastructure.print_queue import PrintDispatcher
from ..infrastructure.unit_of_work import UnitOfWork
from . import services_payments as aggregator
from .dtos import (
    CashRegisterOut, ManualTransactionIn, ManualTransactionResult, PaymentMethodSummary,
    PaymentOut, PaymentSummary, PrintResult, RequestContext
)
from .errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class CashService:
    def __init__(self, uow: UnitOfWork, printer: Optional[PrintDispatcher] = None):
        self.uow = uow
        self.printer = printer

    # ===== CONSULTAS =====

    def registers(self, ctx: RequestContext) -> List[CashRegisterOut]:
        return [CashRegisterOut.model_validate(r) for r in self.uow.registers.list_by_branch(ctx.branch_id)]

    def summary(self, ctx: RequestContext) -> PaymentSummary:
        """Resumen de pagos aún no cerrados de la sucursal (o de la caja del contexto)"""
        payments = self.uow.payments.eligible(ctx.branch_id, ctx.cash_register_id)
        return aggregator.summarize(payments, self.uow.registers.cash_types(ctx.branch_id))

    def payment_methods(self, ctx: RequestContext) -> List[PaymentMethodSummary]:
        payments = self.uow.payments.eligible(ctx.branch_id, ctx.cash_register_id)
        return aggregator.by_method(payments)

    # ===== TRANSACCIONES MANUALES =====

    def create_manual_transaction(self, ctx: RequestContext, data: ManualTransactionIn) -> ManualTransactionResult:
        register_id = data.cash_register_id if data.cash_register_id is not None else ctx.cash_register_id
        if register_id is None:
            raise ValidationError("Seleccione una caja")
        register = self.uow.registers.get(register_id)
        if register is None or register.branch_id != ctx.branch_id:
            raise NotFoundError(f"Caja {register_id} no encontrada en la sucursal {ctx.branch_id}")
        if not register.is_active:
            raise ValidationError(f"La caja {register.name} está inactiva")

        now = datetime.now()
        with self.uow.transaction():
            payments = [
                self.uow.payments.add(Payment(
                    branch_id=ctx.branch_id,
                    cash_register_id=register.id,
                    user_id=ctx.user_id,
                    operation_id=None,
                    amount=p.amount,
                    method=p.method.value,
                    transaction_type=data.transaction_type.value,
                    status=PaymentStatus.PAID.value,
                    reference_number=p.reference_number,
                    notes=data.notes,
                    timestamp=now,
                ))
                for p in data.payments
            ]

        total = sum(p.amount for p in payments)
        logger.info(
            f"Transacción manual {data.transaction_type.value} en caja {register.id} por usuario "
            f"{ctx.user_id}: {len(payments)} pago(s), total {total}"
        )
        result = ManualTransactionResult(
            success=True,
            message="Transacción registrada exitosamente",
            payments=[PaymentOut.model_validate(p) for p in payments],
        )
        if self.printer is not None:
            dispatch = self.printer.payment(payments[0].id, ctx.device_id)
            result = result.model_copy(update={"print_queued": dispatch.queued, "print_error": dispatch.error})
        return result

    def print_payment(self, ctx: RequestContext, payment_id: int) -> PrintResult:
        payment = self.uow.payments.get(payment_id)
        if payment is None or payment.branch_id != ctx.branch_id:
            raise NotFoundError(f"Pago {payment_id} no encontrado")
        dispatch = (self.printer or PrintDispatcher()).payment(payment.id, ctx.device_id)
        if not dispatch.queued:
            return PrintResult(success=False, message=f"No se pudo encolar la impresión: {dispatch.error}")
        return PrintResult(success=True, message=f"Impresión del pago #{payment.id} encolada")

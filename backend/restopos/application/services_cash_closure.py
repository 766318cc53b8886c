"""
Servicio de Cierre de Caja

PRINCIPIOS:
- El cierre es una única transacción con candado exclusivo por caja
- La elegibilidad y los totales se recalculan bajo el candado (no se confía
  en la vista previa que vio el usuario)
- La numeración es correlativa por caja, desde 1, sin saltos
- Los pagos se marcan con el cierre; nunca se eliminan
- La impresión se encola después del commit y no puede revertir el cierre
"""
from datetime import datetime
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..config import settings
from ..domain.enums import WarningType
from ..domain.models import CashClosure
from ..infrastructure.unit_of_work import UnitOfWork
from ..infrastructure.locks import KeyedLockRegistry, LockTimeout, cash_register_key, registry as default_registry
from ..infrastructure.print_queue import PrintDispatcher
from . import services_payments as aggregator
from .dtos import CashClosureOut, CloseCashResult, PrintResult, RequestContext
from .errors import ConcurrencyError, ConflictError, NotFoundError, ValidationError
from .money import round2
from .services_closure_eligibility import ClosureEligibilityEvaluator, build_preview, load_register

logger = logging.getLogger(__name__)


class CashClosureExecutor:
    """
    Ejecuta el cierre de una caja.

    Una segunda solicitud concurrente sobre la misma caja espera el candado y
    luego no encuentra pagos elegibles (no-op), o falla con ConcurrencyError
    si el candado no se libera dentro de `lock_timeout`.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        evaluator: Optional[ClosureEligibilityEvaluator] = None,
        printer: Optional[PrintDispatcher] = None,
        locks: Optional[KeyedLockRegistry] = None,
        lock_timeout: Optional[float] = None,
    ):
        self.uow = uow
        self.evaluator = evaluator or ClosureEligibilityEvaluator()
        self.printer = printer
        self.locks = locks or default_registry
        self.lock_timeout = settings.lock_timeout_seconds if lock_timeout is None else lock_timeout

    def close(self, ctx: RequestContext) -> CloseCashResult:
        if ctx.cash_register_id is None:
            raise ValidationError("Seleccione una caja")

        try:
            with self.locks.acquire(cash_register_key(ctx.cash_register_id), self.lock_timeout):
                result = self._close_locked(ctx)
        except LockTimeout as e:
            logger.warning(f"Cierre de caja {ctx.cash_register_id} bloqueado por otro cierre en curso")
            raise ConcurrencyError(f"La caja {ctx.cash_register_id} tiene otro cierre en curso") from e

        if result.closure is not None and self.printer is not None:
            dispatch = self.printer.closure(result.closure.id, ctx.device_id)
            result = result.model_copy(update={"print_queued": dispatch.queued, "print_error": dispatch.error})
        return result

    def _close_locked(self, ctx: RequestContext) -> CloseCashResult:
        try:
            register = load_register(self.uow, ctx, for_update=True)
            payments = self.uow.payments.eligible_for_update(ctx.branch_id, register.id)

            if not payments:
                self.uow.rollback()
                logger.info(f"Cierre de caja {register.id}: sin pagos elegibles, no se crea cierre")
                return CloseCashResult(
                    success=True,
                    message="No hay pagos pendientes de cierre en esta caja",
                )

            preview = build_preview(self.uow, ctx, register, payments, self.evaluator)
            if not preview.can_close:
                blocking = "; ".join(w.message for w in preview.warnings if w.type is WarningType.ERROR)
                raise ConflictError(f"No se puede cerrar la caja {register.name}. {blocking}".strip())

            closure = CashClosure(
                branch_id=ctx.branch_id,
                cash_register_id=register.id,
                closure_number=preview.next_closure_number,
                closed_at=datetime.now(),
                total_income=preview.total_income,
                total_expense=preview.total_expense,
                net_total=preview.net_total,
                user_id=ctx.user_id,
                device_id=ctx.device_id,
                summary=self._summary(preview, payments),
            )
            self.uow.closures.add(closure)
            for payment in payments:
                payment.closure = closure

            register.current_balance = round2(register.current_balance + preview.net_total)

            self.uow.commit()
        except (ConflictError, NotFoundError):
            self.uow.rollback()
            raise
        except (IntegrityError, OperationalError, StaleDataError) as e:
            self.uow.rollback()
            logger.warning(f"Cierre de caja {ctx.cash_register_id} en conflicto con otra transacción: {e}")
            raise ConcurrencyError(f"La caja {ctx.cash_register_id} está siendo cerrada por otra operación") from e
        except Exception:
            self.uow.rollback()
            raise

        logger.info(
            f"Cierre #{closure.closure_number} de caja {register.id} por usuario {ctx.user_id}: "
            f"{len(payments)} pagos, ingresos {closure.total_income}, egresos {closure.total_expense}, "
            f"neto {closure.net_total}"
        )
        return CloseCashResult(
            success=True,
            message=f"Caja cerrada exitosamente. Cierre #{closure.closure_number}",
            closure=CashClosureOut.model_validate(closure),
            summary=closure.summary,
        )

    @staticmethod
    def _summary(preview, payments) -> dict:
        by_method = aggregator.by_method(payments)
        return {
            "payments_count": len(payments),
            "users": [u.model_dump(mode="json") for u in preview.users_summary],
            "payment_methods": [m.model_dump(mode="json") for m in preview.general_payment_methods],
            "methods_share": [m.model_dump(mode="json") for m in by_method],
        }


class CashClosureService:
    """Consultas y reimpresión de cierres"""

    def __init__(self, uow: UnitOfWork, printer: Optional[PrintDispatcher] = None):
        self.uow = uow
        self.printer = printer

    def list_closures(self, ctx: RequestContext, user_id=None, start_date=None, end_date=None):
        return [
            CashClosureOut.model_validate(c)
            for c in self.uow.closures.list(ctx.branch_id, user_id, start_date, end_date)
        ]

    def reprint(self, ctx: RequestContext, closure_id: int) -> PrintResult:
        closure = self.uow.closures.get(closure_id)
        if closure is None or closure.branch_id != ctx.branch_id:
            raise NotFoundError(f"Cierre {closure_id} no encontrado")
        dispatch = (self.printer or PrintDispatcher()).closure(closure.id, ctx.device_id)
        if not dispatch.queued:
            return PrintResult(success=False, message=f"No se pudo encolar la reimpresión: {dispatch.error}")
        return PrintResult(success=True, message=f"Reimpresión del cierre #{closure.closure_number} encolada")

"""
Elegibilidad de Cierre de Caja
==============================

Decide si cada usuario, y la caja en conjunto, pueden cerrarse, y arma la
vista previa del cierre con sus advertencias.

Reglas:
- Un usuario con mesas ocupadas NUNCA puede cerrarse (regla dura)
- La caja puede cerrarse solo si todos sus usuarios pueden cerrarse y todos
  los pagos pendientes de cierre quedan asignados a algún usuario
- Las advertencias no modifican estado

La vista previa es de solo lectura; el ejecutor del cierre la recalcula bajo
su propio candado.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Sequence
import logging

from ..config import settings
from ..domain.enums import PaymentStatus, WarningType
from ..infrastructure.unit_of_work import UnitOfWork
from . import services_payments as aggregator
from .dtos import CashClosurePreview, ClosureWarning, RequestContext, UserSummary
from .errors import NotFoundError, ValidationError
from .money import round2

logger = logging.getLogger(__name__)


class ClosureEligibilityEvaluator:
    """Evaluador puro: no consulta la base de datos."""

    def __init__(self, large_negative_net_threshold: Optional[Decimal] = None):
        if large_negative_net_threshold is None:
            large_negative_net_threshold = settings.large_negative_net_threshold
        self.large_negative_net_threshold = Decimal(str(large_negative_net_threshold))

    @staticmethod
    def can_close_user(user: UserSummary) -> bool:
        return not user.has_occupied_tables

    def can_close_register(self, users: Sequence[UserSummary], total_payments_pending: int) -> bool:
        accounted = sum(u.payments_count for u in users)
        return all(self.can_close_user(u) for u in users) and accounted == total_payments_pending

    @staticmethod
    def next_closure_number(last_closure_number: Optional[int]) -> int:
        return (last_closure_number or 0) + 1

    def warnings(self, users: Sequence[UserSummary], payments: Sequence,
                 net_total: Decimal) -> List[ClosureWarning]:
        """Advertencias en orden de prioridad: ERROR, INFO, WARNING."""
        errors = []
        for u in users:
            if u.has_occupied_tables:
                errors.append(ClosureWarning(
                    type=WarningType.ERROR,
                    message=(f"{u.user_name} tiene {u.occupied_tables_count} mesa(s) ocupada(s): "
                             f"{', '.join(u.occupied_tables_names)}"),
                ))

        infos = []
        if not payments:
            infos.append(ClosureWarning(type=WarningType.INFO, message="No hay pagos pendientes de cierre"))

        soft = []
        unpaid = [p for p in payments if PaymentStatus(p.status) is PaymentStatus.PENDING]
        if unpaid:
            soft.append(ClosureWarning(
                type=WarningType.WARNING,
                message=f"{len(unpaid)} pago(s) aún en estado pendiente de cobro",
            ))
        for u in users:
            if u.net_total < -self.large_negative_net_threshold:
                soft.append(ClosureWarning(
                    type=WarningType.WARNING,
                    message=f"{u.user_name} tiene un neto negativo inusual: {u.net_total}",
                ))
        if net_total < -self.large_negative_net_threshold:
            soft.append(ClosureWarning(
                type=WarningType.WARNING,
                message=f"El neto de la caja es negativo: {net_total}",
            ))
        return errors + infos + soft

    def evaluate(
        self,
        *,
        branch_id: int,
        cash_register_id: int,
        payments: Sequence,
        operations: Sequence,
        tables: Sequence,
        users: dict,
        last_closure_number: Optional[int],
        branch_name: str = "",
        cash_register_name: str = "",
        only_user_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> CashClosurePreview:
        users_summary = [
            u.model_copy(update={"can_close": self.can_close_user(u)})
            for u in aggregator.by_user(payments, operations, tables, users)
        ]
        income = sum((u.total_income for u in users_summary), Decimal("0"))
        expense = sum((u.total_expense for u in users_summary), Decimal("0"))
        net_total = round2(income - expense)
        can_close = self.can_close_register(users_summary, len(payments))

        visible = users_summary
        if only_user_id is not None:
            visible = [u for u in users_summary if u.user_id == only_user_id]

        return CashClosurePreview(
            branch_id=branch_id,
            branch_name=branch_name,
            cash_register_id=cash_register_id,
            cash_register_name=cash_register_name,
            next_closure_number=self.next_closure_number(last_closure_number),
            total_payments_pending=len(payments),
            total_income=round2(income),
            total_expense=round2(expense),
            net_total=net_total,
            can_close=can_close,
            preview_date=now or datetime.now(),
            users_summary=visible,
            general_payment_methods=aggregator.method_breakdown(payments),
            warnings=self.warnings(users_summary, payments, net_total),
        )


def load_register(uow: UnitOfWork, ctx: RequestContext, for_update: bool = False):
    if ctx.cash_register_id is None:
        raise ValidationError("Seleccione una caja")
    if for_update:
        register = uow.registers.get_for_update(ctx.cash_register_id)
    else:
        register = uow.registers.get(ctx.cash_register_id)
    if register is None or register.branch_id != ctx.branch_id:
        raise NotFoundError(f"Caja {ctx.cash_register_id} no encontrada en la sucursal {ctx.branch_id}")
    return register


def build_preview(
    uow: UnitOfWork,
    ctx: RequestContext,
    register,
    payments: Sequence,
    evaluator: ClosureEligibilityEvaluator,
    only_user_id: Optional[int] = None,
) -> CashClosurePreview:
    """Carga mesas, operaciones y usuarios del lote de pagos y evalúa."""
    operation_ids = {p.operation_id for p in payments if p.operation_id is not None}
    tables = uow.tables.by_branch(ctx.branch_id)
    user_ids = {p.user_id for p in payments} | {t.occupied_by_id for t in tables if t.occupied_by_id}
    branch = uow.branches.get(ctx.branch_id)
    return evaluator.evaluate(
        branch_id=ctx.branch_id,
        cash_register_id=register.id,
        payments=payments,
        operations=uow.operations.by_ids(operation_ids),
        tables=tables,
        users=uow.users.by_ids(user_ids),
        last_closure_number=uow.closures.last_number(register.id),
        branch_name=branch.name if branch else "",
        cash_register_name=register.name,
        only_user_id=only_user_id,
    )


class ClosurePreviewService:
    """Vista previa del cierre (solo lectura)"""

    def __init__(self, uow: UnitOfWork, evaluator: Optional[ClosureEligibilityEvaluator] = None):
        self.uow = uow
        self.evaluator = evaluator or ClosureEligibilityEvaluator()

    def preview(self, ctx: RequestContext, user_id: Optional[int] = None) -> CashClosurePreview:
        register = load_register(self.uow, ctx)
        payments = self.uow.payments.eligible(ctx.branch_id, register.id)
        preview = build_preview(self.uow, ctx, register, payments, self.evaluator, only_user_id=user_id)
        logger.debug(
            f"Vista previa caja {register.id}: {preview.total_payments_pending} pagos, "
            f"neto {preview.net_total}, can_close={preview.can_close}"
        )
        return preview

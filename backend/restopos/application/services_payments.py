"""
Agregación de Pagos
===================

Reduce un conjunto de pagos a totales de ingresos/egresos, totales por
método de pago (con porcentaje) y resumen por usuario.

Todas las funciones son plegados puros: no consultan la base de datos ni
modifican los objetos recibidos. Pueden invocarse cuantas veces se quiera
y en paralelo.
"""
from collections import defaultdict
from decimal import Decimal, ROUND_FLOOR
import logging
from typing import Iterable, Mapping, Sequence, List, Dict

from ..domain.enums import CashType, PaymentMethod, PaymentStatus, TransactionType, TableStatus
from .dtos import PaymentSummary, PaymentMethodSummary, MethodBreakdown, UserSummary
from .money import TENTH, ZERO, to_decimal, round1, round2

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def _method(payment) -> PaymentMethod:
    return PaymentMethod(payment.method)


def _transaction_type(payment) -> TransactionType:
    return TransactionType(payment.transaction_type)


def _split(payments: Iterable) -> tuple[Decimal, Decimal]:
    income = ZERO
    expense = ZERO
    for p in payments:
        if _transaction_type(p) is TransactionType.INCOME:
            income += to_decimal(p.amount)
        else:
            expense += to_decimal(p.amount)
    return income, expense


def summarize(payments: Sequence, cash_types: Mapping[int, str]) -> PaymentSummary:
    """
    Totales generales.

    Args:
        payments: pagos de la ventana de agregación
        cash_types: cash_register_id -> CashType de la caja dueña del pago
    """
    income, expense = _split(payments)
    by_status: Dict[PaymentStatus, Decimal] = defaultdict(lambda: ZERO)
    by_cash_type: Dict[CashType, Decimal] = defaultdict(lambda: ZERO)

    for p in payments:
        amount = to_decimal(p.amount)
        by_status[PaymentStatus(p.status)] += amount
        cash_type = cash_types.get(p.cash_register_id)
        if cash_type is None:
            logger.warning(
                f"Pago {getattr(p, 'id', None)}: caja {p.cash_register_id} fuera de la sucursal, "
                f"se omite del saldo por tipo de caja"
            )
            continue
        by_cash_type[CashType(cash_type)] += amount

    return PaymentSummary(
        total_payments=len(payments),
        total_income=round2(income),
        total_expenses=round2(expense),
        pending_payments=round2(by_status[PaymentStatus.PENDING]),
        paid_payments=round2(by_status[PaymentStatus.PAID]),
        cash_balance=round2(by_cash_type[CashType.CASH]),
        digital_balance=round2(by_cash_type[CashType.DIGITAL]),
        bank_balance=round2(by_cash_type[CashType.BANK]),
    )


def by_method(payments: Sequence) -> List[PaymentMethodSummary]:
    """
    Totales por método de pago.

    percentage = total del método / total general * 100, a un decimal, repartido
    por mayor residuo para que la suma sea exactamente 100.
    Si el total general es 0, todos los porcentajes son 0.
    """
    totals: Dict[PaymentMethod, Decimal] = defaultdict(lambda: ZERO)
    counts: Dict[PaymentMethod, int] = defaultdict(int)
    for p in payments:
        method = _method(p)
        totals[method] += to_decimal(p.amount)
        counts[method] += 1

    grand_total = sum(totals.values(), ZERO)
    methods = [m for m in PaymentMethod if m in counts]
    if grand_total == 0:
        percentages = {m: round1(ZERO) for m in methods}
    else:
        percentages = _apportion({m: totals[m] / grand_total * HUNDRED for m in methods})

    return [
        PaymentMethodSummary(
            method=method,
            total_amount=round2(totals[method]),
            count=counts[method],
            percentage=percentages[method],
        )
        for method in methods
    ]


def _apportion(shares: Dict[PaymentMethod, Decimal]) -> Dict[PaymentMethod, Decimal]:
    """
    Reparte 100% en décimas por el método del mayor residuo: cada parte se
    trunca a un decimal y las décimas faltantes van a las partes con mayor
    residuo (empate: orden del catálogo). La suma resultante es exactamente 100.
    """
    floors = {m: s.quantize(TENTH, rounding=ROUND_FLOOR) for m, s in shares.items()}
    missing = int(((HUNDRED - sum(floors.values(), ZERO)) / TENTH).to_integral_value())
    catalog = list(PaymentMethod)
    ranked = sorted(shares, key=lambda m: (-(shares[m] - floors[m]), catalog.index(m)))
    for method in ranked[:max(missing, 0)]:
        floors[method] += TENTH
    return floors


def method_breakdown(payments: Sequence) -> List[MethodBreakdown]:
    """Ingreso, egreso y neto por método (orden del catálogo)."""
    grouped: Dict[PaymentMethod, list] = defaultdict(list)
    for p in payments:
        grouped[_method(p)].append(p)

    result = []
    for method in PaymentMethod:
        if method not in grouped:
            continue
        income, expense = _split(grouped[method])
        result.append(MethodBreakdown(
            method_code=method,
            method_name=method.label,
            income=round2(income),
            expense=round2(expense),
            net=round2(income - expense),
        ))
    return result


def occupied_tables_by_user(tables: Iterable) -> Dict[int, List[str]]:
    """user_id -> nombres de mesas OCUPADAS a su cargo."""
    occupied: Dict[int, List[str]] = defaultdict(list)
    for t in tables:
        if t.occupied_by_id is not None and TableStatus(t.status) is TableStatus.OCCUPIED:
            occupied[t.occupied_by_id].append(t.name)
    return occupied


def by_user(
    payments: Sequence,
    operations: Iterable,
    tables: Iterable,
    users: Mapping[int, object] | None = None,
) -> List[UserSummary]:
    """
    Resumen por usuario.

    Incluye a todo usuario con pagos y a todo usuario que tenga mesas
    ocupadas (aunque no tenga pagos), ya que estos bloquean el cierre.

    Args:
        payments: pagos de la ventana de agregación
        operations: operaciones (con `details`) referenciadas por los pagos
        tables: mesas de la sucursal
        users: user_id -> User, para nombre y rol
    """
    users = users or {}
    operations_by_id = {op.id: op for op in operations}
    occupied = occupied_tables_by_user(tables)

    payments_by_user: Dict[int, list] = defaultdict(list)
    for p in payments:
        payments_by_user[p.user_id].append(p)

    user_ids = sorted(set(payments_by_user) | set(occupied))
    summaries = []
    for user_id in user_ids:
        user_payments = payments_by_user.get(user_id, [])
        income, expense = _split(user_payments)

        operation_ids = {p.operation_id for p in user_payments if p.operation_id is not None}
        dishes = ZERO
        for op_id in operation_ids:
            op = operations_by_id.get(op_id)
            if op is None:
                continue
            for detail in op.details:
                dishes += to_decimal(detail.quantity)

        table_names = occupied.get(user_id, [])
        user = users.get(user_id)
        summary = UserSummary(
            user_id=user_id,
            user_name=getattr(user, "full_name", "") or f"Usuario {user_id}",
            user_role=getattr(user, "role", "") or "",
            total_income=round2(income),
            total_expense=round2(expense),
            net_total=round2(income - expense),
            payments_count=len(user_payments),
            operations_count=len(operation_ids),
            dishes_count=dishes,
            has_occupied_tables=bool(table_names),
            occupied_tables_count=len(table_names),
            occupied_tables_names=sorted(table_names),
            payment_methods=method_breakdown(user_payments),
        )
        summaries.append(summary)
    return summaries

"""
Endpoints API de Caja
Resúmenes de pagos, vista previa y ejecución del cierre, historial de
cierres, transacciones manuales e impresión de tickets.
"""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...dependencies import get_db, get_print_dispatcher
from ...security.context import get_request_context
from ...infrastructure.unit_of_work import UnitOfWork
from ...infrastructure.print_queue import PrintDispatcher
from ...application.errors import SettlementError
from ...application.dtos import (
    RequestContext, PaymentSummary, PaymentMethodSummary, CashRegisterOut, CashClosurePreview,
    CloseCashResult, CashClosureOut, PrintResult, ManualTransactionIn, ManualTransactionResult
)
from ...application.services_cash import CashService
from ...application.services_cash_closure import CashClosureExecutor, CashClosureService
from ...application.services_closure_eligibility import ClosurePreviewService
from ..error_mapping import to_http_exception

router = APIRouter(prefix="/cash", tags=["cash"])


@router.get("/registers", response_model=List[CashRegisterOut])
def list_registers(
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return CashService(UnitOfWork(db)).registers(ctx)


@router.get("/summary", response_model=PaymentSummary)
def payment_summary(
    cash_register_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    """Resumen de pagos pendientes de cierre (por sucursal u opcionalmente por caja)"""
    return CashService(UnitOfWork(db)).summary(ctx.for_register(cash_register_id))


@router.get("/payment-methods", response_model=List[PaymentMethodSummary])
def payment_methods(
    cash_register_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    return CashService(UnitOfWork(db)).payment_methods(ctx.for_register(cash_register_id))


@router.get("/registers/{cash_register_id}/closure-preview", response_model=CashClosurePreview)
def closure_preview(
    cash_register_id: int,
    user_id: Optional[int] = Query(None, description="Limita el detalle a un usuario"),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    """
    Vista previa del cierre de caja.

    Es informativa: el cierre vuelve a calcular todo bajo candado.
    """
    uow = UnitOfWork(db)
    try:
        return ClosurePreviewService(uow).preview(ctx.for_register(cash_register_id), user_id=user_id)
    except SettlementError as e:
        raise to_http_exception(e)


@router.post("/registers/{cash_register_id}/close", response_model=CloseCashResult)
def close_cash_register(
    cash_register_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    printer: PrintDispatcher = Depends(get_print_dispatcher),
):
    """
    Cierra la caja.

    - 409 si hay usuarios con mesas ocupadas al momento del cierre
    - 423 si otro cierre de la misma caja está en curso (reintentar)
    - Sin pagos pendientes: éxito sin crear cierre
    """
    uow = UnitOfWork(db)
    try:
        return CashClosureExecutor(uow, printer=printer).close(ctx.for_register(cash_register_id))
    except SettlementError as e:
        raise to_http_exception(e)
    except Exception as e:
        uow.rollback()
        raise HTTPException(status_code=500, detail=f"Error inesperado: {str(e)}")


@router.get("/closures", response_model=List[CashClosureOut])
def list_closures(
    branch_id: Optional[int] = Query(None),
    user_id: Optional[int] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    """Historial de cierres, del más reciente al más antiguo"""
    if branch_id is not None and branch_id != ctx.branch_id:
        raise HTTPException(status_code=403, detail="Sucursal no autorizada")
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="La fecha inicial no puede ser mayor que la final")
    return CashClosureService(UnitOfWork(db)).list_closures(ctx, user_id, start_date, end_date)


@router.post("/closures/{closure_id}/reprint", response_model=PrintResult)
def reprint_closure(
    closure_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    printer: PrintDispatcher = Depends(get_print_dispatcher),
):
    try:
        return CashClosureService(UnitOfWork(db), printer).reprint(ctx, closure_id)
    except SettlementError as e:
        raise to_http_exception(e)


@router.post("/manual-transactions", response_model=ManualTransactionResult)
def create_manual_transaction(
    payload: ManualTransactionIn,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    printer: PrintDispatcher = Depends(get_print_dispatcher),
):
    """
    Registra un ingreso o egreso manual en una caja.

    La impresión del ticket se encola después de registrar; si falla, la
    transacción queda registrada igual y se informa en `print_error`.
    """
    uow = UnitOfWork(db)
    try:
        return CashService(uow, printer).create_manual_transaction(ctx, payload)
    except SettlementError as e:
        raise to_http_exception(e)
    except Exception as e:
        uow.rollback()
        raise HTTPException(status_code=500, detail=f"Error inesperado: {str(e)}")


@router.post("/payments/{payment_id}/print", response_model=PrintResult)
def print_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    printer: PrintDispatcher = Depends(get_print_dispatcher),
):
    try:
        return CashService(UnitOfWork(db), printer).print_payment(ctx, payment_id)
    except SettlementError as e:
        raise to_http_exception(e)

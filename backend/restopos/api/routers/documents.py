"""
Endpoints API de Comprobantes Emitidos
Anulación, cambios de estado SUNAT y reemisión desde comprobantes anulados
"""
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...dependencies import get_db, get_print_dispatcher
from ...security.context import get_request_context
from ...infrastructure.unit_of_work import UnitOfWork
from ...infrastructure.print_queue import PrintDispatcher
from ...application.errors import SettlementError
from ...application.dtos import (
    RequestContext, CancelDocumentIn, BillingStatusIn, DocumentMutationResult,
    IssuedDocumentOut, ReissueableItem, ReissueIn
)
from ...application.services_document_lifecycle import DocumentLifecycleService
from ...application.services_reissuance import ReissuanceService
from ..error_mapping import to_http_exception

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("/{issued_document_id}/cancel", response_model=DocumentMutationResult)
def cancel_document(
    issued_document_id: int,
    payload: CancelDocumentIn,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    """
    Solicita la anulación de un comprobante.

    Motivos SUNAT: 01 a 08. Solo comprobantes ENVIADOS o ACEPTADOS.
    """
    uow = UnitOfWork(db)
    try:
        document = DocumentLifecycleService(uow).cancel(
            ctx, issued_document_id,
            payload.cancellation_reason, payload.cancellation_description,
        )
        return DocumentMutationResult(
            success=True,
            message=f"Comprobante {document.serial}-{document.number} en proceso de anulación",
            issued_document=IssuedDocumentOut.model_validate(document),
        )
    except SettlementError as e:
        raise to_http_exception(e)
    except Exception as e:
        uow.rollback()
        raise HTTPException(status_code=500, detail=f"Error inesperado: {str(e)}")


@router.post("/{issued_document_id}/billing-status", response_model=DocumentMutationResult)
def update_billing_status(
    issued_document_id: int,
    payload: BillingStatusIn,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    """Estado informado por SUNAT / OSE"""
    uow = UnitOfWork(db)
    try:
        document = DocumentLifecycleService(uow).update_billing_status(ctx, issued_document_id, payload.billing_status)
        return DocumentMutationResult(
            success=True,
            message=f"Estado actualizado a {payload.billing_status.label}",
            issued_document=IssuedDocumentOut.model_validate(document),
        )
    except SettlementError as e:
        raise to_http_exception(e)
    except Exception as e:
        uow.rollback()
        raise HTTPException(status_code=500, detail=f"Error inesperado: {str(e)}")


@router.get("/{issued_document_id}/reissueable-items", response_model=List[ReissueableItem])
def reissueable_items(
    issued_document_id: int,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
):
    try:
        return ReissuanceService(UnitOfWork(db)).reissueable_items(ctx, issued_document_id)
    except SettlementError as e:
        raise to_http_exception(e)


@router.post("/{issued_document_id}/reissue", response_model=DocumentMutationResult)
def reissue_document(
    issued_document_id: int,
    payload: ReissueIn,
    db: Session = Depends(get_db),
    ctx: RequestContext = Depends(get_request_context),
    printer: PrintDispatcher = Depends(get_print_dispatcher),
):
    """
    Genera un nuevo comprobante con lo pendiente de uno anulado.

    Factura (01) exige cliente con RUC.
    """
    uow = UnitOfWork(db)
    try:
        return ReissuanceService(uow, printer=printer).reissue(ctx, issued_document_id, payload)
    except SettlementError as e:
        raise to_http_exception(e)
    except Exception as e:
        uow.rollback()
        raise HTTPException(status_code=500, detail=f"Error inesperado: {str(e)}")

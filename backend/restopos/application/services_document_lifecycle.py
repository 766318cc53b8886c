"""
Ciclo de Vida de Comprobantes
=============================

Estados de facturación frente a SUNAT y sus transiciones:

    PROCESSING -> SENT -> {ACCEPTED, ACCEPTED_WITH_OBSERVATIONS, REJECTED, ERROR}
    {ACCEPTED, SENT, ACCEPTED_WITH_OBSERVATIONS} -> PROCESSING_CANCELLATION
    PROCESSING_CANCELLATION -> {CANCELLATION_PENDING, CANCELLATION_ERROR}
    CANCELLATION_PENDING -> CANCELLED

CANCELLED y REJECTED son terminales.
"""
from datetime import datetime
from typing import Dict, FrozenSet, Optional
import logging

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..config import settings
from ..domain.enums import BillingStatus, CancellationReason
from ..domain.models_documents import IssuedDocument
from ..infrastructure.locks import KeyedLockRegistry, LockTimeout, issued_document_key, registry as default_registry
from ..infrastructure.unit_of_work import UnitOfWork
from .dtos import RequestContext
from .errors import ConcurrencyError, NotFoundError, StateError, ValidationError

logger = logging.getLogger(__name__)

S = BillingStatus

TRANSITIONS: Dict[BillingStatus, FrozenSet[BillingStatus]] = {
    S.PROCESSING: frozenset({S.SENT}),
    S.SENT: frozenset({S.ACCEPTED, S.ACCEPTED_WITH_OBSERVATIONS, S.REJECTED, S.ERROR, S.PROCESSING_CANCELLATION}),
    S.ACCEPTED: frozenset({S.PROCESSING_CANCELLATION}),
    S.ACCEPTED_WITH_OBSERVATIONS: frozenset({S.PROCESSING_CANCELLATION}),
    S.REJECTED: frozenset(),
    S.ERROR: frozenset(),
    S.PROCESSING_CANCELLATION: frozenset({S.CANCELLATION_PENDING, S.CANCELLATION_ERROR}),
    S.CANCELLATION_PENDING: frozenset({S.CANCELLED}),
    S.CANCELLED: frozenset(),
    S.CANCELLATION_ERROR: frozenset(),
}

_missing = set(BillingStatus) - set(TRANSITIONS)
if _missing:
    raise RuntimeError(f"Estados sin transiciones definidas: {sorted(s.value for s in _missing)}")

CANCELLABLE: FrozenSet[BillingStatus] = frozenset({S.ACCEPTED, S.SENT, S.ACCEPTED_WITH_OBSERVATIONS})
TERMINAL: FrozenSet[BillingStatus] = frozenset({S.CANCELLED, S.REJECTED})


class DocumentLifecycleStateMachine:
    @staticmethod
    def can_transition(current: BillingStatus, target: BillingStatus) -> bool:
        return BillingStatus(target) in TRANSITIONS[BillingStatus(current)]

    @classmethod
    def assert_transition(cls, current: BillingStatus, target: BillingStatus) -> None:
        if not cls.can_transition(current, target):
            raise StateError(
                f"Transición no permitida: {BillingStatus(current).label} -> {BillingStatus(target).label}"
            )

    @staticmethod
    def can_cancel(status: BillingStatus) -> bool:
        return BillingStatus(status) in CANCELLABLE

    @staticmethod
    def is_terminal(status: BillingStatus) -> bool:
        return BillingStatus(status) in TERMINAL


def parse_cancellation_reason(code: Optional[str]) -> CancellationReason:
    if not code or not code.strip():
        raise ValidationError("Debe indicar el motivo de anulación")
    try:
        return CancellationReason(code.strip())
    except ValueError:
        valid = ", ".join(r.value for r in CancellationReason)
        raise ValidationError(f"Motivo de anulación inválido: {code}. Valores permitidos: {valid}")


class DocumentLifecycleService:
    """Anulación y actualización del estado de facturación"""

    def __init__(self, uow: UnitOfWork, locks: Optional[KeyedLockRegistry] = None,
                 lock_timeout: Optional[float] = None):
        self.uow = uow
        self.machine = DocumentLifecycleStateMachine()
        self.locks = locks or default_registry
        self.lock_timeout = settings.lock_timeout_seconds if lock_timeout is None else lock_timeout

    def _load(self, ctx: RequestContext, issued_document_id: int) -> IssuedDocument:
        document = self.uow.documents.get_for_update(issued_document_id)
        if document is None or document.branch_id != ctx.branch_id:
            raise NotFoundError(f"Comprobante {issued_document_id} no encontrado")
        return document

    def _locked(self, issued_document_id: int, fn):
        try:
            with self.locks.acquire(issued_document_key(issued_document_id), self.lock_timeout):
                try:
                    result = fn()
                    self.uow.commit()
                    return result
                except (OperationalError, StaleDataError) as e:
                    self.uow.rollback()
                    raise ConcurrencyError(f"El comprobante {issued_document_id} fue modificado por otra operación") from e
                except Exception:
                    self.uow.rollback()
                    raise
        except LockTimeout as e:
            raise ConcurrencyError(f"El comprobante {issued_document_id} tiene otra operación en curso") from e

    def cancel(self, ctx: RequestContext, issued_document_id: int,
               reason_code: Optional[str], description: Optional[str] = None) -> IssuedDocument:
        """
        Solicita la anulación del comprobante.

        Pasa a PROCESSING_CANCELLATION y deja cada ítem con cantidad pendiente
        igual a su cantidad original, disponible para reemisión.
        """
        reason = parse_cancellation_reason(reason_code)

        def _apply():
            document = self._load(ctx, issued_document_id)
            status = BillingStatus(document.billing_status)
            if not self.machine.can_cancel(status):
                raise StateError(f"No se puede anular un comprobante en estado {status.label}")
            self.machine.assert_transition(status, S.PROCESSING_CANCELLATION)

            document.billing_status = S.PROCESSING_CANCELLATION.value
            document.cancellation_reason = reason.value
            document.cancellation_description = (description or "").strip() or None
            document.cancellation_date = datetime.now()
            document.cancelled_by_id = ctx.user_id
            for item in document.items:
                item.remaining_quantity = item.quantity
            document.version = document.version + 1
            return document

        try:
            document = self._locked(issued_document_id, _apply)
        except StateError:
            logger.warning(f"Anulación rechazada para comprobante {issued_document_id}")
            raise
        logger.info(
            f"Comprobante {document.serial}-{document.number} en anulación "
            f"(motivo {reason.value} - {reason.description}) por usuario {ctx.user_id}"
        )
        return document

    def update_billing_status(self, ctx: RequestContext, issued_document_id: int,
                              target: BillingStatus) -> IssuedDocument:
        """Aplica un cambio de estado informado por SUNAT / OSE."""
        target = BillingStatus(target)

        def _apply():
            document = self._load(ctx, issued_document_id)
            current = BillingStatus(document.billing_status)
            self.machine.assert_transition(current, target)
            document.billing_status = target.value
            document.version = document.version + 1
            return document, current

        document, previous = self._locked(issued_document_id, _apply)
        logger.info(
            f"Comprobante {document.serial}-{document.number}: {previous.value} -> {target.value}"
        )
        return document

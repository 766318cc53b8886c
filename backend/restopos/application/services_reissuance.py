"""
Reemisión de Comprobantes Anulados
==================================

Genera un comprobante hijo (Boleta o Factura) con las cantidades pendientes
de un comprobante anulado.

REGLAS:
- Solo ítems con cantidad pendiente > 0
- Totales redondeados a 2 decimales (HALF_UP) sobre cada agregado:
    total_amount   = Σ q × unit_price
    total_taxable  = Σ q × unit_value
    igv_amount     = Σ q × (unit_price − unit_value)
    total_discount = Σ q × discount
- Factura (01) exige cliente con RUC; Boleta (03) no tiene restricción
- La cantidad trasladada se descuenta del padre en la misma transacción, con
  candado sobre el padre (no se puede trasladar dos veces lo mismo)
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
import logging

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..config import settings
from ..domain.enums import BillingStatus, DocumentTypeCode, PersonDocumentType
from ..domain.models_documents import IssuedDocument, IssuedDocumentItem
from ..infrastructure.locks import KeyedLockRegistry, LockTimeout, issued_document_key, registry as default_registry
from ..infrastructure.print_queue import PrintDispatcher
from ..infrastructure.unit_of_work import UnitOfWork
from .dtos import (
    DocumentMutationResult, IssuedDocumentOut, ReissuanceTotals, ReissueableItem,
    ReissueIn, ReissuePayload, RequestContext
)
from .errors import ConcurrencyError, NotFoundError, StateError, ValidationError
from .money import ZERO, round2, to_decimal

logger = logging.getLogger(__name__)

# Solo un comprobante con anulación confirmada por SUNAT deja de ser válido;
# mientras la baja está en trámite puede terminar en CANCELLATION_ERROR
REISSUABLE_STATUSES = frozenset({BillingStatus.CANCELLED})

TARGET_TYPES = frozenset({DocumentTypeCode.FACTURA, DocumentTypeCode.BOLETA})


class ReissuanceCalculator:
    """Cálculo puro de la reemisión (sin base de datos)"""

    def __init__(self, igv_percent=None, default_currency: Optional[str] = None,
                 default_exchange_rate=None):
        self.igv_percent = to_decimal(settings.igv_percent if igv_percent is None else igv_percent)
        self.default_currency = default_currency or settings.default_currency
        self.default_exchange_rate = to_decimal(
            settings.default_exchange_rate if default_exchange_rate is None else default_exchange_rate
        )

    @staticmethod
    def filter_items(items: Sequence[ReissueableItem],
                     quantities: Optional[Dict[int, Decimal]] = None) -> List[ReissueableItem]:
        """
        Ítems a trasladar. Sin `quantities` se traslada todo lo pendiente;
        con `quantities` (item_id -> cantidad) solo lo indicado, que no puede
        superar lo pendiente.

        En el resultado, `remaining_quantity` es la cantidad que se traslada.
        """
        pending = [i for i in items if to_decimal(i.remaining_quantity) > ZERO]
        if quantities is None:
            return pending

        by_id = {i.id: i for i in pending}
        selected = []
        for item_id, qty in quantities.items():
            qty = to_decimal(qty)
            item = by_id.get(item_id)
            if item is None:
                raise ValidationError(f"El ítem {item_id} no tiene cantidad pendiente para reemitir")
            if qty <= ZERO:
                raise ValidationError(f"Cantidad inválida para el ítem {item_id}")
            if qty > to_decimal(item.remaining_quantity):
                raise ValidationError(
                    f"El ítem {item_id} solo tiene {item.remaining_quantity} pendiente(s); se pidió {qty}"
                )
            selected.append(item.model_copy(update={"remaining_quantity": qty}))
        return sorted(selected, key=lambda i: i.id)

    @staticmethod
    def compute_totals(items: Sequence[ReissueableItem]) -> ReissuanceTotals:
        amount = taxable = igv = discount = ZERO
        for item in items:
            q = to_decimal(item.remaining_quantity)
            price = to_decimal(item.unit_price)
            value = to_decimal(item.unit_value)
            amount += q * price
            taxable += q * value
            igv += q * (price - value)
            discount += q * to_decimal(item.discount)
        return ReissuanceTotals(
            total_amount=round2(amount),
            total_taxable=round2(taxable),
            igv_amount=round2(igv),
            total_discount=round2(discount),
        )

    @staticmethod
    def validate_target(target: DocumentTypeCode, person) -> None:
        target = DocumentTypeCode(target)
        if target not in TARGET_TYPES:
            raise ValidationError("Solo se puede reemitir como Factura (01) o Boleta (03)")
        if target is DocumentTypeCode.FACTURA:
            if person is None:
                raise ValidationError("Para emitir una Factura debe seleccionar un cliente")
            if person.document_type != PersonDocumentType.RUC.value:
                raise ValidationError("Para emitir una Factura el cliente debe tener RUC")

    def build_payload(
        self,
        ctx: RequestContext,
        source: IssuedDocument,
        items: Sequence[ReissueableItem],
        target: DocumentTypeCode,
        serial: str,
        person=None,
        currency: Optional[str] = None,
        exchange_rate=None,
        notes: Optional[str] = None,
        today: Optional[date] = None,
    ) -> ReissuePayload:
        if not items:
            raise ValidationError("No hay ítems disponibles para reemitir")
        self.validate_target(target, person)
        return ReissuePayload(
            parent_issued_document_id=source.id,
            branch_id=ctx.branch_id,
            user_id=ctx.user_id,
            document_type_code=DocumentTypeCode(target),
            serial=serial.strip().upper(),
            person_id=person.id if person is not None else None,
            emission_date=today or date.today(),
            currency=currency or self.default_currency,
            exchange_rate=to_decimal(exchange_rate) if exchange_rate is not None else self.default_exchange_rate,
            igv_percent=self.igv_percent,
            totals=self.compute_totals(items),
            items=list(items),
            notes=notes or f"Conversión desde {source.serial}-{source.number}",
        )


class ReissuanceService:
    def __init__(
        self,
        uow: UnitOfWork,
        calculator: Optional[ReissuanceCalculator] = None,
        printer: Optional[PrintDispatcher] = None,
        locks: Optional[KeyedLockRegistry] = None,
        lock_timeout: Optional[float] = None,
    ):
        self.uow = uow
        self.calculator = calculator or ReissuanceCalculator()
        self.printer = printer
        self.locks = locks or default_registry
        self.lock_timeout = settings.lock_timeout_seconds if lock_timeout is None else lock_timeout

    @staticmethod
    def _check_source(ctx: RequestContext, document: Optional[IssuedDocument], issued_document_id: int):
        if document is None or document.branch_id != ctx.branch_id:
            raise NotFoundError(f"Comprobante {issued_document_id} no encontrado")
        status = BillingStatus(document.billing_status)
        if status not in REISSUABLE_STATUSES:
            raise StateError(f"Solo se pueden reemitir comprobantes anulados (estado actual: {status.label})")

    def reissueable_items(self, ctx: RequestContext, issued_document_id: int) -> List[ReissueableItem]:
        document = self.uow.documents.get(issued_document_id)
        self._check_source(ctx, document, issued_document_id)
        return [
            ReissueableItem.model_validate(i)
            for i in document.items
            if to_decimal(i.remaining_quantity) > ZERO
        ]

    def reissue(self, ctx: RequestContext, issued_document_id: int, data: ReissueIn) -> DocumentMutationResult:
        # Validación de destino y cliente antes de tomar candados
        person = None
        if data.person_id is not None:
            person = self.uow.persons.get(data.person_id)
            if person is None:
                raise ValidationError(f"Cliente {data.person_id} no encontrado")
        self.calculator.validate_target(data.target_document_type_code, person)

        try:
            with self.locks.acquire(issued_document_key(issued_document_id), self.lock_timeout):
                child, payload = self._reissue_locked(ctx, issued_document_id, data, person)
        except LockTimeout as e:
            logger.warning(f"Reemisión de comprobante {issued_document_id} bloqueada por otra operación")
            raise ConcurrencyError(f"El comprobante {issued_document_id} tiene otra reemisión en curso") from e

        logger.info(
            f"Reemisión {child.serial}-{child.number} desde comprobante {issued_document_id} "
            f"por usuario {ctx.user_id}: {len(payload.items)} ítem(s), total {payload.totals.total_amount}"
        )
        result = DocumentMutationResult(
            success=True,
            message=f"Comprobante {child.serial}-{child.number} generado",
            issued_document=IssuedDocumentOut.model_validate(child),
        )
        if self.printer is not None:
            dispatch = self.printer.issued_document(child.id, ctx.device_id)
            result = result.model_copy(update={"print_queued": dispatch.queued, "print_error": dispatch.error})
        return result

    def _reissue_locked(self, ctx, issued_document_id, data: ReissueIn, person):
        try:
            source = self.uow.documents.get_for_update(issued_document_id)
            self._check_source(ctx, source, issued_document_id)

            available = [ReissueableItem.model_validate(i) for i in source.items]
            quantities = None
            if data.items is not None:
                quantities = {}
                for q in data.items:
                    if q.item_id in quantities:
                        raise ValidationError(f"El ítem {q.item_id} está repetido")
                    quantities[q.item_id] = q.quantity
            carried = self.calculator.filter_items(available, quantities)

            payload = self.calculator.build_payload(
                ctx, source, carried, data.target_document_type_code, data.serial,
                person=person, currency=data.currency, exchange_rate=data.exchange_rate, notes=data.notes,
            )
            child = self._create_child(source, payload)

            # Descuento monotónico de lo pendiente en el padre
            parent_items = {i.id: i for i in source.items}
            for item in carried:
                parent_item = parent_items[item.id]
                parent_item.remaining_quantity = to_decimal(parent_item.remaining_quantity) - item.remaining_quantity
            source.version = source.version + 1

            self.uow.commit()
        except (IntegrityError, OperationalError, StaleDataError) as e:
            self.uow.rollback()
            logger.warning(f"Reemisión de comprobante {issued_document_id} en conflicto: {e}")
            raise ConcurrencyError(
                f"El comprobante {issued_document_id} fue modificado por otra operación; reintente"
            ) from e
        except Exception:
            self.uow.rollback()
            raise
        return child, payload

    def _create_child(self, source: IssuedDocument, payload: ReissuePayload) -> IssuedDocument:
        totals = payload.totals
        child = IssuedDocument(
            branch_id=payload.branch_id,
            operation_id=source.operation_id,
            user_id=payload.user_id,
            person_id=payload.person_id,
            parent_issued_document_id=payload.parent_issued_document_id,
            document_type_code=payload.document_type_code.value,
            serial=payload.serial,
            number=self.uow.documents.next_number(payload.serial),
            emission_date=payload.emission_date,
            currency=payload.currency,
            exchange_rate=payload.exchange_rate,
            total_taxable=totals.total_taxable,
            igv_percent=payload.igv_percent,
            igv_amount=totals.igv_amount,
            total_discount=totals.total_discount,
            total_unaffected=totals.total_unaffected,
            total_exempt=totals.total_exempt,
            total_free=totals.total_free,
            total_amount=totals.total_amount,
            billing_status=BillingStatus.PROCESSING.value,
            notes=payload.notes,
            created_at=datetime.now(),
            version=1,
        )
        for item in payload.items:
            child.items.append(IssuedDocumentItem(
                operation_detail_id=item.operation_detail_id,
                description=item.description,
                quantity=item.remaining_quantity,
                remaining_quantity=ZERO,
                unit_value=item.unit_value,
                unit_price=item.unit_price,
                discount=item.discount,
            ))
        self.uow.documents.add(child)
        self.uow.db.flush()
        return child

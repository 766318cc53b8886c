"""
Tests de reemisión de comprobantes anulados

Cubre:
- Boleta desde comprobante anulado: 30.00 / 25.41 / 4.59
- Factura sin cliente o sin RUC → ValidationError antes de crear nada
- Propiedades de totales (Σ q × precio, IGV = total − gravado − descuento)
- Reemisiones parciales y protección contra doble traslado
- Candado sobre el comprobante padre y control de versión entre sesiones
- Solo se reemite un comprobante con anulación confirmada
"""
import pytest
from decimal import Decimal

from restopos.application.dtos import ReissueableItem, ReissueIn, ReissueItemQuantityIn
from restopos.application.errors import ConcurrencyError, NotFoundError, StateError, ValidationError
from restopos.application.services_document_lifecycle import DocumentLifecycleService
from restopos.application.services_reissuance import ReissuanceCalculator, ReissuanceService
from restopos.domain.enums import BillingStatus, DocumentTypeCode, PersonDocumentType
from restopos.domain.models_documents import IssuedDocument
from restopos.infrastructure.locks import KeyedLockRegistry, issued_document_key
from restopos.infrastructure.unit_of_work import UnitOfWork


def item(id, remaining, price, value, discount="0.00", quantity=None):
    return ReissueableItem(
        id=id, quantity=Decimal(str(quantity or remaining)), remaining_quantity=Decimal(str(remaining)),
        unit_price=Decimal(price), unit_value=Decimal(value), discount=Decimal(discount),
    )


class TestCalculadora:

    def test_totales_boleta(self):
        totals = ReissuanceCalculator.compute_totals([item(1, 3, "10.00", "8.47")])
        assert totals.total_amount == Decimal("30.00")
        assert totals.total_taxable == Decimal("25.41")
        assert totals.igv_amount == Decimal("4.59")
        assert totals.total_discount == Decimal("0.00")

    def test_redondeo_por_agregado_no_por_linea(self):
        items = [item(i, 1, "0.015", "0.0127") for i in range(1, 101)]
        totals = ReissuanceCalculator.compute_totals(items)
        # por línea se obtendría 100 × 0.02 = 2.00
        assert totals.total_amount == Decimal("1.50")

    def test_propiedades_de_totales(self):
        items = [item(1, 2, "11.80", "10.00"), item(2, "1.5", "5.90", "5.00"), item(3, 4, "2.36", "2.00")]
        totals = ReissuanceCalculator.compute_totals(items)
        expected = sum(i.remaining_quantity * i.unit_price for i in items)
        assert abs(totals.total_amount - expected) <= Decimal("0.01")
        assert abs(totals.igv_amount - (totals.total_amount - totals.total_taxable - totals.total_discount)) <= Decimal("0.01")

    def test_filtra_items_sin_pendiente(self):
        items = [item(1, 0, "10.00", "8.47", quantity=2), item(2, 1, "5.00", "4.24")]
        assert [i.id for i in ReissuanceCalculator.filter_items(items)] == [2]

    def test_cantidades_parciales(self):
        items = [item(1, 3, "10.00", "8.47"), item(2, 1, "5.00", "4.24")]
        selected = ReissuanceCalculator.filter_items(items, {1: Decimal("2")})
        assert [(i.id, i.remaining_quantity) for i in selected] == [(1, Decimal("2"))]

    def test_cantidad_mayor_a_la_pendiente(self):
        with pytest.raises(ValidationError):
            ReissuanceCalculator.filter_items([item(1, 3, "10.00", "8.47")], {1: Decimal("4")})

    def test_item_inexistente(self):
        with pytest.raises(ValidationError):
            ReissuanceCalculator.filter_items([item(1, 3, "10.00", "8.47")], {99: Decimal("1")})

    def test_factura_sin_cliente(self):
        with pytest.raises(ValidationError):
            ReissuanceCalculator.validate_target(DocumentTypeCode.FACTURA, None)

    def test_factura_con_dni(self, make, branch):
        person = make.person(branch, document_type=PersonDocumentType.DNI, document_number="44556677")
        with pytest.raises(ValidationError):
            ReissuanceCalculator.validate_target(DocumentTypeCode.FACTURA, person)

    def test_boleta_sin_cliente(self):
        ReissuanceCalculator.validate_target(DocumentTypeCode.BOLETA, None)

    @pytest.mark.parametrize("code", [DocumentTypeCode.NOTA_CREDITO, DocumentTypeCode.NOTA_VENTA])
    def test_destino_no_permitido(self, code):
        with pytest.raises(ValidationError):
            ReissuanceCalculator.validate_target(code, None)


@pytest.fixture
def lifecycle(uow, locks):
    return DocumentLifecycleService(uow, locks=locks, lock_timeout=0)


@pytest.fixture
def service(uow, locks, printer):
    return ReissuanceService(uow, printer=printer, locks=locks, lock_timeout=0)


@pytest.fixture
def cancelled(make, branch, ctx, lifecycle):
    doc = make.document(branch, [(3, "10.00", "8.47")], serial="B001", number=7)
    lifecycle.cancel(ctx, doc.id, "01")
    lifecycle.update_billing_status(ctx, doc.id, BillingStatus.CANCELLATION_PENDING)
    lifecycle.update_billing_status(ctx, doc.id, BillingStatus.CANCELLED)
    return doc


def boleta(**kwargs):
    return ReissueIn(target_document_type_code=DocumentTypeCode.BOLETA, serial="B001", **kwargs)


class TestReemision:

    def test_anular_y_reemitir_como_boleta(self, service, db, cancelled, ctx, printer):
        result = service.reissue(ctx, cancelled.id, boleta())

        out = result.issued_document
        assert result.success is True
        assert out.document_type_code == "03"
        assert out.total_amount == Decimal("30.00")
        assert out.total_taxable == Decimal("25.41")
        assert out.igv_amount == Decimal("4.59")
        assert out.parent_issued_document_id == cancelled.id
        assert out.person_id is None
        assert out.number == 8
        assert out.billing_status is BillingStatus.PROCESSING

        child = db.get(IssuedDocument, out.id)
        assert child.notes == "Conversión desde B001-7"
        assert child.currency == "PEN"
        assert child.igv_percent == Decimal("18.00")
        assert [i.quantity for i in child.items] == [Decimal("3")]

        db.refresh(cancelled)
        assert [i.remaining_quantity for i in cancelled.items] == [Decimal("0")]
        assert result.print_queued is True
        printer.issued_document.assert_called_once_with(out.id, "POS-01")

    def test_factura_sin_cliente_no_crea_nada(self, service, db, cancelled, ctx):
        data = ReissueIn(target_document_type_code=DocumentTypeCode.FACTURA, serial="F001")
        with pytest.raises(ValidationError):
            service.reissue(ctx, cancelled.id, data)
        assert db.query(IssuedDocument).count() == 1

    def test_factura_con_ruc(self, service, make, branch, cancelled, ctx):
        person = make.person(branch)
        data = ReissueIn(target_document_type_code=DocumentTypeCode.FACTURA, serial="F001", person_id=person.id)
        out = service.reissue(ctx, cancelled.id, data).issued_document
        assert out.person_id == person.id
        assert out.number == 1

    def test_moneda_y_notas(self, service, db, cancelled, ctx):
        data = boleta(currency="USD", exchange_rate=Decimal("3.75"), notes="Cambio de comprobante")
        out = service.reissue(ctx, cancelled.id, data).issued_document
        child = db.get(IssuedDocument, out.id)
        assert child.currency == "USD"
        assert child.exchange_rate == Decimal("3.7500")
        assert child.notes == "Cambio de comprobante"

    def test_no_se_puede_reemitir_dos_veces(self, service, db, cancelled, ctx):
        service.reissue(ctx, cancelled.id, boleta())
        with pytest.raises(ValidationError):
            service.reissue(ctx, cancelled.id, boleta())
        assert db.query(IssuedDocument).count() == 2

    def test_reemisiones_parciales(self, service, db, cancelled, ctx):
        item_id = cancelled.items[0].id

        first = service.reissue(ctx, cancelled.id, boleta(items=[ReissueItemQuantityIn(item_id=item_id, quantity=Decimal("1"))]))
        assert first.issued_document.total_amount == Decimal("10.00")
        assert [i.remaining_quantity for i in service.reissueable_items(ctx, cancelled.id)] == [Decimal("2")]

        with pytest.raises(ValidationError):
            service.reissue(ctx, cancelled.id, boleta(items=[ReissueItemQuantityIn(item_id=item_id, quantity=Decimal("3"))]))

        second = service.reissue(ctx, cancelled.id, boleta())
        assert second.issued_document.total_amount == Decimal("20.00")
        assert service.reissueable_items(ctx, cancelled.id) == []

    def test_items_reemitibles(self, service, cancelled, ctx):
        items = service.reissueable_items(ctx, cancelled.id)
        assert [(i.quantity, i.remaining_quantity) for i in items] == [(Decimal("3"), Decimal("3"))]

    def test_origen_no_anulado(self, service, make, branch, ctx):
        doc = make.document(branch, [(1, "10.00", "8.47")], status=BillingStatus.ACCEPTED, number=20)
        with pytest.raises(StateError):
            service.reissue(ctx, doc.id, boleta())
        with pytest.raises(StateError):
            service.reissueable_items(ctx, doc.id)

    @pytest.mark.parametrize("status", [BillingStatus.PROCESSING_CANCELLATION, BillingStatus.CANCELLATION_PENDING])
    def test_anulacion_en_tramite_no_se_reemite(self, service, lifecycle, db, make, branch, ctx, status):
        doc = make.document(branch, [(3, "10.00", "8.47")], serial="B001", number=30)
        lifecycle.cancel(ctx, doc.id, "01")
        if status is BillingStatus.CANCELLATION_PENDING:
            lifecycle.update_billing_status(ctx, doc.id, status)

        with pytest.raises(StateError):
            service.reissue(ctx, doc.id, boleta())
        assert db.query(IssuedDocument).count() == 1

    def test_anulacion_rechazada_deja_el_comprobante_sin_hijo(self, service, lifecycle, db, make, branch, ctx):
        doc = make.document(branch, [(3, "10.00", "8.47")], serial="B001", number=31)
        lifecycle.cancel(ctx, doc.id, "01")
        with pytest.raises(StateError):
            service.reissue(ctx, doc.id, boleta())

        lifecycle.update_billing_status(ctx, doc.id, BillingStatus.CANCELLATION_ERROR)

        with pytest.raises(StateError):
            service.reissueable_items(ctx, doc.id)
        assert db.query(IssuedDocument).filter(IssuedDocument.parent_issued_document_id == doc.id).count() == 0

    def test_origen_inexistente(self, service, ctx):
        with pytest.raises(NotFoundError):
            service.reissue(ctx, 12345, boleta())

    def test_reemision_en_curso_sobre_el_padre(self, service, locks, db, cancelled, ctx):
        with locks.acquire(issued_document_key(cancelled.id), 1):
            with pytest.raises(ConcurrencyError):
                service.reissue(ctx, cancelled.id, boleta())
        assert db.query(IssuedDocument).count() == 1


class TestReemisionEntreSesiones:
    """Dos procesos con sesión y candados propios sobre el mismo padre"""

    def test_segundo_escritor_recibe_conflicto(self, session_factory, db, cancelled, ctx, printer):
        other_db = session_factory()
        try:
            first = ReissuanceService(UnitOfWork(db), printer=printer, locks=KeyedLockRegistry(), lock_timeout=0)
            second = ReissuanceService(UnitOfWork(other_db), printer=printer, locks=KeyedLockRegistry(), lock_timeout=0)

            # el segundo proceso ya leyó el padre con 3 unidades pendientes
            stale = UnitOfWork(other_db).documents.get_for_update(cancelled.id)
            assert [i.remaining_quantity for i in stale.items] == [Decimal("3")]

            first.reissue(ctx, cancelled.id, boleta())
            with pytest.raises(ConcurrencyError) as exc_info:
                second.reissue(ctx, cancelled.id, boleta())
        finally:
            other_db.close()

        assert exc_info.value.retryable is True
        db.expire_all()
        parent = db.get(IssuedDocument, cancelled.id)
        assert [i.remaining_quantity for i in parent.items] == [Decimal("0")]
        children = db.query(IssuedDocument).filter(IssuedDocument.parent_issued_document_id == cancelled.id).all()
        assert [c.total_amount for c in children] == [Decimal("30.00")]

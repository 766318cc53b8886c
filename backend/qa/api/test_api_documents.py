"""
Tests de API - Comprobantes
"""
from decimal import Decimal

from restopos.domain.enums import BillingStatus


class TestComprobantesAPI:

    def test_anular_reemitir_boleta(self, client, auth_headers, make, branch, printer):
        doc = make.document(branch, [(3, "10.00", "8.47")], serial="B001", number=1)

        r = client.post(f"/documents/{doc.id}/cancel", json={"cancellation_reason": "01"}, headers=auth_headers)
        assert r.status_code == 200
        assert r.json()["issued_document"]["billing_status"] == "PROCESSING_CANCELLATION"

        r = client.get(f"/documents/{doc.id}/reissueable-items", headers=auth_headers)
        assert r.status_code == 409

        for status in ("CANCELLATION_PENDING", "CANCELLED"):
            r = client.post(f"/documents/{doc.id}/billing-status", json={"billing_status": status}, headers=auth_headers)
            assert r.status_code == 200

        items = client.get(f"/documents/{doc.id}/reissueable-items", headers=auth_headers).json()
        assert len(items) == 1

        r = client.post(
            f"/documents/{doc.id}/reissue",
            json={"target_document_type_code": "03", "serial": "B001"},
            headers=auth_headers,
        )
        assert r.status_code == 200
        out = r.json()["issued_document"]
        assert Decimal(out["total_amount"]) == Decimal("30.00")
        assert Decimal(out["total_taxable"]) == Decimal("25.41")
        assert Decimal(out["igv_amount"]) == Decimal("4.59")
        assert out["parent_issued_document_id"] == doc.id
        printer.issued_document.assert_called_once_with(out["id"], "POS-01")

    def test_anular_sin_motivo_400(self, client, auth_headers, make, branch):
        doc = make.document(branch, [(1, "10.00", "8.47")])
        r = client.post(f"/documents/{doc.id}/cancel", json={}, headers=auth_headers)
        assert r.status_code == 400

    def test_anular_estado_invalido_409(self, client, auth_headers, make, branch):
        doc = make.document(branch, [(1, "10.00", "8.47")], status=BillingStatus.PROCESSING)
        r = client.post(f"/documents/{doc.id}/cancel", json={"cancellation_reason": "01"}, headers=auth_headers)
        assert r.status_code == 409

    def test_factura_sin_cliente_400(self, client, auth_headers, make, branch):
        doc = make.document(branch, [(1, "10.00", "8.47")], status=BillingStatus.CANCELLED)
        r = client.post(
            f"/documents/{doc.id}/reissue",
            json={"target_document_type_code": "01", "serial": "F001"},
            headers=auth_headers,
        )
        assert r.status_code == 400

    def test_estado_de_facturacion(self, client, auth_headers, make, branch):
        doc = make.document(branch, [(1, "10.00", "8.47")], status=BillingStatus.PROCESSING)

        r = client.post(f"/documents/{doc.id}/billing-status", json={"billing_status": "SENT"}, headers=auth_headers)
        assert r.status_code == 200
        assert r.json()["issued_document"]["billing_status"] == "SENT"

        r = client.post(f"/documents/{doc.id}/billing-status", json={"billing_status": "CANCELLED"}, headers=auth_headers)
        assert r.status_code == 409

    def test_estado_desconocido_422(self, client, auth_headers, make, branch):
        doc = make.document(branch, [(1, "10.00", "8.47")])
        r = client.post(f"/documents/{doc.id}/billing-status", json={"billing_status": "PAGADO"}, headers=auth_headers)
        assert r.status_code == 422

    def test_comprobante_inexistente_404(self, client, auth_headers):
        r = client.post("/documents/999/cancel", json={"cancellation_reason": "01"}, headers=auth_headers)
        assert r.status_code == 404

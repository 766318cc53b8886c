"""
Tests de la cola de impresión

Cubre:
- El despacho nunca lanza: informa si encoló o no
- Reintentos con backoff exponencial ante fallos del servicio de impresión
- Cliente HTTP del servicio de impresión
"""
import httpx
import pytest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from restopos.infrastructure import print_tasks
from restopos.infrastructure.print_queue import PrintDispatcher
from restopos.infrastructure.printer_gateway import PrinterGatewayClient, PrinterGatewayError


class TestDespacho:

    def test_encola_con_dispositivo(self):
        with patch.object(print_tasks.print_closure_ticket, "apply_async") as apply_async:
            dispatch = PrintDispatcher().closure(5, "POS-01")

        assert dispatch.queued is True
        assert dispatch.error is None
        apply_async.assert_called_once_with(args=[5], kwargs={"device_id": "POS-01"})

    def test_broker_caido_no_lanza(self):
        with patch.object(print_tasks.print_payment_ticket, "apply_async", side_effect=ConnectionError("redis caído")):
            dispatch = PrintDispatcher().payment(9, None)

        assert dispatch.queued is False
        assert "redis caído" in dispatch.error

    def test_comprobante(self):
        with patch.object(print_tasks.print_issued_document, "apply_async") as apply_async:
            assert PrintDispatcher().issued_document(3, "POS-02").queued is True
        apply_async.assert_called_once_with(args=[3], kwargs={"device_id": "POS-02"})


def fake_task(retries, max_retries=3):
    return SimpleNamespace(
        request=SimpleNamespace(retries=retries),
        max_retries=max_retries,
        retry=MagicMock(side_effect=RuntimeError("retry")),
    )


class TestTareas:

    def test_envio_exitoso(self):
        with patch.object(print_tasks, "PrinterGatewayClient") as client_cls:
            client_cls.return_value.submit.return_value = {"job_id": "J1"}
            result = print_tasks._submit(fake_task(0), print_tasks.KIND_CLOSURE, 1, "POS-01")

        assert result["status"] == "success"
        client_cls.return_value.submit.assert_called_once_with("CASH_CLOSURE", 1, "POS-01")

    @pytest.mark.parametrize("retries, countdown", [(0, 10), (1, 20), (2, 40)])
    def test_backoff_exponencial(self, retries, countdown):
        task = fake_task(retries)
        with patch.object(print_tasks, "PrinterGatewayClient") as client_cls, \
                patch.object(print_tasks.settings, "print_task_backoff_seconds", 10):
            client_cls.return_value.submit.side_effect = PrinterGatewayError("sin respuesta")
            with pytest.raises(RuntimeError):
                print_tasks._submit(task, print_tasks.KIND_PAYMENT, 2, None)

        assert task.retry.call_args.kwargs["countdown"] == countdown

    def test_reintentos_agotados(self):
        task = fake_task(3)
        with patch.object(print_tasks, "PrinterGatewayClient") as client_cls:
            client_cls.return_value.submit.side_effect = PrinterGatewayError("sin respuesta")
            result = print_tasks._submit(task, print_tasks.KIND_ISSUED_DOCUMENT, 3, None)

        assert result["status"] == "failed"
        task.retry.assert_not_called()


class TestClienteImpresion:

    def test_envia_trabajo(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = request.content
            return httpx.Response(202, json={"job_id": "J9"})

        client = PrinterGatewayClient(base_url="http://printer.local", transport=httpx.MockTransport(handler))
        assert client.submit("PAYMENT", 4, "POS-01") == {"job_id": "J9"}
        assert seen["path"] == "/print-jobs"
        assert b'"resource_id":4' in seen["body"].replace(b" ", b"")

    def test_error_http(self):
        client = PrinterGatewayClient(
            base_url="http://printer.local",
            transport=httpx.MockTransport(lambda request: httpx.Response(503)),
        )
        with pytest.raises(PrinterGatewayError):
            client.submit("PAYMENT", 4, None)

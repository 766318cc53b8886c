"""
Tareas de Celery para impresión de tickets.

Se encolan solo después de confirmar la transacción financiera. Un fallo aquí
nunca revierte el cierre, el pago ni el comprobante.
"""
from ..config import settings
from .celery_app import celery_app
from .logging_config import get_logger
from .printer_gateway import PrinterGatewayClient, PrinterGatewayError

logger = get_logger("printing")

KIND_CLOSURE = "CASH_CLOSURE"
KIND_PAYMENT = "PAYMENT"
KIND_ISSUED_DOCUMENT = "ISSUED_DOCUMENT"


def _submit(task, kind: str, resource_id: int, device_id):
    try:
        result = PrinterGatewayClient().submit(kind, resource_id, device_id)
        logger.info(f"Ticket {kind} #{resource_id} enviado a impresión (dispositivo {device_id})")
        return {"status": "success", "kind": kind, "resource_id": resource_id, "result": result}
    except PrinterGatewayError as exc:
        if task.request.retries < task.max_retries:
            countdown = settings.print_task_backoff_seconds * (2 ** task.request.retries)
            logger.warning(f"{exc}. Reintento {task.request.retries + 1} en {countdown}s")
            raise task.retry(exc=exc, countdown=countdown)
        logger.error(f"Impresión {kind} #{resource_id} descartada tras {task.max_retries} reintentos: {exc}")
        return {"status": "failed", "kind": kind, "resource_id": resource_id, "error": str(exc)}


@celery_app.task(bind=True, max_retries=settings.print_task_max_retries)
def print_closure_ticket(self, closure_id: int, device_id=None):
    return _submit(self, KIND_CLOSURE, closure_id, device_id)


@celery_app.task(bind=True, max_retries=settings.print_task_max_retries)
def print_payment_ticket(self, payment_id: int, device_id=None):
    return _submit(self, KIND_PAYMENT, payment_id, device_id)


@celery_app.task(bind=True, max_retries=settings.print_task_max_retries)
def print_issued_document(self, issued_document_id: int, device_id=None):
    return _submit(self, KIND_ISSUED_DOCUMENT, issued_document_id, device_id)

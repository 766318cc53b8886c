"""
Despacho de impresiones posteriores al commit.

Desacopla la mutación financiera del trabajo de impresión: solo encola. El
resultado indica si se encoló; nunca lanza.
"""
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PrintDispatch:
    queued: bool
    error: Optional[str] = None


class PrintDispatcher:
    def _enqueue(self, task, resource_id: int, device_id: Optional[str]) -> PrintDispatch:
        try:
            task.apply_async(args=[resource_id], kwargs={"device_id": device_id})
        except Exception as e:
            logger.error(f"No se pudo encolar {task.name} para #{resource_id}: {e}")
            return PrintDispatch(queued=False, error=str(e))
        logger.info(f"Impresión encolada: {task.name} #{resource_id}")
        return PrintDispatch(queued=True)

    def closure(self, closure_id: int, device_id: Optional[str]) -> PrintDispatch:
        from .print_tasks import print_closure_ticket
        return self._enqueue(print_closure_ticket, closure_id, device_id)

    def payment(self, payment_id: int, device_id: Optional[str]) -> PrintDispatch:
        from .print_tasks import print_payment_ticket
        return self._enqueue(print_payment_ticket, payment_id, device_id)

    def issued_document(self, issued_document_id: int, device_id: Optional[str]) -> PrintDispatch:
        from .print_tasks import print_issued_document
        return self._enqueue(print_issued_document, issued_document_id, device_id)

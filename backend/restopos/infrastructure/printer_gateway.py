"""
Cliente HTTP del servicio de impresión
======================================

El servicio externo resuelve la impresora asociada al dispositivo y arma el
ticket a partir del tipo y el id del recurso.
"""
import httpx
from typing import Any, Dict, Optional

from ..config import settings


class PrinterGatewayError(Exception):
    """El servicio de impresión rechazó el trabajo o no respondió"""
    pass


class PrinterGatewayClient:
    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = (base_url or settings.printer_gateway_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.printer_gateway_timeout_seconds
        self.transport = transport

    def submit(self, kind: str, resource_id: int, device_id: Optional[str]) -> Dict[str, Any]:
        payload = {"kind": kind, "resource_id": resource_id, "device_id": device_id}
        try:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
                response = client.post("/print-jobs", json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise PrinterGatewayError(f"Error enviando trabajo de impresión {kind} #{resource_id}: {e}") from e
        return response.json() if response.content else {}

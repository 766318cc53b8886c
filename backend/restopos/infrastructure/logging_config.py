"""
Configuración de logging para la aplicación
Crea archivos de log por día en la carpeta logs/
"""
import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime
from pathlib import Path

from ..config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_dir: Path | None = None):
    """Configura el sistema de logging con archivos diarios"""
    log_dir = Path(log_dir or settings.logs_path)
    log_dir.mkdir(parents=True, exist_ok=True)

    today = datetime.now().strftime("%Y-%m-%d")
    log_file = log_dir / f"restopos_{today}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)

    # Eliminar handlers existentes para evitar duplicados
    root_logger.handlers.clear()

    # maxBytes=10MB, backupCount=5
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    logging.getLogger("restopos").setLevel(logging.INFO)
    logging.getLogger("restopos.api").setLevel(logging.INFO)

    # Cierres y reemisiones: todo el detalle
    logging.getLogger("restopos.application.services_cash_closure").setLevel(logging.DEBUG)
    logging.getLogger("restopos.application.services_reissuance").setLevel(logging.DEBUG)

    # Solo warnings y errores de SQL
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)

    logging.info(f"Sistema de logging configurado. Archivo: {log_file}")

    return root_logger


def get_logger(name: str = None):
    """Obtiene un logger con el nombre especificado"""
    if name:
        return logging.getLogger(f"restopos.{name}")
    return logging.getLogger("restopos")

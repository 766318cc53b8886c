from typing import Generator
from sqlalchemy.orm import Session

from .db import SessionLocal
from .infrastructure.print_queue import PrintDispatcher


def get_db() -> Generator[Session, None, None]:
    """Sesión de base de datos por request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_print_dispatcher() -> PrintDispatcher:
    """Cola de impresión (se reemplaza en pruebas)."""
    return PrintDispatcher()

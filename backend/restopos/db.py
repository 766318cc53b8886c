import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import settings

if settings.database_url.startswith("sqlite:///./"):
    os.makedirs("./data", exist_ok=True)

_connect_args = {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}

engine = create_engine(settings.database_url, echo=False, future=True, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def _import_all_models():
    """Importa todos los modelos para que Base.metadata los registre."""
    from .domain import models  # noqa: F401 - User, CashRegister, Payment, CashClosure
    from .domain import models_operations  # noqa: F401 - Operation, OperationDetail, DiningTable
    from .domain import models_documents  # noqa: F401 - Person, IssuedDocument, IssuedDocumentItem


def init_db():
    """Crear tablas si no existen (arranque normal)."""
    _import_all_models()
    Base.metadata.create_all(bind=engine)


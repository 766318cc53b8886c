"""
Fixtures para tests de integración API.
Usa TestClient de FastAPI contra la app real, con la BD en memoria del test
y la cola de impresión simulada mediante override de dependencias.
"""
import pytest
import sys
from pathlib import Path

# Asegurar que el path permita imports de restopos
root_dir = Path(__file__).parent.parent.parent
sys.path.insert(0, str(root_dir))

from fastapi.testclient import TestClient

from restopos.main import app
from restopos.dependencies import get_db, get_print_dispatcher
from restopos.security.context import create_access_token


@pytest.fixture
def client(session_factory, printer):
    """Cliente HTTP sin autenticación."""
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_print_dispatcher] = lambda: printer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(branch, cashier):
    token = create_access_token(user_id=cashier.id, branch_id=branch.id)
    return {"Authorization": f"Bearer {token}", "X-Device-ID": "POS-01"}

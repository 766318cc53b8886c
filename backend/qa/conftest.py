"""
Configuración global de pytest para tests de caja y comprobantes
"""
import os
import pytest
import sys
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

# Agregar el directorio raíz al path para imports
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

os.environ.setdefault("DATABASE_URL", "sqlite://")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from restopos.db import Base, _import_all_models
from restopos.domain.enums import (
    BillingStatus, CashType, PaymentMethod, PaymentStatus, PersonDocumentType, TableStatus, TransactionType
)
from restopos.domain.models import Branch, CashRegister, Payment, User
from restopos.domain.models_operations import DiningTable, Operation, OperationDetail
from restopos.domain.models_documents import IssuedDocument, IssuedDocumentItem, Person
from restopos.application.dtos import RequestContext
from restopos.infrastructure.locks import KeyedLockRegistry
from restopos.infrastructure.print_queue import PrintDispatch, PrintDispatcher
from restopos.infrastructure.unit_of_work import UnitOfWork


@pytest.fixture
def engine():
    """SQLite en memoria compartido por todas las conexiones del test"""
    _import_all_models()
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def uow(db):
    return UnitOfWork(db)


@pytest.fixture
def locks():
    """Registro de candados aislado por test"""
    return KeyedLockRegistry()


@pytest.fixture
def printer():
    """Cola de impresión simulada que siempre encola"""
    mock = MagicMock(spec=PrintDispatcher)
    mock.closure.return_value = PrintDispatch(queued=True)
    mock.payment.return_value = PrintDispatch(queued=True)
    mock.issued_document.return_value = PrintDispatch(queued=True)
    return mock


class Factory:
    """Crea y confirma registros de prueba"""

    def __init__(self, db):
        self.db = db

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        return obj

    def branch(self, name="Sede Central"):
        return self._save(Branch(name=name))

    def user(self, branch, first_name="Ana", last_name="Torres", role="WAITER"):
        return self._save(User(branch_id=branch.id, first_name=first_name, last_name=last_name, role=role))

    def register(self, branch, name="Caja 1", cash_type=CashType.CASH, balance="0.00", is_active=True):
        return self._save(CashRegister(
            branch_id=branch.id, name=name, cash_type=cash_type.value,
            current_balance=Decimal(balance), is_active=is_active,
        ))

    def payment(self, register, user, amount, method=PaymentMethod.CASH,
                transaction_type=TransactionType.INCOME, status=PaymentStatus.PAID, operation=None):
        return self._save(Payment(
            branch_id=register.branch_id,
            cash_register_id=register.id,
            user_id=user.id,
            operation_id=operation.id if operation is not None else None,
            amount=Decimal(str(amount)),
            method=method.value,
            transaction_type=transaction_type.value,
            status=status.value,
            timestamp=datetime.now(),
        ))

    def table(self, branch, name="Mesa 1", occupied_by=None):
        return self._save(DiningTable(
            branch_id=branch.id,
            name=name,
            status=TableStatus.OCCUPIED.value if occupied_by is not None else TableStatus.FREE.value,
            occupied_by_id=occupied_by.id if occupied_by is not None else None,
        ))

    def operation(self, branch, user, quantities=(1,)):
        op = Operation(branch_id=branch.id, user_id=user.id)
        for i, q in enumerate(quantities, start=1):
            op.details.append(OperationDetail(
                product_name=f"Plato {i}", quantity=Decimal(str(q)), unit_price=Decimal("10.00"),
            ))
        return self._save(op)

    def person(self, branch, document_type=PersonDocumentType.RUC, document_number="20123456789",
               name="Cliente SAC"):
        return self._save(Person(
            branch_id=branch.id, name=name, document_type=document_type.value, document_number=document_number,
        ))

    def document(self, branch, items, status=BillingStatus.ACCEPTED, serial="B001", number=1,
                 document_type_code="03"):
        """items: lista de (cantidad, precio_unitario, valor_unitario)"""
        doc = IssuedDocument(
            branch_id=branch.id,
            document_type_code=document_type_code,
            serial=serial,
            number=number,
            emission_date=date.today(),
            billing_status=status.value,
            version=1,
        )
        total = Decimal("0")
        for i, (qty, price, value) in enumerate(items, start=1):
            qty, price, value = Decimal(str(qty)), Decimal(str(price)), Decimal(str(value))
            total += qty * price
            doc.items.append(IssuedDocumentItem(
                description=f"Ítem {i}",
                quantity=qty,
                remaining_quantity=Decimal("0"),
                unit_value=value,
                unit_price=price,
            ))
        doc.total_amount = total
        return self._save(doc)


@pytest.fixture
def make(db):
    return Factory(db)


@pytest.fixture
def branch(make):
    return make.branch()


@pytest.fixture
def cashier(make, branch):
    return make.user(branch, first_name="Luis", last_name="Quispe", role="CASHIER")


@pytest.fixture
def register(make, branch):
    return make.register(branch)


@pytest.fixture
def ctx(branch, cashier, register):
    return RequestContext(branch_id=branch.id, user_id=cashier.id, cash_register_id=register.id, device_id="POS-01")

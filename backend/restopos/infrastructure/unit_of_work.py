from contextlib import contextmanager
from sqlalchemy.orm import Session
from ..db import SessionLocal
from .repositories import (
    BranchRepository, UserRepository, CashRegisterRepository, PaymentRepository,
    ClosureRepository, OperationRepository, TableRepository,
    IssuedDocumentRepository, PersonRepository
)

class UnitOfWork:
    def __init__(self, db: Session = None):
        self.db: Session = db if db is not None else SessionLocal()
        self.branches = BranchRepository(self.db)
        self.users = UserRepository(self.db)
        self.registers = CashRegisterRepository(self.db)
        self.payments = PaymentRepository(self.db)
        self.closures = ClosureRepository(self.db)
        self.operations = OperationRepository(self.db)
        self.tables = TableRepository(self.db)
        self.documents = IssuedDocumentRepository(self.db)
        self.persons = PersonRepository(self.db)

    def commit(self): self.db.commit()
    def rollback(self): self.db.rollback()
    def close(self): self.db.close()

    @contextmanager
    def transaction(self):
        try:
            yield self
            self.commit()
        except Exception:
            self.rollback()
            raise

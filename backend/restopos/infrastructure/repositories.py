from datetime import date, datetime, time
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload
from ..domain.models import Branch, CashRegister, Payment, CashClosure, User
from ..domain.models_operations import Operation, DiningTable
from ..domain.models_documents import IssuedDocument, Person


class BranchRepository:
    def __init__(self, db: Session): self.db = db
    def get(self, id: int): return self.db.get(Branch, id)


class UserRepository:
    def __init__(self, db: Session): self.db = db
    def by_ids(self, ids):
        if not ids:
            return {}
        return {u.id: u for u in self.db.query(User).filter(User.id.in_(list(ids))).all()}


class CashRegisterRepository:
    def __init__(self, db: Session): self.db = db
    def add(self, reg: CashRegister): self.db.add(reg); return reg
    def get(self, id: int): return self.db.get(CashRegister, id)
    def get_for_update(self, id: int):
        return self.db.query(CashRegister).filter(CashRegister.id == id).with_for_update().first()
    def list_by_branch(self, branch_id: int):
        return (self.db.query(CashRegister)
                .filter(CashRegister.branch_id == branch_id)
                .order_by(CashRegister.name).all())
    def cash_types(self, branch_id: int):
        return {r.id: r.cash_type for r in self.list_by_branch(branch_id)}


class PaymentRepository:
    def __init__(self, db: Session): self.db = db
    def add(self, p: Payment): self.db.add(p); return p
    def get(self, id: int): return self.db.get(Payment, id)

    def _eligible(self, branch_id: int, cash_register_id: int | None):
        q = self.db.query(Payment).filter(Payment.branch_id == branch_id, Payment.closure_id.is_(None))
        if cash_register_id is not None:
            q = q.filter(Payment.cash_register_id == cash_register_id)
        return q.order_by(Payment.id)

    def eligible(self, branch_id: int, cash_register_id: int | None = None):
        """Pagos aún no cerrados (desde el último cierre)."""
        return self._eligible(branch_id, cash_register_id).all()

    def eligible_for_update(self, branch_id: int, cash_register_id: int):
        return self._eligible(branch_id, cash_register_id).with_for_update().all()


class ClosureRepository:
    def __init__(self, db: Session): self.db = db
    def add(self, c: CashClosure): self.db.add(c); return c
    def get(self, id: int): return self.db.get(CashClosure, id)

    def last_number(self, cash_register_id: int) -> int:
        last = (self.db.query(func.max(CashClosure.closure_number))
                .filter(CashClosure.cash_register_id == cash_register_id)
                .scalar())
        return last or 0

    def list(self, branch_id: int, user_id: int | None = None,
             start_date: date | None = None, end_date: date | None = None):
        q = self.db.query(CashClosure).filter(CashClosure.branch_id == branch_id)
        if user_id is not None:
            q = q.filter(CashClosure.user_id == user_id)
        if start_date is not None:
            q = q.filter(CashClosure.closed_at >= datetime.combine(start_date, time.min))
        if end_date is not None:
            q = q.filter(CashClosure.closed_at <= datetime.combine(end_date, time.max))
        return q.order_by(CashClosure.closed_at.desc(), CashClosure.id.desc()).all()


class OperationRepository:
    def __init__(self, db: Session): self.db = db
    def by_ids(self, ids):
        if not ids:
            return []
        return (self.db.query(Operation)
                .options(selectinload(Operation.details))
                .filter(Operation.id.in_(list(ids))).all())


class TableRepository:
    def __init__(self, db: Session): self.db = db
    def by_branch(self, branch_id: int):
        return self.db.query(DiningTable).filter(DiningTable.branch_id == branch_id).order_by(DiningTable.id).all()


class IssuedDocumentRepository:
    def __init__(self, db: Session): self.db = db
    def add(self, d: IssuedDocument): self.db.add(d); return d
    def get(self, id: int): return self.db.get(IssuedDocument, id)
    def get_for_update(self, id: int):
        return (self.db.query(IssuedDocument)
                .options(selectinload(IssuedDocument.items))
                .filter(IssuedDocument.id == id)
                .with_for_update().first())
    def next_number(self, serial: str) -> int:
        last = self.db.query(func.max(IssuedDocument.number)).filter(IssuedDocument.serial == serial).scalar()
        return (last or 0) + 1


class PersonRepository:
    def __init__(self, db: Session): self.db = db
    def get(self, id: int): return self.db.get(Person, id)

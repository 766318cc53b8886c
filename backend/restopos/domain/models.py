"""
Modelos del Dominio - Caja

Principios:
- El saldo de la caja solo lo modifica el cierre de caja
- Un pago pertenece a lo sumo a un cierre; los pagos nunca se eliminan
- Un cierre es inmutable una vez creado
"""
from sqlalchemy import Integer, String, Boolean, ForeignKey, DateTime, Numeric, Text, UniqueConstraint, JSON
from datetime import datetime
from decimal import Decimal
from sqlalchemy.orm import relationship, Mapped, mapped_column
from ..db import Base
from .enums import CashType, PaymentStatus


class User(Base):
    """Usuario (mozo, cajero, administrador). Se sincroniza desde el servicio de autenticación."""
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    branch_id: Mapped[int] = mapped_column(Integer, index=True)
    first_name: Mapped[str] = mapped_column(String(100), default="")
    last_name: Mapped[str] = mapped_column(String(100), default="")
    role: Mapped[str] = mapped_column(String(50), default="WAITER")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class Branch(Base):
    __tablename__ = "branches"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class CashRegister(Base):
    """
    Caja (efectivo, digital o bancaria) de una sucursal.

    Acumula pagos entre cierres. `current_balance` solo cambia al cerrar.
    """
    __tablename__ = "cash_registers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    branch_id: Mapped[int] = mapped_column(ForeignKey("branches.id"), index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    cash_type: Mapped[str] = mapped_column(String(10), default=CashType.CASH.value)  # CashType
    current_balance: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    branch = relationship("Branch")

    __table_args__ = (UniqueConstraint("branch_id", "name", name="uq_branch_cash_register_name"),)


class Payment(Base):
    """
    Pago (ingreso o egreso) registrado en una caja.

    `closure_id` es NULL mientras el pago no ha sido cerrado.
    """
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    branch_id: Mapped[int] = mapped_column(Integer, index=True)
    cash_register_id: Mapped[int] = mapped_column(ForeignKey("cash_registers.id"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    operation_id: Mapped[int | None] = mapped_column(ForeignKey("operations.id"), nullable=True, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    method: Mapped[str] = mapped_column(String(20), nullable=False)  # PaymentMethod
    transaction_type: Mapped[str] = mapped_column(String(10), nullable=False)  # TransactionType
    status: Mapped[str] = mapped_column(String(10), default=PaymentStatus.PAID.value)  # PaymentStatus
    reference_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)

    closure_id: Mapped[int | None] = mapped_column(ForeignKey("cash_closures.id"), nullable=True, index=True)

    cash_register = relationship("CashRegister")
    user = relationship("User")
    closure = relationship("CashClosure", back_populates="payments")


class CashClosure(Base):
    """
    Cierre de caja

    Congela los pagos elegibles de una caja. Numeración correlativa por caja
    desde 1. No se edita ni elimina.
    """
    __tablename__ = "cash_closures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    branch_id: Mapped[int] = mapped_column(Integer, index=True)
    cash_register_id: Mapped[int] = mapped_column(ForeignKey("cash_registers.id"), index=True)
    closure_number: Mapped[int] = mapped_column(Integer, nullable=False)
    closed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)

    total_income: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_expense: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    net_total: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)  # quien cierra
    device_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    summary: Mapped[dict | None] = mapped_column(JSON, nullable=True)  # detalle por usuario y método

    cash_register = relationship("CashRegister")
    user = relationship("User")
    payments = relationship("Payment", back_populates="closure")

    __table_args__ = (
        UniqueConstraint("cash_register_id", "closure_number", name="uq_cash_register_closure_number"),
    )

    @property
    def payment_ids(self) -> list[int]:
        return sorted(p.id for p in self.payments)

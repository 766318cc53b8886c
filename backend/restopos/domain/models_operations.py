"""
Modelos de operaciones (pedidos) y mesas

Solo se usan como fuente de datos para el resumen por usuario y para
bloquear el cierre de quien tiene mesas ocupadas.
"""
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Numeric, ForeignKey, DateTime
from datetime import datetime
from decimal import Decimal
from .models import Base
from .enums import TableStatus, OperationStatus


class DiningTable(Base):
    """Mesa del salón"""
    __tablename__ = "tables"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    branch_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=TableStatus.FREE.value)  # TableStatus
    occupied_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)

    occupied_by = relationship("User")


class Operation(Base):
    """Pedido (mesa o delivery) atendido por un usuario"""
    __tablename__ = "operations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    branch_id: Mapped[int] = mapped_column(Integer, index=True)
    table_id: Mapped[int | None] = mapped_column(ForeignKey("tables.id"), nullable=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    status: Mapped[str] = mapped_column(String(20), default=OperationStatus.PROCESSING.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    details = relationship("OperationDetail", back_populates="operation", cascade="all, delete-orphan")


class OperationDetail(Base):
    """Línea de pedido (plato / producto)"""
    __tablename__ = "operation_details"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    operation_id: Mapped[int] = mapped_column(ForeignKey("operations.id"), index=True, nullable=False)
    product_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    product_name: Mapped[str] = mapped_column(String(200), default="")
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))

    operation = relationship("Operation", back_populates="details")

"""
Modelos de dominio para Comprobantes Emitidos
Factura (01), Boleta (03), Nota de venta (80)

PRINCIPIOS:
- El estado de facturación solo avanza por transiciones válidas
- Un comprobante ANULADO no cambia más de estado
- La reemisión genera un NUEVO comprobante hijo (parent_issued_document_id)
- La cantidad pendiente de cada ítem solo disminuye
"""
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Date, Numeric, ForeignKey, DateTime, Text, UniqueConstraint
from datetime import datetime, date
from decimal import Decimal
from .models import Base
from .enums import BillingStatus


class Person(Base):
    """Cliente (DNI, RUC, CE, PASAPORTE)"""
    __tablename__ = "persons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    branch_id: Mapped[int] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    document_type: Mapped[str] = mapped_column(String(20), nullable=False)  # PersonDocumentType
    document_number: Mapped[str] = mapped_column(String(20), nullable=False, index=True)


class IssuedDocument(Base):
    """
    Comprobante emitido

    `version` se usa como control optimista: dos escritores sobre el mismo
    comprobante no pueden confirmar ambos.
    """
    __tablename__ = "issued_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    branch_id: Mapped[int] = mapped_column(Integer, index=True)
    operation_id: Mapped[int | None] = mapped_column(ForeignKey("operations.id"), nullable=True, index=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    person_id: Mapped[int | None] = mapped_column(ForeignKey("persons.id"), nullable=True, index=True)
    parent_issued_document_id: Mapped[int | None] = mapped_column(
        ForeignKey("issued_documents.id"), nullable=True, index=True
    )

    # Numeración SUNAT
    document_type_code: Mapped[str] = mapped_column(String(2), nullable=False)  # DocumentTypeCode
    serial: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    emission_date: Mapped[date] = mapped_column(Date, default=date.today)
    currency: Mapped[str] = mapped_column(String(3), default="PEN")
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(10, 4), default=Decimal("1.0"))

    # Montos
    total_taxable: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))
    igv_percent: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("18.00"))
    igv_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))
    total_discount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))
    total_unaffected: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))
    total_exempt: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))
    total_free: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))

    # Estado SUNAT
    billing_status: Mapped[str] = mapped_column(String(30), default=BillingStatus.PROCESSING.value, nullable=False)

    # Anulación
    cancellation_reason: Mapped[str | None] = mapped_column(String(2), nullable=True)  # CancellationReason
    cancellation_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancelled_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    items = relationship(
        "IssuedDocumentItem", back_populates="issued_document",
        cascade="all, delete-orphan", order_by="IssuedDocumentItem.id"
    )
    person = relationship("Person")
    parent = relationship("IssuedDocument", remote_side=[id])

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}
    __table_args__ = (UniqueConstraint("serial", "number", name="uq_issued_document_serial_number"),)


class IssuedDocumentItem(Base):
    """
    Ítem de comprobante

    unit_value: valor unitario sin IGV
    unit_price: precio unitario con IGV
    remaining_quantity: parte aún no trasladada a un comprobante sucesor
    """
    __tablename__ = "issued_document_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    issued_document_id: Mapped[int] = mapped_column(ForeignKey("issued_documents.id"), index=True, nullable=False)
    operation_detail_id: Mapped[int | None] = mapped_column(ForeignKey("operation_details.id"), nullable=True)
    description: Mapped[str] = mapped_column(String(200), default="")

    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    remaining_quantity: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False, default=Decimal("0"))
    unit_value: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(14, 6), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0.00"))

    issued_document = relationship("IssuedDocument", back_populates="items")

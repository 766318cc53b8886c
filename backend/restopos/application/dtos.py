from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any
from datetime import date, datetime
from decimal import Decimal

from ..domain.enums import (
    PaymentMethod, TransactionType, WarningType, BillingStatus,
    DocumentTypeCode, CashType
)


class RequestContext(BaseModel):
    """Contexto explícito de cada request (reemplaza la sesión global del cliente)"""
    model_config = ConfigDict(frozen=True)

    branch_id: int
    user_id: int
    cash_register_id: Optional[int] = None
    device_id: Optional[str] = None

    def for_register(self, cash_register_id: int) -> "RequestContext":
        return self.model_copy(update={"cash_register_id": cash_register_id})


# ===== RESÚMENES DE PAGOS =====

class PaymentSummary(BaseModel):
    total_payments: int = 0
    total_income: Decimal = Decimal("0.00")
    total_expenses: Decimal = Decimal("0.00")
    pending_payments: Decimal = Decimal("0.00")
    paid_payments: Decimal = Decimal("0.00")
    cash_balance: Decimal = Decimal("0.00")
    digital_balance: Decimal = Decimal("0.00")
    bank_balance: Decimal = Decimal("0.00")


class PaymentMethodSummary(BaseModel):
    method: PaymentMethod
    total_amount: Decimal
    count: int
    percentage: Decimal


class MethodBreakdown(BaseModel):
    method_code: PaymentMethod
    method_name: str
    income: Decimal
    expense: Decimal
    net: Decimal


class UserSummary(BaseModel):
    user_id: int
    user_name: str = ""
    user_role: str = ""
    total_income: Decimal = Decimal("0.00")
    total_expense: Decimal = Decimal("0.00")
    net_total: Decimal = Decimal("0.00")
    payments_count: int = 0
    operations_count: int = 0
    dishes_count: Decimal = Decimal("0")
    has_occupied_tables: bool = False
    occupied_tables_count: int = 0
    occupied_tables_names: List[str] = []
    can_close: bool = True
    payment_methods: List[MethodBreakdown] = []


# ===== CIERRE DE CAJA =====

class ClosureWarning(BaseModel):
    type: WarningType
    message: str


class CashClosurePreview(BaseModel):
    branch_id: int
    branch_name: str = ""
    cash_register_id: int
    cash_register_name: str = ""
    next_closure_number: int
    total_payments_pending: int
    total_income: Decimal
    total_expense: Decimal
    net_total: Decimal
    can_close: bool
    preview_date: datetime
    users_summary: List[UserSummary] = []
    general_payment_methods: List[MethodBreakdown] = []
    warnings: List[ClosureWarning] = []


class CashClosureOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    branch_id: int
    cash_register_id: int
    closure_number: int
    closed_at: datetime
    total_income: Decimal
    total_expense: Decimal
    net_total: Decimal
    user_id: int
    payment_ids: List[int] = []


class CloseCashResult(BaseModel):
    success: bool
    message: str
    closure: Optional[CashClosureOut] = None
    summary: Optional[Dict[str, Any]] = None
    print_queued: bool = False
    print_error: Optional[str] = None


class CashRegisterOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    branch_id: int
    name: str
    cash_type: CashType
    current_balance: Decimal
    is_active: bool


# ===== TRANSACCIONES MANUALES =====

class ManualPaymentIn(BaseModel):
    amount: Decimal = Field(..., gt=0)
    method: PaymentMethod = PaymentMethod.CASH
    reference_number: Optional[str] = None


class ManualTransactionIn(BaseModel):
    cash_register_id: Optional[int] = None
    transaction_type: TransactionType
    payments: List[ManualPaymentIn] = Field(..., min_length=1)
    notes: Optional[str] = None


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    cash_register_id: int
    user_id: int
    amount: Decimal
    method: PaymentMethod
    transaction_type: TransactionType
    status: str
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    timestamp: datetime


class ManualTransactionResult(BaseModel):
    success: bool
    message: str
    payments: List[PaymentOut] = []
    print_queued: bool = False
    print_error: Optional[str] = None


class PrintResult(BaseModel):
    success: bool
    message: str


# ===== COMPROBANTES =====

class CancelDocumentIn(BaseModel):
    cancellation_reason: Optional[str] = None
    cancellation_description: Optional[str] = None


class BillingStatusIn(BaseModel):
    billing_status: BillingStatus


class IssuedDocumentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    serial: str
    number: int
    document_type_code: str
    billing_status: BillingStatus
    total_amount: Decimal
    total_taxable: Decimal
    igv_amount: Decimal
    total_discount: Decimal
    person_id: Optional[int] = None
    parent_issued_document_id: Optional[int] = None
    cancellation_reason: Optional[str] = None
    cancellation_description: Optional[str] = None
    cancellation_date: Optional[datetime] = None


class DocumentMutationResult(BaseModel):
    success: bool
    message: str
    issued_document: Optional[IssuedDocumentOut] = None
    print_queued: bool = False
    print_error: Optional[str] = None


class ReissueableItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    operation_detail_id: Optional[int] = None
    description: str = ""
    quantity: Decimal
    remaining_quantity: Decimal
    unit_value: Decimal
    unit_price: Decimal
    discount: Decimal = Decimal("0.00")


class ReissuanceTotals(BaseModel):
    total_amount: Decimal
    total_taxable: Decimal
    igv_amount: Decimal
    total_discount: Decimal
    total_unaffected: Decimal = Decimal("0.00")
    total_exempt: Decimal = Decimal("0.00")
    total_free: Decimal = Decimal("0.00")


class ReissueItemQuantityIn(BaseModel):
    item_id: int
    quantity: Decimal = Field(..., gt=0)


class ReissueIn(BaseModel):
    target_document_type_code: DocumentTypeCode
    serial: str = Field(..., min_length=1, max_length=10)
    person_id: Optional[int] = None
    currency: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    notes: Optional[str] = None
    items: Optional[List[ReissueItemQuantityIn]] = None  # None = todo lo pendiente


class ReissuePayload(BaseModel):
    """Datos del nuevo comprobante generado desde uno anulado"""
    parent_issued_document_id: int
    branch_id: int
    user_id: int
    document_type_code: DocumentTypeCode
    serial: str
    person_id: Optional[int] = None
    emission_date: date
    currency: str
    exchange_rate: Decimal
    igv_percent: Decimal
    totals: ReissuanceTotals
    items: List[ReissueableItem]
    notes: Optional[str] = None

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from cafepos.models.cash_flow import TransactionCategory, TransactionType


class SummaryPeriod(str, Enum):
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


class TransactionInput(BaseModel):
    type: TransactionType
    category: TransactionCategory
    amount: Decimal = Field(..., ge=0, description="Magnitude; direction comes from type.")
    description: str = ""
    order_id: Optional[UUID] = None
    items_purchased: Optional[str] = None
    payment_method: str = "CASH"
    created_by: str = "system"


class TransactionRecord(TransactionInput):
    id: UUID
    created_at: datetime


class CashFlowSummary(BaseModel):
    period: SummaryPeriod
    since: datetime
    total_inflow: Decimal
    total_outflow: Decimal
    net_flow: Decimal
    current_balance: Decimal
    transaction_count: int
    inflow_by_category: Dict[str, Decimal] = Field(default_factory=dict)
    outflow_by_category: Dict[str, Decimal] = Field(default_factory=dict)
    recent_transactions: List[TransactionRecord] = Field(default_factory=list)


class DrawerBalance(BaseModel):
    current_balance: Decimal


class SetBalanceRequest(BaseModel):
    target: Decimal
    reason: str = Field("Drawer count", min_length=1)


class InflowRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1)


class ExpenseRequest(InflowRequest):
    items_purchased: Optional[str] = None

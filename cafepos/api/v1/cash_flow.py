import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from cafepos.api.deps import get_engine
from cafepos.schemas.cash_flow import DrawerBalance, ExpenseRequest, InflowRequest, SetBalanceRequest, SummaryPeriod
from cafepos.schemas.response import SuccessResponse
from cafepos.services.engine import CafeEngine

router = APIRouter()
log = logging.getLogger(__name__)


@router.get("/transactions", response_model=SuccessResponse)
async def list_transactions(limit: Optional[int] = Query(None, ge=1), engine: CafeEngine = Depends(get_engine)):
    records = await engine.cash_flow.list_transactions(limit)
    return SuccessResponse(data=[r.model_dump(mode="json") for r in records])


@router.get("/balance", response_model=SuccessResponse)
async def get_drawer_balance(engine: CafeEngine = Depends(get_engine)):
    balance = await engine.cash_flow.balance()
    return SuccessResponse(data=DrawerBalance(current_balance=balance).model_dump(mode="json"))


@router.put("/balance", response_model=SuccessResponse)
async def set_drawer_balance(payload: SetBalanceRequest, engine: CafeEngine = Depends(get_engine)):
    """Reconciles the drawer to a counted amount by appending an adjustment."""
    adjustment = await engine.cash_flow.set_balance(payload.target, payload.reason)
    balance = await engine.cash_flow.balance()
    return SuccessResponse(data={
        "adjustment": adjustment.model_dump(mode="json") if adjustment else None,
        "current_balance": str(balance),
    })


@router.get("/summary", response_model=SuccessResponse)
async def get_summary(period: SummaryPeriod = SummaryPeriod.TODAY, engine: CafeEngine = Depends(get_engine)):
    summary = await engine.cash_flow.summary(period)
    return SuccessResponse(data=summary.model_dump(mode="json"))


@router.post("/inflows", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def record_inflow(payload: InflowRequest, engine: CafeEngine = Depends(get_engine)):
    record = await engine.cash_flow.record_inflow(payload.amount, payload.description)
    return SuccessResponse(data=record.model_dump(mode="json"))


@router.post("/expenses", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def record_expense(payload: ExpenseRequest, engine: CafeEngine = Depends(get_engine)):
    record = await engine.cash_flow.record_expense(payload.amount, payload.description, payload.items_purchased)
    return SuccessResponse(data=record.model_dump(mode="json"))

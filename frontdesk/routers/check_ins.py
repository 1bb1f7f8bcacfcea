from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from ..clock import Clock
from ..deps import get_clock, get_ledger, require_token
from ..ledger import Ledger
from ..schemas import (
    APIResponse,
    ActiveVisitorOut,
    ActiveVisitorsResponse,
    CheckInCreate,
    CheckInTimeEdit,
    CheckOutRequest,
)
from ..utils import format_stay, is_overtime, stay_seconds


router = APIRouter(prefix="/api", tags=["check_ins"], dependencies=[Depends(require_token)])


@router.get("/check_ins.active", response_model=ActiveVisitorsResponse)
def check_ins_active(
    date: Optional[str] = None,
    ledger: Ledger = Depends(get_ledger),
    clock: Clock = Depends(get_clock),
):
    now = clock.now()
    max_stay = ledger.get_settings().max_stay_time
    customers = {c.id: c for c in ledger.list_customers()}
    items = []
    for check_in in ledger.list_active_check_ins(date):
        customer = customers.get(check_in.customer_id)
        seconds = stay_seconds(check_in.check_in_time, now)
        items.append(
            ActiveVisitorOut(
                customer_id=check_in.customer_id,
                name=customer.name if customer else None,
                email=customer.email if customer else None,
                date=check_in.date,
                check_in_time=check_in.check_in_time,
                stay_seconds=seconds,
                stay=format_stay(seconds),
                overtime=is_overtime(seconds, max_stay),
            )
        )
    return {"items": items, "total": len(items), "max_stay_time": max_stay}


@router.post("/check_ins.create", response_model=ActiveVisitorOut)
def check_ins_create(payload: CheckInCreate, ledger: Ledger = Depends(get_ledger)):
    customer = ledger.get_customer(payload.customer_id)
    if not customer or customer.is_deleted:
        raise HTTPException(status_code=404, detail="Customer not found")
    if ledger.is_checked_in_today(customer.id):
        raise HTTPException(
            status_code=400,
            detail=f"{customer.name} is already checked in. Please check them out first.",
        )
    check_in = ledger.open_check_in(customer.id)
    return ActiveVisitorOut(
        customer_id=customer.id,
        name=customer.name,
        email=customer.email,
        date=check_in.date,
        check_in_time=check_in.check_in_time,
        stay_seconds=0,
        stay=format_stay(0),
        overtime=False,
    )


@router.post("/check_ins.checkout", response_model=APIResponse)
def check_ins_checkout(payload: CheckOutRequest, ledger: Ledger = Depends(get_ledger)):
    ledger.close_check_in(payload.date or ledger.today(), payload.customer_id)
    return APIResponse(message="Checked out")


@router.post("/check_ins.edit_time", response_model=APIResponse)
def check_ins_edit_time(payload: CheckInTimeEdit, ledger: Ledger = Depends(get_ledger)):
    ledger.edit_check_in_time(payload.date, payload.customer_id, payload.check_in_time)
    return APIResponse(message="Check-in time updated")

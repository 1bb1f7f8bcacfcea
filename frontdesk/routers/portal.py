from __future__ import annotations

"""
Self-service visitor portal reached by scanning the admission code.

Every route that can check someone in depends on ``require_admission``; there
is no path to the ledger from here that skips the token check.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..admission import AdmissionDecision, TOKEN_PARAM, validate_admission
from ..clock import Clock
from ..config import get_settings
from ..deps import get_clock, get_ledger, limit_public
from ..errors import (
    MSG_CHECKIN_FAILED,
    MSG_CHECKOUT_FAILED,
    STATUS_SERVICE_UNAVAILABLE,
    AdmissionRejected,
    LedgerUnavailable,
    NotFoundError,
)
from ..ledger import Ledger, RegistrationOutcome, RegistrationResult
from ..schemas import (
    APIResponse,
    AdmissionOut,
    CustomerOut,
    PortalCheckIn,
    PortalCheckInResult,
    PortalCheckOut,
    PortalConfirm,
    VisitorStatus,
)
from ..utils import format_stay, is_overtime, stay_seconds


logger = logging.getLogger("portal")

router = APIRouter(tags=["portal"], dependencies=[Depends(limit_public)])


def current_admission(
    t: Optional[str] = Query(default=None, alias=TOKEN_PARAM),
    clock: Clock = Depends(get_clock),
) -> AdmissionDecision:
    return validate_admission(t, clock.now_ms(), get_settings().admission_window_ms)


def require_admission(decision: AdmissionDecision = Depends(current_admission)) -> AdmissionDecision:
    if not decision.is_valid:
        raise AdmissionRejected(decision.status.value)
    return decision


def _welcome(result: RegistrationResult) -> str:
    name = result.customer.name
    if result.outcome is RegistrationOutcome.ALREADY_CHECKED_IN:
        return f"Welcome back {name}! You are already checked in."
    if result.outcome is RegistrationOutcome.NEEDS_CONFIRMATION:
        return "This email is registered under a different name. Please confirm it is you."
    if result.is_new:
        return f"Welcome {name}! You have been successfully checked in."
    return f"Welcome back {name}! You have been successfully checked in."


def _result_out(result: RegistrationResult) -> PortalCheckInResult:
    c = result.customer
    return PortalCheckInResult(
        outcome=result.outcome.value,
        message=_welcome(result),
        customer=CustomerOut(id=c.id, name=c.name, email=c.email, notes=None),
        is_new=result.is_new,
        input_name=result.input_name,
        check_in_time=result.check_in_time,
    )


@router.get("/checkin", response_model=AdmissionOut)
def checkin_page(
    decision: AdmissionDecision = Depends(current_admission),
    ledger: Ledger = Depends(get_ledger),
):
    """Page activation: report whether the check-in form may be used."""
    max_stay: Optional[int] = None
    try:
        max_stay = ledger.get_settings().max_stay_time
    except LedgerUnavailable:
        logger.warning("Settings unavailable while loading check-in page")
    return AdmissionOut(
        status=decision.status.value,
        form_enabled=decision.form_enabled,
        current_bucket=decision.current_bucket,
        token=decision.token,
        message=decision.message,
        max_stay_time=max_stay,
    )


@router.post("/checkin", response_model=PortalCheckInResult)
def checkin_submit(
    payload: PortalCheckIn,
    _: AdmissionDecision = Depends(require_admission),
    ledger: Ledger = Depends(get_ledger),
):
    try:
        result = ledger.register_and_check_in(payload.first_name, payload.last_name, payload.email)
    except LedgerUnavailable:
        raise HTTPException(status_code=STATUS_SERVICE_UNAVAILABLE, detail=MSG_CHECKIN_FAILED)
    return _result_out(result)


@router.post("/checkin/confirm", response_model=PortalCheckInResult)
def checkin_confirm(
    payload: PortalConfirm,
    _: AdmissionDecision = Depends(require_admission),
    ledger: Ledger = Depends(get_ledger),
):
    try:
        result = ledger.confirm_and_check_in(payload.customer_id)
    except LedgerUnavailable:
        raise HTTPException(status_code=STATUS_SERVICE_UNAVAILABLE, detail=MSG_CHECKIN_FAILED)
    return _result_out(result)


@router.get("/checkin/status", response_model=VisitorStatus)
def checkin_status(
    email: str = Query(...),
    ledger: Ledger = Depends(get_ledger),
    clock: Clock = Depends(get_clock),
):
    max_stay = ledger.get_settings().max_stay_time
    customer = ledger.find_customer_by_email(email)
    check_in_time = ledger.get_open_check_in_time(customer.id) if customer else None
    if customer is None or check_in_time is None:
        return VisitorStatus(checked_in=False, max_stay_time=max_stay)
    seconds = stay_seconds(check_in_time, clock.now())
    return VisitorStatus(
        checked_in=True,
        customer=CustomerOut(id=customer.id, name=customer.name, email=customer.email),
        check_in_time=check_in_time,
        stay_seconds=seconds,
        stay=format_stay(seconds),
        overtime=is_overtime(seconds, max_stay),
        max_stay_time=max_stay,
    )


@router.post("/checkout", response_model=APIResponse)
def checkout(payload: PortalCheckOut, ledger: Ledger = Depends(get_ledger)):
    try:
        customer = ledger.find_customer_by_email(payload.email)
        if customer is None or not ledger.is_checked_in_today(customer.id):
            raise HTTPException(status_code=404, detail="You are not checked in.")
        ledger.close_check_in(ledger.today(), customer.id)
    except (LedgerUnavailable, NotFoundError):
        raise HTTPException(status_code=STATUS_SERVICE_UNAVAILABLE, detail=MSG_CHECKOUT_FAILED)
    return APIResponse(message=f"Thank you for visiting, {customer.name}! You have been successfully checked out.")

from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field


class APIResponse(BaseModel):
    ok: bool = True
    message: Optional[str] = None


# Customers
class CustomerCreate(BaseModel):
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    notes: Optional[str] = None

    model_config = dict(str_strip_whitespace=True)


class CustomerUpdate(BaseModel):
    id: str
    name: Optional[str] = Field(default=None, min_length=1)
    # "" clears the stored address
    email: Optional[Union[EmailStr, Literal[""]]] = None
    notes: Optional[str] = None

    model_config = dict(str_strip_whitespace=True)


class CustomerAction(BaseModel):
    id: str


class CustomerOut(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    notes: Optional[str] = None

    model_config = dict(from_attributes=True)


class CustomersListResponse(BaseModel):
    items: List[CustomerOut]
    total: int


# Check-ins
class CheckInCreate(BaseModel):
    customer_id: str


class CheckOutRequest(BaseModel):
    customer_id: str
    date: Optional[str] = Field(default=None, description="YYYY-MM-DD in the venue zone; defaults to today")


class CheckInTimeEdit(BaseModel):
    customer_id: str
    date: str
    check_in_time: datetime


class ActiveVisitorOut(BaseModel):
    customer_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    date: str
    check_in_time: datetime
    stay_seconds: int
    stay: str
    overtime: bool


class ActiveVisitorsResponse(BaseModel):
    items: List[ActiveVisitorOut]
    total: int
    max_stay_time: int


# Settings
class SettingsOut(BaseModel):
    max_stay_time: int
    updated_at: Optional[datetime] = None


class SettingsUpdate(BaseModel):
    max_stay_time: int = Field(ge=0, description="Seconds")


# Lottery
class LotteryDraw(BaseModel):
    item_count: int


class LotteryShare(BaseModel):
    customer_id: str
    name: Optional[str] = None
    items: int


class LotteryResult(BaseModel):
    item_count: int
    participants: int
    results: List[LotteryShare]


# Admission codes
class IssuedCodeOut(BaseModel):
    state: str
    token: Optional[int] = None
    url: Optional[str] = None
    data_url: Optional[str] = None
    issued_at: Optional[datetime] = None
    next_rollover: Optional[datetime] = None
    countdown: Optional[str] = None
    error: Optional[str] = None


class AdmissionOut(BaseModel):
    status: str
    form_enabled: bool
    current_bucket: int
    token: Optional[int] = None
    message: Optional[str] = None
    max_stay_time: Optional[int] = None


# Visitor portal
class PortalCheckIn(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: EmailStr

    model_config = dict(str_strip_whitespace=True)


class PortalConfirm(BaseModel):
    customer_id: str


class PortalCheckOut(BaseModel):
    email: EmailStr


class PortalCheckInResult(BaseModel):
    outcome: str
    message: str
    customer: CustomerOut
    is_new: bool = False
    input_name: Optional[str] = None
    check_in_time: Optional[datetime] = None


class VisitorStatus(BaseModel):
    checked_in: bool
    customer: Optional[CustomerOut] = None
    check_in_time: Optional[datetime] = None
    stay_seconds: int = 0
    stay: str = "0h 0m 0s"
    overtime: bool = False
    max_stay_time: int

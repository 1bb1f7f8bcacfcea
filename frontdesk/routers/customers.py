from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..deps import get_ledger, require_token
from ..ledger import CustomerView, Ledger
from ..schemas import APIResponse, CustomerAction, CustomerCreate, CustomerOut, CustomerUpdate, CustomersListResponse


router = APIRouter(prefix="/api", tags=["customers"], dependencies=[Depends(require_token)])


@router.post("/customers.create", response_model=CustomerOut)
def customers_create(payload: CustomerCreate, ledger: Ledger = Depends(get_ledger)):
    email = payload.email.lower() if payload.email else None
    return _customer_out(ledger.add_customer(payload.name, email, payload.notes))


@router.post("/customers.update", response_model=CustomerOut)
def customers_update(payload: CustomerUpdate, ledger: Ledger = Depends(get_ledger)):
    fields = {}
    for field in ["name", "email", "notes"]:
        value = getattr(payload, field)
        if value is not None:
            # blank email/notes clears the field
            fields[field] = value or None
    if fields.get("email"):
        fields["email"] = fields["email"].lower()
    return _customer_out(ledger.update_customer(payload.id, **fields))


@router.post("/customers.delete", response_model=APIResponse)
def customers_delete(payload: CustomerAction, ledger: Ledger = Depends(get_ledger)):
    ledger.delete_customer(payload.id)
    return APIResponse(message="Customer deleted")


@router.get("/customers.list", response_model=CustomersListResponse)
def customers_list(
    ledger: Ledger = Depends(get_ledger),
    q: Optional[str] = Query(default=None, description="Search by name, email or notes"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=500),
):
    total = ledger.list_customers(q)
    items = total[(page - 1) * page_size : page * page_size]
    return {"items": [_customer_out(c) for c in items], "total": len(total)}


def _customer_out(c: CustomerView) -> CustomerOut:
    return CustomerOut(id=c.id, name=c.name, email=c.email, notes=c.notes)

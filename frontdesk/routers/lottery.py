from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_ledger, require_token
from ..ledger import Ledger
from ..lottery import split_items
from ..schemas import LotteryDraw, LotteryResult, LotteryShare


router = APIRouter(prefix="/api", tags=["lottery"], dependencies=[Depends(require_token)])


@router.post("/lottery.draw", response_model=LotteryResult)
def lottery_draw(payload: LotteryDraw, ledger: Ledger = Depends(get_ledger)):
    participants = [c.customer_id for c in ledger.list_active_check_ins()]
    try:
        shares = split_items(payload.item_count, participants)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    names = {c.id: c.name for c in ledger.list_customers()}
    return LotteryResult(
        item_count=payload.item_count,
        participants=len(participants),
        results=[LotteryShare(customer_id=cid, name=names.get(cid), items=n) for cid, n in shares],
    )

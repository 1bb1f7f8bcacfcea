from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_ledger, require_token
from ..ledger import Ledger
from ..schemas import SettingsOut, SettingsUpdate


router = APIRouter(prefix="/api", tags=["settings"], dependencies=[Depends(require_token)])


@router.get("/settings.get", response_model=SettingsOut)
def settings_get(ledger: Ledger = Depends(get_ledger)):
    s = ledger.get_settings()
    return SettingsOut(max_stay_time=s.max_stay_time, updated_at=s.updated_at)


@router.post("/settings.update", response_model=SettingsOut)
def settings_update(payload: SettingsUpdate, ledger: Ledger = Depends(get_ledger)):
    s = ledger.update_settings(payload.max_stay_time)
    return SettingsOut(max_stay_time=s.max_stay_time, updated_at=s.updated_at)

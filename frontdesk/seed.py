from __future__ import annotations

from .config import get_settings
from .database import SessionLocal, init_db
from .models import VenueSettings
from .ledger import SETTINGS_ID


def upsert_defaults() -> None:
    init_db()
    settings = get_settings()
    db = SessionLocal()
    try:
        if not db.get(VenueSettings, SETTINGS_ID):
            db.add(VenueSettings(id=SETTINGS_ID, max_stay_time=settings.default_max_stay_time))
        db.commit()
    finally:
        db.close()


def main() -> None:
    upsert_defaults()
    print("Seed complete.")


if __name__ == "__main__":
    main()

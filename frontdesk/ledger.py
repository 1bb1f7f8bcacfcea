from __future__ import annotations

"""
Check-in ledger: customers, per-day active check-ins and venue settings.

``Ledger`` holds the composite flows and the live-view subscriptions; concrete
backends implement the storage primitives. ``SqlLedger`` is the SQLAlchemy
backend used by the service.
"""

import abc
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterator, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .clock import Clock
from .errors import LedgerUnavailable, NotFoundError
from .models import Customer, DailyRecord, SystemLog, VenueSettings
from .subscriptions import (
    TOPIC_ACTIVE_CHECK_INS,
    TOPIC_CUSTOMERS,
    TOPIC_SETTINGS,
    Subscription,
    SubscriptionHub,
)
from .utils import parse_iso, to_iso, today_in_zone


logger = logging.getLogger("ledger")

SETTINGS_ID = "default"
CUSTOMER_FIELDS = ("name", "email", "notes")


@dataclass(frozen=True)
class CustomerView:
    id: str
    name: str
    email: Optional[str] = None
    notes: Optional[str] = None
    is_deleted: bool = False


@dataclass(frozen=True)
class CheckIn:
    customer_id: str
    check_in_time: datetime
    date: str


@dataclass(frozen=True)
class VenueSettingsView:
    max_stay_time: int
    updated_at: Optional[datetime] = None


class RegistrationOutcome(str, Enum):
    CHECKED_IN = "checked_in"
    ALREADY_CHECKED_IN = "already_checked_in"
    NEEDS_CONFIRMATION = "needs_confirmation"


@dataclass(frozen=True)
class RegistrationResult:
    outcome: RegistrationOutcome
    customer: CustomerView
    is_new: bool = False
    input_name: Optional[str] = None
    check_in_time: Optional[datetime] = None


class Ledger(abc.ABC):
    def __init__(self, clock: Clock, venue_timezone: str, default_max_stay_time: int,
                 hub: Optional[SubscriptionHub] = None) -> None:
        self.clock = clock
        self.venue_timezone = venue_timezone
        self.default_max_stay_time = default_max_stay_time
        self.hub = hub or SubscriptionHub()

    def today(self) -> str:
        return today_in_zone(self.clock.now(), self.venue_timezone)

    # Storage primitives

    @abc.abstractmethod
    def get_customer(self, customer_id: str) -> Optional[CustomerView]: ...

    @abc.abstractmethod
    def find_customer_by_email(self, email: str) -> Optional[CustomerView]: ...

    @abc.abstractmethod
    def add_customer(self, name: str, email: Optional[str] = None, notes: Optional[str] = None) -> CustomerView: ...

    @abc.abstractmethod
    def update_customer(self, customer_id: str, **fields) -> CustomerView: ...

    @abc.abstractmethod
    def delete_customer(self, customer_id: str) -> None: ...

    @abc.abstractmethod
    def list_customers(self, query: Optional[str] = None) -> List[CustomerView]: ...

    @abc.abstractmethod
    def list_active_check_ins(self, date: Optional[str] = None) -> List[CheckIn]: ...

    @abc.abstractmethod
    def open_check_in(self, customer_id: str) -> CheckIn: ...

    @abc.abstractmethod
    def close_check_in(self, date: str, customer_id: str) -> None: ...

    @abc.abstractmethod
    def edit_check_in_time(self, date: str, customer_id: str, new_time: datetime) -> None: ...

    @abc.abstractmethod
    def get_settings(self) -> VenueSettingsView: ...

    @abc.abstractmethod
    def update_settings(self, max_stay_time: int) -> VenueSettingsView: ...

    # Derived queries

    def is_checked_in_today(self, customer_id: str) -> bool:
        return any(c.customer_id == customer_id for c in self.list_active_check_ins())

    def get_open_check_in_time(self, customer_id: str) -> Optional[datetime]:
        for c in self.list_active_check_ins():
            if c.customer_id == customer_id:
                return c.check_in_time
        return None

    def register_and_check_in(self, first_name: str, last_name: str, email: str) -> RegistrationResult:
        """Self-service check-in by name and email.

        A known email with a different name is not checked in; the visitor has to
        confirm they are the existing customer first.
        """
        full_name = f"{first_name.strip()} {last_name.strip()}".strip()
        email = email.strip().lower()
        existing = self.find_customer_by_email(email)
        if existing is None:
            customer = self.add_customer(full_name, email)
            check_in = self.open_check_in(customer.id)
            return RegistrationResult(
                RegistrationOutcome.CHECKED_IN, customer, is_new=True, check_in_time=check_in.check_in_time
            )

        open_time = self.get_open_check_in_time(existing.id)
        if open_time is not None:
            return RegistrationResult(RegistrationOutcome.ALREADY_CHECKED_IN, existing, check_in_time=open_time)
        if full_name.lower() != existing.name.lower():
            return RegistrationResult(RegistrationOutcome.NEEDS_CONFIRMATION, existing, input_name=full_name)
        check_in = self.open_check_in(existing.id)
        return RegistrationResult(RegistrationOutcome.CHECKED_IN, existing, check_in_time=check_in.check_in_time)

    def confirm_and_check_in(self, customer_id: str) -> RegistrationResult:
        customer = self.get_customer(customer_id)
        if customer is None or customer.is_deleted:
            raise NotFoundError("Customer not found")
        open_time = self.get_open_check_in_time(customer.id)
        if open_time is not None:
            return RegistrationResult(RegistrationOutcome.ALREADY_CHECKED_IN, customer, check_in_time=open_time)
        check_in = self.open_check_in(customer.id)
        return RegistrationResult(RegistrationOutcome.CHECKED_IN, customer, check_in_time=check_in.check_in_time)

    # Live views

    def subscribe_active_check_ins(self, on_change: Callable[[List[CheckIn]], None]) -> Subscription:
        return self._subscribe(TOPIC_ACTIVE_CHECK_INS, on_change, self.list_active_check_ins)

    def subscribe_customers(self, on_change: Callable[[List[CustomerView]], None]) -> Subscription:
        return self._subscribe(TOPIC_CUSTOMERS, on_change, self.list_customers)

    def subscribe_settings(self, on_change: Callable[[VenueSettingsView], None]) -> Subscription:
        return self._subscribe(TOPIC_SETTINGS, on_change, self.get_settings)

    def _subscribe(self, topic: str, on_change: Callable, current: Callable) -> Subscription:
        sub = self.hub.subscribe(topic, on_change)
        on_change(current())
        return sub

    def _publish(self, topic: str, current: Callable) -> None:
        if self.hub.listener_count(topic):
            self.hub.publish(topic, current())

    def _publish_check_ins(self) -> None:
        self._publish(TOPIC_ACTIVE_CHECK_INS, self.list_active_check_ins)

    def _publish_customers(self) -> None:
        self._publish(TOPIC_CUSTOMERS, self.list_customers)

    def _publish_settings(self) -> None:
        self._publish(TOPIC_SETTINGS, self.get_settings)


def _customer_view(c: Customer) -> CustomerView:
    return CustomerView(id=c.id, name=c.name, email=c.email, notes=c.notes, is_deleted=c.is_deleted)


def _check_in_view(entry: dict, date: str) -> CheckIn:
    return CheckIn(customer_id=entry["customer_id"], check_in_time=parse_iso(entry["check_in_time"]), date=date)


class SqlLedger(Ledger):
    def __init__(self, session_factory: Callable[[], Session], clock: Clock, venue_timezone: str,
                 default_max_stay_time: int, hub: Optional[SubscriptionHub] = None) -> None:
        super().__init__(clock, venue_timezone, default_max_stay_time, hub)
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Ledger storage error: %s", exc)
            raise LedgerUnavailable(str(exc)) from exc
        finally:
            db.close()

    def _audit(self, db: Session, action: str, customer_id: str, status: str = "ok", message: Optional[str] = None) -> None:
        db.add(SystemLog(actor="ledger", action=action, entity="customer", entity_id=customer_id,
                         status=status, message=message))

    # Customers

    def get_customer(self, customer_id: str) -> Optional[CustomerView]:
        with self._session() as db:
            c = db.get(Customer, customer_id)
            return _customer_view(c) if c else None

    def find_customer_by_email(self, email: str) -> Optional[CustomerView]:
        with self._session() as db:
            c = db.execute(
                select(Customer)
                .where(func.lower(Customer.email) == email.strip().lower())
                .where(Customer.is_deleted.is_(False))
                .order_by(Customer.created_at)
            ).scalars().first()
            return _customer_view(c) if c else None

    def add_customer(self, name: str, email: Optional[str] = None, notes: Optional[str] = None) -> CustomerView:
        with self._session() as db:
            c = Customer(id=str(uuid.uuid4()), name=name.strip(), email=email or None, notes=notes or None)
            db.add(c)
            db.commit()
            db.refresh(c)
            view = _customer_view(c)
        logger.info("Added customer id=%s", view.id)
        self._publish_customers()
        return view

    def update_customer(self, customer_id: str, **fields) -> CustomerView:
        with self._session() as db:
            c = db.get(Customer, customer_id)
            if not c or c.is_deleted:
                raise NotFoundError("Customer not found")
            for field in CUSTOMER_FIELDS:
                if field in fields:
                    setattr(c, field, fields[field])
            db.add(c)
            db.commit()
            db.refresh(c)
            view = _customer_view(c)
        self._publish_customers()
        return view

    def delete_customer(self, customer_id: str) -> None:
        with self._session() as db:
            c = db.get(Customer, customer_id)
            if not c:
                raise NotFoundError("Customer not found")
            c.is_deleted = True
            c.deleted_at = datetime.utcnow()
            db.add(c)
            db.commit()
        logger.info("Soft-deleted customer id=%s", customer_id)
        self._publish_customers()

    def list_customers(self, query: Optional[str] = None) -> List[CustomerView]:
        stmt = select(Customer).where(Customer.is_deleted.is_(False))
        if query:
            pattern = f"%{query.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Customer.name).like(pattern),
                    func.lower(Customer.email).like(pattern),
                    func.lower(Customer.notes).like(pattern),
                )
            )
        with self._session() as db:
            rows = db.execute(stmt.order_by(Customer.name)).scalars().all()
            return [_customer_view(c) for c in rows]

    # Check-ins

    def list_active_check_ins(self, date: Optional[str] = None) -> List[CheckIn]:
        date = date or self.today()
        with self._session() as db:
            record = db.get(DailyRecord, date)
            if not record:
                return []
            return [_check_in_view(e, date) for e in (record.active_check_ins or [])]

    def open_check_in(self, customer_id: str) -> CheckIn:
        now = self.clock.now()
        date = today_in_zone(now, self.venue_timezone)
        entry = {"customer_id": customer_id, "check_in_time": to_iso(now)}
        with self._session() as db:
            record = db.get(DailyRecord, date)
            if record is None:
                logger.info("Creating daily record date=%s", date)
                record = DailyRecord(date=date, created_at=to_iso(now), active_check_ins=[])
                db.add(record)
            record.active_check_ins = list(record.active_check_ins or []) + [entry]
            self._audit(db, "checkin", customer_id)
            db.commit()
        logger.info("Check-in customer_id=%s date=%s", customer_id, date)
        self._publish_check_ins()
        return _check_in_view(entry, date)

    def close_check_in(self, date: str, customer_id: str) -> None:
        with self._session() as db:
            record = db.get(DailyRecord, date)
            if record is None:
                logger.error("Daily record not found for date=%s", date)
                raise NotFoundError("Daily record not found")
            record.active_check_ins = [
                e for e in (record.active_check_ins or []) if e["customer_id"] != customer_id
            ]
            self._audit(db, "checkout", customer_id)
            db.commit()
        logger.info("Check-out customer_id=%s date=%s", customer_id, date)
        self._publish_check_ins()

    def edit_check_in_time(self, date: str, customer_id: str, new_time: datetime) -> None:
        with self._session() as db:
            record = db.get(DailyRecord, date)
            if record is None:
                logger.error("Daily record not found for date=%s", date)
                raise NotFoundError("Daily record not found")
            updated = []
            for e in record.active_check_ins or []:
                if e["customer_id"] == customer_id:
                    e = {**e, "check_in_time": to_iso(new_time)}
                updated.append(e)
            record.active_check_ins = updated
            self._audit(db, "edit_checkin_time", customer_id, message=to_iso(new_time))
            db.commit()
        self._publish_check_ins()

    # Settings

    def get_settings(self) -> VenueSettingsView:
        with self._session() as db:
            row = db.get(VenueSettings, SETTINGS_ID)
            if not row:
                return VenueSettingsView(max_stay_time=self.default_max_stay_time)
            return VenueSettingsView(max_stay_time=row.max_stay_time, updated_at=row.updated_at)

    def update_settings(self, max_stay_time: int) -> VenueSettingsView:
        with self._session() as db:
            row = db.get(VenueSettings, SETTINGS_ID)
            if row is None:
                row = VenueSettings(id=SETTINGS_ID, max_stay_time=max_stay_time)
            row.max_stay_time = max_stay_time
            db.add(row)
            db.commit()
            db.refresh(row)
            view = VenueSettingsView(max_stay_time=row.max_stay_time, updated_at=row.updated_at)
        self._publish_settings()
        return view

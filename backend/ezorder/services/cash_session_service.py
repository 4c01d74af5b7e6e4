# Overview: Service-layer operations for cash sessions (caja); open, adjust, close and queries.

"""
Cash Session (Caja) Management

WHY: A caja is one period of cash accountability for one restaurant.
Closing it compares the system's figures with what the cashier counted.

STATE MACHINE (per restaurant):

    [no session] --open()--> [OPEN] --adjust()--> [OPEN]
    [OPEN] --close()--> [CLOSED]   (terminal)

DESIGN PRINCIPLES:
- At most one open session per restaurant. The lookup before insert is
  only a friendly fast path; the partial unique index
  uq_cash_sessions_one_open_per_restaurant is what enforces it.
- Close runs exactly once: the final write is conditional on
  state = 'open' and an affected-row count of 0 means "already closed".
- Every input is parsed and validated before anything is written.
- If the final close write fails the session stays open and can be retried.
- Advisory checks on open (previous close unbalanced, closed earlier
  today) are logged and returned as warnings, never blocking.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from decimal import Decimal
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import CashSession, Restaurant
from ..models.cash import (
    CASH_SESSION_OPEN,
    CASH_SESSION_CLOSED,
    RECONCILIATION_BALANCED,
    RECONCILIATION_UNBALANCED,
)
from ..validation import (
    CENT,
    is_missing,
    parse_int,
    parse_money,
    parse_optional_text,
    pick,
    to_money,
)
from ezorder.time_utils import (
    business_date,
    end_of_business_day,
    start_of_business_day,
    utcnow,
)

from .auth_service import get_display_names, get_restaurant_names
from .authorization_service import Principal
from .ledger_service import LedgerService
from .reconciliation import ReconciliationInput, build_report, reconcile
from .record_store import RecordStore
from .restaurant_access_service import (
    can_access_restaurant,
    get_accessible_restaurant_ids,
    require_restaurant_access,
)


logger = logging.getLogger(__name__)

NOTES_MAX_LENGTH = 1000
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

ZERO = Decimal("0.00")


def _fmt(value) -> str | None:
    return None if value is None else f"{to_money(value):.2f}"


def parse_pagination(page, limit) -> tuple[int, int]:
    page = parse_int(page, "page", required=False, minimum=1) or 1
    limit = parse_int(limit, "limit", required=False, minimum=1) or DEFAULT_PAGE_SIZE
    if limit > MAX_PAGE_SIZE:
        raise ValidationError(f"limit cannot exceed {MAX_PAGE_SIZE}")
    return page, limit


def parse_state(value) -> str | None:
    if value is None or value == "":
        return None
    if value not in (CASH_SESSION_OPEN, CASH_SESSION_CLOSED):
        raise ValidationError("state must be 'open' or 'closed'")
    return value


class CashSessionManager:
    """
    Owns the open/adjust/close lifecycle of cash sessions.

    The record store is chosen by the caller: an elevated store for
    SuperAdmins, a store scoped to the caller's restaurants otherwise.
    """

    def __init__(
        self,
        store: RecordStore,
        *,
        ledger: LedgerService | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.ledger = ledger or LedgerService(store)
        self.clock = clock

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    def current_session(self, restaurant_id: int) -> CashSession | None:
        return self.store.find_one(
            CashSession,
            {"restaurant_id": restaurant_id, "state": CASH_SESSION_OPEN},
            order_by="opened_at",
            descending=True,
        )

    def _session_for_caller(self, principal: Principal, session_id: int, *, state: str | None = None) -> CashSession:
        filters = {"id": session_id}
        if state is not None:
            filters["state"] = state
        session = self.store.find_one(CashSession, filters)

        # Out-of-scope and missing look the same to the caller.
        if not session or not can_access_restaurant(self.store, principal, session.restaurant_id):
            if state == CASH_SESSION_OPEN:
                raise NotFoundError("No open cash session found with that id")
            raise NotFoundError("Cash session not found")
        return session

    def get_session(self, principal: Principal, session_id: int) -> CashSession:
        return self._session_for_caller(principal, session_id)

    def get_current(self, principal: Principal, restaurant_id: int) -> CashSession | None:
        require_restaurant_access(self.store, principal, restaurant_id)
        return self.current_session(restaurant_id)

    # =========================================================================
    # OPEN
    # =========================================================================

    def _advisory_warnings(self, restaurant_id: int) -> list[str]:
        """Observational checks on the most recently closed session."""
        last_closed = self.store.find_one(
            CashSession,
            {"restaurant_id": restaurant_id, "state": CASH_SESSION_CLOSED},
            order_by="closed_at",
            descending=True,
        )
        if not last_closed:
            return []

        warnings = []
        if last_closed.delta_total is not None and abs(to_money(last_closed.delta_total)) > CENT:
            logger.warning(
                "Restaurant %s: previous cash session %s closed unbalanced (delta_total=%s)",
                restaurant_id, last_closed.id, _fmt(last_closed.delta_total),
            )
            warnings.append(
                f"The previous cash session did not balance (difference {_fmt(last_closed.delta_total)})"
            )

        if last_closed.closed_at and business_date(last_closed.closed_at) == business_date(self.clock()):
            logger.warning(
                "Restaurant %s: reopening cash after session %s was closed today",
                restaurant_id, last_closed.id,
            )
            warnings.append("A cash session was already closed today for this restaurant")

        return warnings

    def open_session(
        self,
        principal: Principal,
        restaurant_id,
        opening_balance,
        notes=None,
    ) -> tuple[CashSession, list[str]]:
        """
        Open a new cash session.

        Returns (session, warnings). Raises ConflictError carrying
        existing_session when the restaurant already has one open.
        """
        restaurant_id = parse_int(restaurant_id, "restaurant_id", minimum=1)
        opening = parse_money(opening_balance, "opening_balance")
        notes = parse_optional_text(notes, "notes", max_length=NOTES_MAX_LENGTH)

        if not self.store.get(Restaurant, restaurant_id):
            raise NotFoundError("Restaurant not found")

        require_restaurant_access(self.store, principal, restaurant_id)

        existing = self.current_session(restaurant_id)
        if existing:
            raise ConflictError(
                "A cash session is already open for this restaurant. Close it before opening a new one.",
                existing_session=existing.identity(),
            )

        warnings = self._advisory_warnings(restaurant_id)

        try:
            session = self.store.insert(CashSession, {
                "restaurant_id": restaurant_id,
                "opened_by_user_id": principal.id,
                "state": CASH_SESSION_OPEN,
                "opening_balance": opening,
                "accrued_other_income": ZERO,
                "accrued_other_expense": ZERO,
                "notes": notes,
                "opened_at": self.clock(),
            })
            self.store.commit()
        except IntegrityError:
            # Lost the race to a concurrent open() for the same restaurant
            self.store.rollback()
            existing = self.current_session(restaurant_id)
            raise ConflictError(
                "A cash session is already open for this restaurant. Close it before opening a new one.",
                existing_session=existing.identity() if existing else None,
            )

        logger.info(
            "Cash session %s opened for restaurant %s by user %s (opening_balance=%s)",
            session.id, restaurant_id, principal.id, _fmt(opening),
        )
        return session, warnings

    # =========================================================================
    # ADJUST
    # =========================================================================

    def adjust_session(self, principal: Principal, session_id: int, payload: dict) -> CashSession:
        """Partial update of accrued income/expense and notes on an open session."""
        session = self._session_for_caller(principal, session_id)

        patch = {}
        for field in ("accrued_other_income", "accrued_other_expense"):
            value = pick(payload, field)
            if not is_missing(value):
                patch[field] = parse_money(value, field)

        notes = pick(payload, "notes")
        if not is_missing(notes):
            patch["notes"] = parse_optional_text(notes, "notes", max_length=NOTES_MAX_LENGTH)

        if not patch:
            raise ValidationError("No fields to update")

        if not session.is_open:
            raise ConflictError("Cash session is already closed")

        affected = self.store.update(
            CashSession,
            {"id": session_id, "state": CASH_SESSION_OPEN},
            patch,
        )
        if not affected:
            self.store.rollback()
            raise ConflictError("Cash session is already closed")

        self.store.commit()
        self.store.refresh(session)
        return session

    # =========================================================================
    # CLOSE
    # =========================================================================

    def close_session(self, principal: Principal, session_id: int, payload: dict) -> tuple[CashSession, dict]:
        """
        Close an open session and reconcile it against the ledger.

        The window runs from the start of the civil day the session was
        opened on to the end of the current civil day.

        Returns (session, reconciliation_report).
        """
        session = self._session_for_caller(principal, session_id, state=CASH_SESSION_OPEN)

        declared_cash = parse_money(payload.get("declared_cash"), "declared_cash")
        declared_pos = parse_money(payload.get("declared_pos"), "declared_pos", required=False)
        declared_transfer = parse_money(payload.get("declared_transfer"), "declared_transfer", required=False)
        declared_other_expense = parse_money(
            payload.get("declared_other_expense"), "declared_other_expense", required=False
        )
        declared_cash_sales = parse_money(payload.get("declared_cash_sales"), "declared_cash_sales", required=False)
        notes = parse_optional_text(payload.get("notes"), "notes", max_length=NOTES_MAX_LENGTH)

        now = self.clock()
        window_start = start_of_business_day(business_date(session.opened_at))
        window_end = end_of_business_day(business_date(now))

        sales = self.ledger.sales_totals(session.restaurant_id, window_start, window_end)
        expenses_total = self.ledger.expenses_total(session.restaurant_id, window_start, window_end)

        data = ReconciliationInput(
            opening_balance=to_money(session.opening_balance),
            system_cash_sales=sales.cash,
            system_pos_sales=sales.pos,
            system_transfer_sales=sales.transfer,
            system_expenses=expenses_total,
            accrued_other_income=to_money(session.accrued_other_income),
            accrued_other_expense=to_money(session.accrued_other_expense),
            declared_cash=declared_cash,
            declared_pos=declared_pos,
            declared_transfer=declared_transfer,
            declared_expenses=declared_other_expense,
            declared_cash_sales=declared_cash_sales,
        )
        result = reconcile(data)

        patch = {
            "state": CASH_SESSION_CLOSED,
            "closed_at": now,
            "closed_by_user_id": principal.id,
            "declared_cash": declared_cash,
            "declared_pos": declared_pos,
            "declared_transfer": declared_transfer,
            "declared_other_expense": declared_other_expense,
            "declared_cash_sales": declared_cash_sales,
            "system_cash_expected": result.system_cash_expected,
            "system_cash_sales": sales.cash,
            "system_pos_sales": sales.pos,
            "system_transfer_sales": sales.transfer,
            "system_total_sales": sales.total,
            "system_expenses": expenses_total,
            "delta_cash": result.delta_cash,
            "delta_pos": result.delta_pos,
            "delta_transfer": result.delta_transfer,
            "delta_expenses": result.delta_expenses,
            "delta_cash_sales": result.delta_cash_sales,
            "delta_total": result.delta_total,
            "reconciliation_state": RECONCILIATION_BALANCED if result.balanced else RECONCILIATION_UNBALANCED,
        }
        if notes is not None:
            patch["notes"] = notes

        try:
            affected = self.store.update(
                CashSession,
                {"id": session_id, "state": CASH_SESSION_OPEN},
                patch,
            )
            if not affected:
                self.store.rollback()
                raise ConflictError("Cash session was already closed")
            self.store.commit()
        except SQLAlchemyError:
            self.store.rollback()
            logger.exception("Failed to persist close of cash session %s; session left open", session_id)
            raise

        self.store.refresh(session)

        log = logger.info if result.balanced else logger.warning
        log(
            "Cash session %s closed for restaurant %s: %s (delta_cash=%s, delta_total=%s)",
            session.id, session.restaurant_id, patch["reconciliation_state"],
            _fmt(result.delta_cash), _fmt(result.delta_total),
        )
        return session, build_report(data, result)

    # =========================================================================
    # LISTINGS & SUMMARY
    # =========================================================================

    def _paginate(self, filters: dict, page, limit) -> dict:
        page, limit = parse_pagination(page, limit)
        total = self.store.count(CashSession, filters)
        sessions = self.store.find(
            CashSession,
            filters,
            order_by="opened_at",
            descending=True,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return {
            "sessions": self.serialize(sessions),
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit) if total else 0,
            },
        }

    @staticmethod
    def _date_filters(filters: dict, date_from: date | None, date_to: date | None) -> dict:
        if date_from and date_to and date_from > date_to:
            raise ValidationError("date_from must be on or before date_to")
        if date_from:
            filters["opened_at__gte"] = start_of_business_day(date_from)
        if date_to:
            filters["opened_at__lte"] = end_of_business_day(date_to)
        return filters

    def list_for_restaurant(
        self,
        principal: Principal,
        restaurant_id: int,
        *,
        page=1,
        limit=DEFAULT_PAGE_SIZE,
        state=None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> dict:
        require_restaurant_access(self.store, principal, restaurant_id)
        filters = {"restaurant_id": restaurant_id}
        state = parse_state(state)
        if state:
            filters["state"] = state
        self._date_filters(filters, date_from, date_to)
        return self._paginate(filters, page, limit)

    def list_all(
        self,
        principal: Principal,
        *,
        restaurant_id: int | None = None,
        page=1,
        limit=DEFAULT_PAGE_SIZE,
        state=None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> dict:
        """Sessions across every restaurant the caller can reach."""
        filters = {}
        if restaurant_id is not None:
            require_restaurant_access(self.store, principal, restaurant_id)
            filters["restaurant_id"] = restaurant_id
        else:
            allowed = get_accessible_restaurant_ids(self.store, principal)
            if allowed is not None:
                filters["restaurant_id__in"] = allowed
        state = parse_state(state)
        if state:
            filters["state"] = state
        self._date_filters(filters, date_from, date_to)
        return self._paginate(filters, page, limit)

    def list_open(self, principal: Principal, *, restaurant_id: int | None = None) -> list[dict]:
        filters = {"state": CASH_SESSION_OPEN}
        if restaurant_id is not None:
            require_restaurant_access(self.store, principal, restaurant_id)
            filters["restaurant_id"] = restaurant_id
        else:
            allowed = get_accessible_restaurant_ids(self.store, principal)
            if allowed is not None:
                filters["restaurant_id__in"] = allowed
        sessions = self.store.find(CashSession, filters, order_by="opened_at", descending=True)
        return self.serialize(sessions)

    def summary(self, principal: Principal, restaurant_id: int, day: date | None = None) -> dict:
        """
        Day summary for the restaurant's open session.

        With no open session every figure is zero and current_session is null.
        """
        require_restaurant_access(self.store, principal, restaurant_id)

        day = day or business_date(self.clock())
        current = self.current_session(restaurant_id)
        if not current:
            return {
                "date": day.isoformat(),
                "current_session": None,
                "sales": {"cash": "0.00", "pos": "0.00", "transfer": "0.00", "other": "0.00", "total": "0.00"},
                "expenses": [],
                "total_expenses": "0.00",
                "accrued_other_income": "0.00",
                "accrued_other_expense": "0.00",
                "opening_balance": "0.00",
                "difference": "0.00",
            }

        start, end = start_of_business_day(day), end_of_business_day(day)
        sales = self.ledger.sales_totals(restaurant_id, start, end)
        expenses = self.ledger.expenses(restaurant_id, start, end)
        total_expenses = sum((to_money(e.amount) for e in expenses), ZERO)

        opening = to_money(current.opening_balance)
        declared = to_money(current.declared_cash) if current.declared_cash is not None else ZERO
        difference = declared - opening - sales.total

        return {
            "date": day.isoformat(),
            "current_session": self.serialize([current])[0],
            "sales": sales.to_dict(),
            "expenses": [e.to_dict() for e in expenses],
            "total_expenses": _fmt(total_expenses),
            "accrued_other_income": _fmt(current.accrued_other_income),
            "accrued_other_expense": _fmt(current.accrued_other_expense),
            "opening_balance": _fmt(opening),
            "difference": _fmt(difference),
        }

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def serialize(self, sessions: list[CashSession]) -> list[dict]:
        """to_dict() plus opened_by_name / restaurant_name (null when lookups fail)."""
        names = get_display_names(self.store, (s.opened_by_user_id for s in sessions))
        restaurants = get_restaurant_names(self.store, (s.restaurant_id for s in sessions))
        out = []
        for s in sessions:
            data = s.to_dict()
            data["opened_by_name"] = names.get(s.opened_by_user_id)
            data["restaurant_name"] = restaurants.get(s.restaurant_id)
            out.append(data)
        return out

    def serialize_one(self, session: CashSession) -> dict:
        return self.serialize([session])[0]

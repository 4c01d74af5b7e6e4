# Overview: Read-only sales/expense aggregation used by cash reconciliation.

"""
Sales & Expense Ledger Queries

WHY: Reconciliation needs the day's paid sales split by payment channel
and the day's expenses. These are the only variable-latency steps of a
close, so they run under a bounded statement timeout and any failure is
reported as LedgerUnavailableError (never as "unbalanced").
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from flask import current_app, has_app_context
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError

from ..errors import LedgerUnavailableError
from ..models import Sale, Expense
from ..models.ledger import PAYMENT_METHOD_CASH, PAYMENT_METHOD_CARD, PAYMENT_METHOD_TRANSFER
from ..validation import to_money

from .record_store import RecordStore


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5000


@dataclass(frozen=True)
class SalesTotals:
    cash: Decimal
    pos: Decimal
    transfer: Decimal
    other: Decimal

    @property
    def total(self) -> Decimal:
        return self.cash + self.pos + self.transfer + self.other

    def to_dict(self) -> dict:
        return {
            "cash": f"{self.cash:.2f}",
            "pos": f"{self.pos:.2f}",
            "transfer": f"{self.transfer:.2f}",
            "other": f"{self.other:.2f}",
            "total": f"{self.total:.2f}",
        }


def _timeout_ms() -> int:
    if has_app_context():
        return int(current_app.config.get("LEDGER_QUERY_TIMEOUT_MS", DEFAULT_TIMEOUT_MS))
    return DEFAULT_TIMEOUT_MS


def _apply_timeout(store: RecordStore) -> None:
    # SQLite has no statement timeout; PostgreSQL scopes it to the transaction.
    if store.dialect_name == "postgresql":
        store.session.execute(text(f"SET LOCAL statement_timeout = {_timeout_ms():d}"))


class LedgerService:
    def __init__(self, store: RecordStore):
        self.store = store

    def sales_totals(self, restaurant_id: int, start: datetime, end: datetime) -> SalesTotals:
        """Paid sales in [start, end], partitioned by payment method."""
        filters = {
            "restaurant_id": restaurant_id,
            "paid": True,
            "created_at__gte": start,
            "created_at__lte": end,
        }
        try:
            _apply_timeout(self.store)
            rows = (
                self.store.query(Sale, filters)
                .with_entities(Sale.payment_method_id, func.coalesce(func.sum(Sale.total), 0))
                .group_by(Sale.payment_method_id)
                .all()
            )
        except SQLAlchemyError as exc:
            logger.exception("Sales aggregation failed for restaurant %s", restaurant_id)
            raise LedgerUnavailableError("Reconciliation temporarily unavailable") from exc

        buckets = {
            PAYMENT_METHOD_CASH: Decimal("0.00"),
            PAYMENT_METHOD_CARD: Decimal("0.00"),
            PAYMENT_METHOD_TRANSFER: Decimal("0.00"),
        }
        other = Decimal("0.00")
        for method_id, amount in rows:
            if method_id in buckets:
                buckets[method_id] += to_money(amount)
            else:
                other += to_money(amount)

        return SalesTotals(
            cash=buckets[PAYMENT_METHOD_CASH],
            pos=buckets[PAYMENT_METHOD_CARD],
            transfer=buckets[PAYMENT_METHOD_TRANSFER],
            other=other,
        )

    def expenses(self, restaurant_id: int, start: datetime, end: datetime) -> list[Expense]:
        try:
            _apply_timeout(self.store)
            return self.store.find(
                Expense,
                {
                    "restaurant_id": restaurant_id,
                    "expense_date__gte": start,
                    "expense_date__lte": end,
                },
                order_by="expense_date",
            )
        except SQLAlchemyError as exc:
            logger.exception("Expense lookup failed for restaurant %s", restaurant_id)
            raise LedgerUnavailableError("Reconciliation temporarily unavailable") from exc

    def expenses_total(self, restaurant_id: int, start: datetime, end: datetime) -> Decimal:
        filters = {
            "restaurant_id": restaurant_id,
            "expense_date__gte": start,
            "expense_date__lte": end,
        }
        try:
            _apply_timeout(self.store)
            total = (
                self.store.query(Expense, filters)
                .with_entities(func.coalesce(func.sum(Expense.amount), 0))
                .scalar()
            )
        except SQLAlchemyError as exc:
            logger.exception("Expense aggregation failed for restaurant %s", restaurant_id)
            raise LedgerUnavailableError("Reconciliation temporarily unavailable") from exc
        return to_money(total)

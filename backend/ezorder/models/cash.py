from __future__ import annotations

from ..extensions import db
from ezorder.time_utils import to_utc_z


CASH_SESSION_OPEN = "open"
CASH_SESSION_CLOSED = "closed"

RECONCILIATION_BALANCED = "balanced"
RECONCILIATION_UNBALANCED = "unbalanced"


def _money(value):
    return f"{value:.2f}" if value is not None else None


class CashSession(db.Model):
    """
    Cash register session (caja) for one restaurant.

    LIFECYCLE:
    - open: till is active, accrued income/expense and notes may be adjusted
    - closed: declared counts recorded, system figures and deltas frozen

    INVARIANT: at most one open session per restaurant. Enforced by the
    partial unique index below; the service-level check only gives a
    friendlier error before hitting it.

    IMMUTABLE: Once closed, session cannot be reopened or modified.
    """
    __tablename__ = "cash_sessions"
    __restaurant_scoped__ = True
    __table_args__ = (
        db.Index(
            "uq_cash_sessions_one_open_per_restaurant",
            "restaurant_id",
            unique=True,
            sqlite_where=db.text("state = 'open'"),
            postgresql_where=db.text("state = 'open'"),
        ),
        db.Index("ix_cash_sessions_restaurant_opened", "restaurant_id", "opened_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    opened_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    state = db.Column(db.String(16), nullable=False, default=CASH_SESSION_OPEN, index=True)

    opening_balance = db.Column(db.Numeric(12, 2), nullable=False)
    accrued_other_income = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    accrued_other_expense = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Declared by the user at close
    declared_cash = db.Column(db.Numeric(12, 2), nullable=True)
    declared_pos = db.Column(db.Numeric(12, 2), nullable=True)
    declared_transfer = db.Column(db.Numeric(12, 2), nullable=True)
    declared_other_expense = db.Column(db.Numeric(12, 2), nullable=True)
    declared_cash_sales = db.Column(db.Numeric(12, 2), nullable=True)

    # Computed from the sales/expense ledger at close
    system_cash_expected = db.Column(db.Numeric(12, 2), nullable=True)
    system_cash_sales = db.Column(db.Numeric(12, 2), nullable=True)
    system_pos_sales = db.Column(db.Numeric(12, 2), nullable=True)
    system_transfer_sales = db.Column(db.Numeric(12, 2), nullable=True)
    system_total_sales = db.Column(db.Numeric(12, 2), nullable=True)
    system_expenses = db.Column(db.Numeric(12, 2), nullable=True)

    # declared - system; null when the figure was not declared
    delta_cash = db.Column(db.Numeric(12, 2), nullable=True)
    delta_pos = db.Column(db.Numeric(12, 2), nullable=True)
    delta_transfer = db.Column(db.Numeric(12, 2), nullable=True)
    delta_expenses = db.Column(db.Numeric(12, 2), nullable=True)
    delta_cash_sales = db.Column(db.Numeric(12, 2), nullable=True)
    delta_total = db.Column(db.Numeric(12, 2), nullable=True)

    reconciliation_state = db.Column(db.String(16), nullable=True)  # balanced, unbalanced

    restaurant = db.relationship("Restaurant", backref=db.backref("cash_sessions", lazy=True))
    opened_by = db.relationship("User", foreign_keys=[opened_by_user_id])
    closed_by = db.relationship("User", foreign_keys=[closed_by_user_id])

    @property
    def is_open(self) -> bool:
        return self.state == CASH_SESSION_OPEN

    def identity(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "opened_by_user_id": self.opened_by_user_id,
            "opened_at": to_utc_z(self.opened_at),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "opened_by_user_id": self.opened_by_user_id,
            "closed_by_user_id": self.closed_by_user_id,
            "state": self.state,
            "opening_balance": _money(self.opening_balance),
            "accrued_other_income": _money(self.accrued_other_income),
            "accrued_other_expense": _money(self.accrued_other_expense),
            "notes": self.notes,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "declared_cash": _money(self.declared_cash),
            "declared_pos": _money(self.declared_pos),
            "declared_transfer": _money(self.declared_transfer),
            "declared_other_expense": _money(self.declared_other_expense),
            "declared_cash_sales": _money(self.declared_cash_sales),
            "system_cash_expected": _money(self.system_cash_expected),
            "system_cash_sales": _money(self.system_cash_sales),
            "system_pos_sales": _money(self.system_pos_sales),
            "system_transfer_sales": _money(self.system_transfer_sales),
            "system_total_sales": _money(self.system_total_sales),
            "system_expenses": _money(self.system_expenses),
            "delta_cash": _money(self.delta_cash),
            "delta_pos": _money(self.delta_pos),
            "delta_transfer": _money(self.delta_transfer),
            "delta_expenses": _money(self.delta_expenses),
            "delta_cash_sales": _money(self.delta_cash_sales),
            "delta_total": _money(self.delta_total),
            "reconciliation_state": self.reconciliation_state,
        }

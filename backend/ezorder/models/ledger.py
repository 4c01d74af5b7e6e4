from __future__ import annotations

from ..extensions import db
from ezorder.time_utils import to_utc_z


# payment_method_id values used by reconciliation
PAYMENT_METHOD_CASH = 1
PAYMENT_METHOD_CARD = 2
PAYMENT_METHOD_TRANSFER = 3


class Sale(db.Model):
    """
    Paid order as seen by the cash ledger (read-only here).

    Orders are written by the order workflow; reconciliation only reads
    paid rows and partitions them by payment method.
    """
    __tablename__ = "sales"
    __restaurant_scoped__ = True
    __table_args__ = (
        db.Index("ix_sales_restaurant_created", "restaurant_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    payment_method_id = db.Column(db.Integer, nullable=True)
    paid = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "total": f"{self.total:.2f}" if self.total is not None else None,
            "payment_method_id": self.payment_method_id,
            "paid": self.paid,
            "created_at": to_utc_z(self.created_at),
        }


class Expense(db.Model):
    """Restaurant expense (read-only here)."""
    __tablename__ = "expenses"
    __restaurant_scoped__ = True
    __table_args__ = (
        db.Index("ix_expenses_restaurant_date", "restaurant_id", "expense_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    expense_date = db.Column(db.DateTime(timezone=True), nullable=False)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "amount": f"{self.amount:.2f}" if self.amount is not None else None,
            "description": self.description,
            "expense_date": to_utc_z(self.expense_date),
            "created_by_user_id": self.created_by_user_id,
        }

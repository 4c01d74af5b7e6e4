# Overview: Pure reconciliation math for closing a cash session (no database access).

"""
Cash Reconciliation Engine

WHY: Closing a till compares what the system says should be there with
what the cashier counted. Kept free of I/O so it can be tested directly.

RULES:
- expected cash = opening + cash sales + accrued other income - expenses
- delta = declared - system, per channel
- only declared_cash is mandatory; an undeclared channel has a null delta
  and is left out of the verdict entirely
- balanced iff every non-null delta is within one cent (absolute)
- delta_total = cash + pos + transfer - expenses (null deltas count as 0)
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..validation import CENT, to_money


TOLERANCE = CENT


@dataclass(frozen=True)
class ReconciliationInput:
    opening_balance: Decimal
    system_cash_sales: Decimal
    system_pos_sales: Decimal
    system_transfer_sales: Decimal
    system_expenses: Decimal
    declared_cash: Decimal
    accrued_other_income: Decimal = Decimal("0.00")
    accrued_other_expense: Decimal = Decimal("0.00")
    declared_pos: Decimal | None = None
    declared_transfer: Decimal | None = None
    declared_expenses: Decimal | None = None
    declared_cash_sales: Decimal | None = None


@dataclass(frozen=True)
class ReconciliationResult:
    system_cash_expected: Decimal
    delta_cash: Decimal
    delta_pos: Decimal | None
    delta_transfer: Decimal | None
    delta_expenses: Decimal | None
    delta_cash_sales: Decimal | None
    delta_total: Decimal
    balanced: bool
    message: str

    @property
    def deltas(self) -> dict:
        return {
            "cash": self.delta_cash,
            "pos": self.delta_pos,
            "transfer": self.delta_transfer,
            "expenses": self.delta_expenses,
            "cash_sales": self.delta_cash_sales,
        }


def _delta(declared: Decimal | None, system: Decimal) -> Decimal | None:
    if declared is None:
        return None
    return to_money(declared) - to_money(system)


def within_tolerance(delta: Decimal | None) -> bool:
    return delta is None or abs(delta) <= TOLERANCE


def _message(balanced: bool, delta_cash: Decimal) -> str:
    if balanced:
        return "Cash register balanced"
    if abs(delta_cash) <= TOLERANCE:
        return "Cash register did not balance: check card, transfer and expense figures"
    direction = "over" if delta_cash > 0 else "short"
    return f"Cash register did not balance: {abs(delta_cash):.2f} {direction}"


def reconcile(data: ReconciliationInput) -> ReconciliationResult:
    expected = to_money(
        to_money(data.opening_balance)
        + to_money(data.system_cash_sales)
        + to_money(data.accrued_other_income)
        - to_money(data.system_expenses)
    )

    delta_cash = to_money(data.declared_cash) - expected
    delta_pos = _delta(data.declared_pos, data.system_pos_sales)
    delta_transfer = _delta(data.declared_transfer, data.system_transfer_sales)
    delta_expenses = _delta(data.declared_expenses, data.system_expenses)
    delta_cash_sales = _delta(data.declared_cash_sales, data.system_cash_sales)

    balanced = all(
        within_tolerance(d)
        for d in (delta_cash, delta_pos, delta_transfer, delta_expenses, delta_cash_sales)
    )

    delta_total = (
        delta_cash
        + (delta_pos or Decimal("0.00"))
        + (delta_transfer or Decimal("0.00"))
        - (delta_expenses or Decimal("0.00"))
    )

    return ReconciliationResult(
        system_cash_expected=expected,
        delta_cash=delta_cash,
        delta_pos=delta_pos,
        delta_transfer=delta_transfer,
        delta_expenses=delta_expenses,
        delta_cash_sales=delta_cash_sales,
        delta_total=delta_total,
        balanced=balanced,
        message=_message(balanced, delta_cash),
    )


def _fmt(value: Decimal | None) -> str | None:
    return None if value is None else f"{to_money(value):.2f}"


def build_report(data: ReconciliationInput, result: ReconciliationResult) -> dict:
    """Per-channel expected/declared/delta breakdown returned to the caller."""
    channels = {
        "cash": (result.system_cash_expected, data.declared_cash, result.delta_cash),
        "pos": (data.system_pos_sales, data.declared_pos, result.delta_pos),
        "transfer": (data.system_transfer_sales, data.declared_transfer, result.delta_transfer),
        "expenses": (data.system_expenses, data.declared_expenses, result.delta_expenses),
        "cash_sales": (data.system_cash_sales, data.declared_cash_sales, result.delta_cash_sales),
    }
    return {
        "balanced": result.balanced,
        "reconciliation_state": "balanced" if result.balanced else "unbalanced",
        "message": result.message,
        "system_cash_expected": _fmt(result.system_cash_expected),
        "delta_total": _fmt(result.delta_total),
        "channels": {
            name: {
                "expected": _fmt(expected),
                "declared": _fmt(declared),
                "delta": _fmt(delta),
            }
            for name, (expected, declared, delta) in channels.items()
        },
    }

# Overview: Pytest coverage for the pure cash reconciliation engine.

from decimal import Decimal

from ezorder.services.reconciliation import ReconciliationInput, build_report, reconcile


D = Decimal


def _input(**overrides):
    values = {
        "opening_balance": D("100.00"),
        "system_cash_sales": D("250.00"),
        "system_pos_sales": D("0.00"),
        "system_transfer_sales": D("0.00"),
        "system_expenses": D("50.00"),
        "declared_cash": D("300.00"),
    }
    values.update(overrides)
    return ReconciliationInput(**values)


class TestExpectedCash:

    def test_balanced_close(self):
        result = reconcile(_input())
        assert result.system_cash_expected == D("300.00")
        assert result.delta_cash == D("0.00")
        assert result.balanced
        assert result.message == "Cash register balanced"

    def test_short_cash_is_unbalanced(self):
        result = reconcile(_input(declared_cash=D("280.00")))
        assert result.delta_cash == D("-20.00")
        assert not result.balanced
        assert result.message == "Cash register did not balance: 20.00 short"

    def test_over_cash_message(self):
        result = reconcile(_input(declared_cash=D("305.50")))
        assert result.delta_cash == D("5.50")
        assert result.message == "Cash register did not balance: 5.50 over"

    def test_accrued_income_is_expected_in_drawer(self):
        result = reconcile(_input(
            system_expenses=D("0.00"),
            accrued_other_income=D("20.00"),
            declared_cash=D("370.00"),
        ))
        assert result.system_cash_expected == D("370.00")
        assert result.balanced

    def test_accrued_expense_does_not_change_expected_cash(self):
        result = reconcile(_input(accrued_other_expense=D("15.00")))
        assert result.system_cash_expected == D("300.00")


class TestTolerance:

    def test_one_cent_is_tolerated(self):
        assert reconcile(_input(declared_cash=D("300.01"))).balanced
        assert reconcile(_input(declared_cash=D("299.99"))).balanced

    def test_two_cents_is_not(self):
        assert not reconcile(_input(declared_cash=D("300.02"))).balanced


class TestPartialDeclaration:

    def test_undeclared_channels_are_null_and_ignored(self):
        result = reconcile(_input(system_pos_sales=D("999.00")))
        assert result.delta_pos is None
        assert result.delta_transfer is None
        assert result.delta_expenses is None
        assert result.delta_cash_sales is None
        assert result.balanced

    def test_declared_channel_mismatch_unbalances(self):
        result = reconcile(_input(system_pos_sales=D("120.00"), declared_pos=D("100.00")))
        assert result.delta_pos == D("-20.00")
        assert result.delta_cash == D("0.00")
        assert not result.balanced
        assert "check card, transfer and expense figures" in result.message

    def test_declared_zero_is_evaluated(self):
        result = reconcile(_input(system_transfer_sales=D("40.00"), declared_transfer=D("0")))
        assert result.delta_transfer == D("-40.00")
        assert not result.balanced

    def test_all_channels_declared_and_matching(self):
        result = reconcile(_input(
            system_pos_sales=D("80.00"),
            system_transfer_sales=D("20.00"),
            declared_pos=D("80.00"),
            declared_transfer=D("20.00"),
            declared_expenses=D("50.00"),
            declared_cash_sales=D("250.00"),
        ))
        assert result.balanced
        assert all(delta == D("0.00") for delta in result.deltas.values())


class TestDeltaTotal:

    def test_sum_of_channels_minus_expenses(self):
        result = reconcile(_input(
            declared_cash=D("310.00"),
            system_pos_sales=D("100.00"),
            declared_pos=D("105.00"),
            declared_expenses=D("52.00"),
        ))
        # 10 + 5 + 0 - 2
        assert result.delta_total == D("13.00")

    def test_null_deltas_count_as_zero(self):
        result = reconcile(_input(declared_cash=D("290.00")))
        assert result.delta_total == D("-10.00")


class TestReport:

    def test_report_shape(self):
        data = _input(declared_pos=D("0.00"))
        report = build_report(data, reconcile(data))

        assert report["reconciliation_state"] == "balanced"
        assert report["system_cash_expected"] == "300.00"
        assert report["channels"]["cash"] == {"expected": "300.00", "declared": "300.00", "delta": "0.00"}
        assert report["channels"]["pos"] == {"expected": "0.00", "declared": "0.00", "delta": "0.00"}
        assert report["channels"]["transfer"] == {"expected": "0.00", "declared": None, "delta": None}

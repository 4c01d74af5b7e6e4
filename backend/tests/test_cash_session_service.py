# Overview: Pytest coverage for the cash session lifecycle (open, adjust, close, queries).

"""
Cash Session Service Tests

Covers:
- open -> adjust -> close end to end with ledger figures
- one open session per restaurant, including the database-level guard
  and two opens racing on separate connections
- close happens exactly once
- validation happens before any write
- restaurant scoping (scoped store hides other restaurants' sessions)
- advisory warnings on reopen
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from ezorder import create_app
from ezorder.errors import ConflictError, LedgerUnavailableError, NotFoundError, ScopeError, ValidationError
from ezorder.extensions import db
from ezorder.models import CashSession, Restaurant, User
from ezorder.models.ledger import PAYMENT_METHOD_CARD, PAYMENT_METHOD_CASH, PAYMENT_METHOD_TRANSFER
from ezorder.services.authorization_service import Principal, RoleTier, resolve_principal
from ezorder.services.cash_session_service import CashSessionManager
from ezorder.services.record_store import ElevatedRecordStore, ScopedRecordStore
from ezorder.time_utils import utcnow


D = Decimal


@pytest.fixture
def manager(store):
    return CashSessionManager(store)


@pytest.fixture
def cashier_principal(cashier):
    return resolve_principal(cashier)


# =============================================================================
# OPEN
# =============================================================================


class TestOpen:

    def test_open_creates_open_session(self, manager, cashier_principal, restaurant_a):
        session, warnings = manager.open_session(cashier_principal, restaurant_a.id, "100.00", "Turno mañana")

        assert session.state == "open"
        assert session.opening_balance == D("100.00")
        assert session.accrued_other_income == D("0.00")
        assert session.opened_by_user_id == cashier_principal.id
        assert session.notes == "Turno mañana"
        assert warnings == []

    def test_open_result_is_enriched_with_names(self, manager, cashier_principal, restaurant_a):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 50)
        data = manager.serialize_one(session)
        assert data["opened_by_name"] == "Cajero"
        assert data["restaurant_name"] == "Restaurante A"
        assert data["opening_balance"] == "50.00"

    def test_second_open_conflicts_with_existing_identity(self, manager, cashier_principal, restaurant_a):
        first, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)

        with pytest.raises(ConflictError) as exc:
            manager.open_session(cashier_principal, restaurant_a.id, 200)

        assert exc.value.extra["existing_session"]["id"] == first.id
        assert manager.store.count(CashSession, {"restaurant_id": restaurant_a.id}) == 1

    def test_database_index_enforces_single_open_session(self, manager, cashier_principal, restaurant_a, monkeypatch):
        manager.open_session(cashier_principal, restaurant_a.id, 100)

        # Simulate a concurrent open() that passed the lookup before the first insert
        monkeypatch.setattr(manager, "current_session", lambda restaurant_id: None)

        with pytest.raises(ConflictError):
            manager.open_session(cashier_principal, restaurant_a.id, 100)

        assert manager.store.count(CashSession, {"restaurant_id": restaurant_a.id, "state": "open"}) == 1

    def test_other_restaurant_can_open_concurrently(self, manager, super_admin, restaurant_a, restaurant_b):
        principal = resolve_principal(super_admin)
        manager.open_session(principal, restaurant_a.id, 100)
        session, _ = manager.open_session(principal, restaurant_b.id, 100)
        assert session.restaurant_id == restaurant_b.id

    @pytest.mark.parametrize("bad", [None, "", "abc", "1e3", -1, True, "NaN"])
    def test_invalid_opening_balance_rejected(self, manager, cashier_principal, restaurant_a, bad):
        with pytest.raises(ValidationError):
            manager.open_session(cashier_principal, restaurant_a.id, bad)
        assert manager.store.count(CashSession) == 0

    def test_unknown_restaurant(self, manager, super_admin):
        with pytest.raises(NotFoundError):
            manager.open_session(resolve_principal(super_admin), 9999, 100)

    def test_cashier_cannot_open_other_restaurant(self, manager, cashier_principal, restaurant_b):
        with pytest.raises(ScopeError):
            manager.open_session(cashier_principal, restaurant_b.id, 100)

    def test_admin_limited_to_owned_restaurants(self, manager, admin, restaurant_a, restaurant_b):
        principal = resolve_principal(admin)
        manager.open_session(principal, restaurant_a.id, 100)
        with pytest.raises(ScopeError):
            manager.open_session(principal, restaurant_b.id, 100)

    def test_reopen_same_day_warns_without_blocking(self, manager, cashier_principal, restaurant_a):
        first, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        manager.close_session(cashier_principal, first.id, {"declared_cash": "100.00"})

        second, warnings = manager.open_session(cashier_principal, restaurant_a.id, 100)

        assert second.state == "open"
        assert "A cash session was already closed today for this restaurant" in warnings

    def test_previous_unbalanced_close_warns(self, manager, cashier_principal, restaurant_a):
        first, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        manager.close_session(cashier_principal, first.id, {"declared_cash": "80.00"})

        _, warnings = manager.open_session(cashier_principal, restaurant_a.id, 100)

        assert any("did not balance" in w for w in warnings)

    def test_name_lookup_failure_degrades_to_null(self, manager, cashier_principal, restaurant_a, monkeypatch):
        original_find = manager.store.find

        def find(model, *args, **kwargs):
            if model is User:
                raise OperationalError("SELECT users", {}, Exception("connection reset"))
            return original_find(model, *args, **kwargs)

        monkeypatch.setattr(manager.store, "find", find)

        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        data = manager.serialize_one(session)

        assert data["state"] == "open"
        assert data["opened_by_name"] is None
        assert data["restaurant_name"] == "Restaurante A"


class TestConcurrentOpen:
    """Parallel opens against a file-backed database, one connection per thread."""

    @pytest.fixture
    def file_app(self, tmp_path):
        app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'ezorder.sqlite3'}",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30, "check_same_thread": False}},
            "BCRYPT_ROUNDS": 4,
        })
        with app.app_context():
            db.create_all()
        yield app
        with app.app_context():
            db.engine.dispose()

    def test_parallel_opens_leave_one_open_session(self, file_app):
        with file_app.app_context():
            store = ElevatedRecordStore(db.session)
            restaurant_id = store.insert(Restaurant, {"name": "Restaurante A", "is_active": True}).id
            store.commit()

        principal = Principal(id=1, email="root@ezorder.test", role_tier=RoleTier.SUPER_ADMIN)
        barrier = threading.Barrier(2)

        def attempt(balance):
            with file_app.app_context():
                manager = CashSessionManager(ElevatedRecordStore(db.session))
                barrier.wait(timeout=10)
                try:
                    manager.open_session(principal, restaurant_id, balance)
                    return "opened"
                except ConflictError:
                    return "conflict"

        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = sorted(pool.map(attempt, ["100.00", "50.00"]))

        assert outcomes == ["conflict", "opened"]
        with file_app.app_context():
            store = ElevatedRecordStore(db.session)
            assert store.count(CashSession, {"restaurant_id": restaurant_id, "state": "open"}) == 1


# =============================================================================
# ADJUST
# =============================================================================


class TestAdjust:

    def test_partial_update_leaves_other_fields(self, manager, cashier_principal, restaurant_a):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100, "nota")

        updated = manager.adjust_session(cashier_principal, session.id, {"accrued_other_income": "20"})

        assert updated.accrued_other_income == D("20.00")
        assert updated.accrued_other_expense == D("0.00")
        assert updated.notes == "nota"

    def test_negative_amount_rejected(self, manager, cashier_principal, restaurant_a):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        with pytest.raises(ValidationError):
            manager.adjust_session(cashier_principal, session.id, {"accrued_other_expense": "-5"})

    def test_empty_patch_rejected(self, manager, cashier_principal, restaurant_a):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        with pytest.raises(ValidationError):
            manager.adjust_session(cashier_principal, session.id, {})

    def test_closed_session_cannot_be_adjusted(self, manager, cashier_principal, restaurant_a):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        manager.close_session(cashier_principal, session.id, {"declared_cash": 100})

        with pytest.raises(ConflictError):
            manager.adjust_session(cashier_principal, session.id, {"notes": "tarde"})

    def test_missing_session(self, manager, cashier_principal):
        with pytest.raises(NotFoundError):
            manager.adjust_session(cashier_principal, 12345, {"notes": "x"})


# =============================================================================
# CLOSE
# =============================================================================


class TestClose:

    def test_end_to_end_open_adjust_close(self, manager, cashier_principal, restaurant_a, add_sale):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        manager.adjust_session(cashier_principal, session.id, {"accrued_other_income": 20})
        add_sale(restaurant_a, "200.00", PAYMENT_METHOD_CASH)
        add_sale(restaurant_a, "50.00", PAYMENT_METHOD_CASH)

        closed, report = manager.close_session(cashier_principal, session.id, {"declared_cash": "370.00"})

        assert closed.state == "closed"
        assert closed.closed_at is not None
        assert closed.closed_by_user_id == cashier_principal.id
        assert closed.system_cash_sales == D("250.00")
        assert closed.system_expenses == D("0.00")
        assert closed.system_cash_expected == D("370.00")
        assert closed.delta_cash == D("0.00")
        assert closed.reconciliation_state == "balanced"
        assert report["balanced"] is True
        assert report["channels"]["cash"]["expected"] == "370.00"

    def test_channels_and_expenses(self, manager, cashier_principal, restaurant_a, add_sale, add_expense):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        add_sale(restaurant_a, "250.00", PAYMENT_METHOD_CASH)
        add_sale(restaurant_a, "120.00", PAYMENT_METHOD_CARD)
        add_sale(restaurant_a, "30.00", PAYMENT_METHOD_TRANSFER)
        add_sale(restaurant_a, "999.00", PAYMENT_METHOD_CASH, paid=False)
        add_expense(restaurant_a, "50.00")

        closed, _ = manager.close_session(cashier_principal, session.id, {
            "declared_cash": "280.00",
            "declared_pos": "120.00",
        })

        assert closed.system_cash_sales == D("250.00")
        assert closed.system_pos_sales == D("120.00")
        assert closed.system_transfer_sales == D("30.00")
        assert closed.system_total_sales == D("400.00")
        assert closed.system_expenses == D("50.00")
        assert closed.system_cash_expected == D("300.00")
        assert closed.delta_cash == D("-20.00")
        assert closed.delta_pos == D("0.00")
        assert closed.delta_transfer is None
        assert closed.reconciliation_state == "unbalanced"

    def test_other_restaurant_sales_are_ignored(self, manager, cashier_principal, restaurant_a, restaurant_b, add_sale):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        add_sale(restaurant_b, "500.00", PAYMENT_METHOD_CASH)

        closed, _ = manager.close_session(cashier_principal, session.id, {"declared_cash": 100})
        assert closed.system_cash_sales == D("0.00")
        assert closed.reconciliation_state == "balanced"

    def test_sales_before_opening_day_are_outside_window(self, manager, cashier_principal, restaurant_a, add_sale):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        add_sale(restaurant_a, "75.00", PAYMENT_METHOD_CASH, created_at=utcnow() - timedelta(days=3))

        closed, _ = manager.close_session(cashier_principal, session.id, {"declared_cash": 100})
        assert closed.system_cash_sales == D("0.00")

    def test_partial_declaration_keeps_balanced(self, manager, cashier_principal, restaurant_a, add_sale):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        add_sale(restaurant_a, "80.00", PAYMENT_METHOD_CARD)

        closed, report = manager.close_session(cashier_principal, session.id, {"declared_cash": "100.00"})

        assert closed.delta_pos is None
        assert closed.reconciliation_state == "balanced"
        assert report["channels"]["pos"]["delta"] is None

    def test_close_twice_does_not_double_count(self, manager, cashier_principal, restaurant_a, add_sale):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        add_sale(restaurant_a, "50.00", PAYMENT_METHOD_CASH)
        first, _ = manager.close_session(cashier_principal, session.id, {"declared_cash": "150.00"})
        snapshot = (first.system_cash_sales, first.delta_cash, first.closed_at)

        add_sale(restaurant_a, "25.00", PAYMENT_METHOD_CASH)
        with pytest.raises(NotFoundError):
            manager.close_session(cashier_principal, session.id, {"declared_cash": "175.00"})

        again = manager.store.get(CashSession, session.id)
        assert (again.system_cash_sales, again.delta_cash, again.closed_at) == snapshot

    def test_lost_close_race_is_a_conflict(self, manager, cashier_principal, restaurant_a, monkeypatch):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)

        # Another request closes the session between our read and our write
        original_update = manager.store.update

        def racing_update(model, filters, patch):
            original_update(model, {"id": session.id}, {"state": "closed"})
            return original_update(model, filters, patch)

        monkeypatch.setattr(manager.store, "update", racing_update)

        with pytest.raises(ConflictError):
            manager.close_session(cashier_principal, session.id, {"declared_cash": 100})

    def test_declared_cash_required(self, manager, cashier_principal, restaurant_a):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        with pytest.raises(ValidationError):
            manager.close_session(cashier_principal, session.id, {"declared_pos": "10"})
        assert manager.store.get(CashSession, session.id).state == "open"

    def test_ledger_failure_leaves_session_open(self, manager, cashier_principal, restaurant_a, monkeypatch):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)

        def unavailable(*args, **kwargs):
            raise LedgerUnavailableError("Reconciliation temporarily unavailable")

        monkeypatch.setattr(manager.ledger, "sales_totals", unavailable)

        with pytest.raises(LedgerUnavailableError):
            manager.close_session(cashier_principal, session.id, {"declared_cash": 100})
        assert manager.store.get(CashSession, session.id).state == "open"

    def test_failed_close_write_leaves_session_open(self, manager, cashier_principal, restaurant_a, monkeypatch):
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        session_id = session.id

        def broken_update(*args, **kwargs):
            raise OperationalError("UPDATE cash_sessions", {}, Exception("database is locked"))

        monkeypatch.setattr(manager.store, "update", broken_update)
        with pytest.raises(OperationalError):
            manager.close_session(cashier_principal, session_id, {"declared_cash": 100})

        assert manager.store.get(CashSession, session_id).state == "open"

        monkeypatch.undo()
        closed, report = manager.close_session(cashier_principal, session_id, {"declared_cash": 100})
        assert closed.state == "closed"
        assert report["balanced"] is True


# =============================================================================
# SCOPING & QUERIES
# =============================================================================


class TestScopedStore:

    def test_session_outside_scope_looks_missing(self, store, db_session, super_admin, cashier, restaurant_b):
        opened, _ = CashSessionManager(store).open_session(resolve_principal(super_admin), restaurant_b.id, 100)

        scoped = CashSessionManager(ScopedRecordStore(db_session, {cashier.restaurant_id}))
        with pytest.raises(NotFoundError):
            scoped.get_session(resolve_principal(cashier), opened.id)
        with pytest.raises(NotFoundError):
            scoped.close_session(resolve_principal(cashier), opened.id, {"declared_cash": 100})


class TestQueries:

    def test_current_session(self, manager, cashier_principal, restaurant_a):
        assert manager.get_current(cashier_principal, restaurant_a.id) is None
        session, _ = manager.open_session(cashier_principal, restaurant_a.id, 100)
        assert manager.get_current(cashier_principal, restaurant_a.id).id == session.id

    def test_list_for_restaurant_paginates_newest_first(self, manager, cashier_principal, restaurant_a):
        ids = []
        for _ in range(3):
            session, _ = manager.open_session(cashier_principal, restaurant_a.id, 10)
            ids.append(session.id)
            manager.close_session(cashier_principal, session.id, {"declared_cash": 10})

        page = manager.list_for_restaurant(cashier_principal, restaurant_a.id, page=1, limit=2)
        assert page["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
        assert len(page["sessions"]) == 2

        closed_only = manager.list_for_restaurant(cashier_principal, restaurant_a.id, state="closed")
        assert closed_only["pagination"]["total"] == 3

        with pytest.raises(ValidationError):
            manager.list_for_restaurant(cashier_principal, restaurant_a.id, state="pending")

    def test_list_all_respects_admin_memberships(self, manager, admin, super_admin, restaurant_a, restaurant_b):
        root = resolve_principal(super_admin)
        manager.open_session(root, restaurant_a.id, 10)
        manager.open_session(root, restaurant_b.id, 10)

        assert manager.list_all(root)["pagination"]["total"] == 2

        admin_view = manager.list_all(resolve_principal(admin))
        assert [s["restaurant_id"] for s in admin_view["sessions"]] == [restaurant_a.id]
        assert len(manager.list_open(resolve_principal(admin))) == 1

    def test_summary_without_open_session_is_zeroed(self, manager, cashier_principal, restaurant_a):
        summary = manager.summary(cashier_principal, restaurant_a.id)
        assert summary["current_session"] is None
        assert summary["sales"]["total"] == "0.00"
        assert summary["difference"] == "0.00"

    def test_summary_with_open_session(self, manager, cashier_principal, restaurant_a, add_sale, add_expense):
        manager.open_session(cashier_principal, restaurant_a.id, 100)
        add_sale(restaurant_a, "60.00", PAYMENT_METHOD_CASH)
        add_sale(restaurant_a, "40.00", PAYMENT_METHOD_CARD)
        add_expense(restaurant_a, "15.00")

        summary = manager.summary(cashier_principal, restaurant_a.id)

        assert summary["current_session"]["opening_balance"] == "100.00"
        assert summary["sales"] == {
            "cash": "60.00", "pos": "40.00", "transfer": "0.00", "other": "0.00", "total": "100.00",
        }
        assert summary["total_expenses"] == "15.00"
        assert len(summary["expenses"]) == 1
        # declared_cash is not set while open: 0 - 100 - 100
        assert summary["difference"] == "-200.00"

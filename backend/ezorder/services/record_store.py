# Overview: Record-store collaborator used by every service; wraps a SQLAlchemy session.

"""
Record Store

WHY: Services never reach for a module-level database handle. They receive
a RecordStore in their constructor and go through a small surface:

    find / find_one / count / insert / update / delete / commit / rollback

Filters are dicts of column lookups:

    {"restaurant_id": 3}                  -> restaurant_id = 3
    {"created_at__gte": start}            -> created_at >= start
    {"created_at__lte": end}              -> created_at <= end
    {"id__in": [1, 2]}                    -> id IN (1, 2)
    {"id__ne": 7}                         -> id != 7
    {"closed_at__isnull": False}          -> closed_at IS NOT NULL

Two implementations:
- ElevatedRecordStore: privileged, sees every row.
- ScopedRecordStore: row-level restricted to a set of restaurant ids for
  restaurant-owned tables; writes outside the set raise ScopeError.
"""

from __future__ import annotations

from typing import Any, Iterable

from ..errors import ScopeError


_OPERATORS = {"eq", "ne", "gt", "gte", "lt", "lte", "in", "isnull"}


def _column(model, name: str):
    column = getattr(model, name, None)
    if column is None:
        raise AttributeError(f"{model.__name__} has no column '{name}'")
    return column


def _criterion(model, key: str, value: Any):
    field, _, op = key.partition("__")
    op = op or "eq"
    if op not in _OPERATORS:
        raise ValueError(f"Unsupported filter operator: {op}")

    column = _column(model, field)
    if op == "eq":
        return column.is_(None) if value is None else column == value
    if op == "ne":
        return column.isnot(None) if value is None else column != value
    if op == "gt":
        return column > value
    if op == "gte":
        return column >= value
    if op == "lt":
        return column < value
    if op == "lte":
        return column <= value
    if op == "in":
        return column.in_(list(value))
    return column.is_(None) if value else column.isnot(None)


class RecordStore:
    """Generic record store on top of a SQLAlchemy session."""

    def __init__(self, session):
        self.session = session

    # -- scoping hooks -----------------------------------------------------

    def _scope(self, model, query):
        return query

    def _check_write(self, model, values: dict) -> None:
        return None

    # -- reads -------------------------------------------------------------

    def query(self, model, filters: dict | None = None):
        query = self.session.query(model)
        for key, value in (filters or {}).items():
            query = query.filter(_criterion(model, key, value))
        return self._scope(model, query)

    def find(
        self,
        model,
        filters: dict | None = None,
        *,
        order_by: str | Iterable[str] | None = None,
        descending: bool = False,
        offset: int | None = None,
        limit: int | None = None,
    ) -> list:
        query = self.query(model, filters)
        if order_by:
            names = [order_by] if isinstance(order_by, str) else list(order_by)
            for name in names:
                column = _column(model, name)
                query = query.order_by(column.desc() if descending else column.asc())
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    def find_one(self, model, filters: dict | None = None, *, order_by=None, descending: bool = False):
        rows = self.find(model, filters, order_by=order_by, descending=descending, limit=1)
        return rows[0] if rows else None

    def get(self, model, record_id):
        return self.find_one(model, {"id": record_id})

    def count(self, model, filters: dict | None = None) -> int:
        return self.query(model, filters).count()

    # -- writes ------------------------------------------------------------

    def insert(self, model, values: dict):
        """Add a row and flush so database constraints fire immediately."""
        self._check_write(model, values)
        record = model(**values)
        self.session.add(record)
        self.session.flush()
        return record

    def update(self, model, filters: dict, patch: dict) -> int:
        """
        Conditional bulk update. Returns the affected-row count so callers
        can detect a lost race (e.g. WHERE state = 'open' matched nothing).
        """
        if not filters:
            raise ValueError("update() requires at least one filter")
        self._check_write(model, patch)
        affected = self.query(model, filters).update(patch, synchronize_session=False)
        self.session.flush()
        return affected

    def delete(self, model, filters: dict) -> int:
        if not filters:
            raise ValueError("delete() requires at least one filter")
        affected = self.query(model, filters).delete(synchronize_session=False)
        self.session.flush()
        return affected

    # -- unit of work ------------------------------------------------------

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()

    def refresh(self, record):
        self.session.refresh(record)
        return record

    @property
    def dialect_name(self) -> str:
        return self.session.get_bind().dialect.name


class ElevatedRecordStore(RecordStore):
    """Privileged store: no row-level restriction."""


class ScopedRecordStore(RecordStore):
    """
    Row-level restricted store.

    Tables carrying a restaurant_id column are filtered to the allowed
    restaurants. Other tables (users, roles, permissions) pass through.
    """

    def __init__(self, session, restaurant_ids: Iterable[int]):
        super().__init__(session)
        self.restaurant_ids = frozenset(restaurant_ids)

    @staticmethod
    def _is_restaurant_owned(model) -> bool:
        return getattr(model, "__restaurant_scoped__", False)

    def _scope(self, model, query):
        if self._is_restaurant_owned(model):
            query = query.filter(model.restaurant_id.in_(self.restaurant_ids))
        return query

    def _check_write(self, model, values: dict) -> None:
        if not self._is_restaurant_owned(model):
            return
        restaurant_id = values.get("restaurant_id")
        if restaurant_id is not None and restaurant_id not in self.restaurant_ids:
            raise ScopeError("Restaurant is outside the caller's scope")

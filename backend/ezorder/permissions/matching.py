# Overview: Tagged permission tokens and the pure matching rules used by the resolver.

"""
Permission grammar:

    "*"                 -> Global
    "<resource>.*"      -> ResourceWildcard(resource)
    "<resource>.<act>"  -> Exact(name)

Matching a required permission against a granted set (any rule suffices):
    - the granted set holds Global
    - the granted set holds the required name exactly
    - the required token is a wildcard and some granted name falls under it
    - the granted set holds a ResourceWildcard covering the required name
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from .definitions import MENU_PREFIX, VIEW_CATEGORIES, VIEW_RESTAURANTS


@dataclass(frozen=True)
class Global:
    @property
    def name(self) -> str:
        return "*"

    @property
    def prefix(self) -> str:
        return ""


@dataclass(frozen=True)
class ResourceWildcard:
    resource: str

    @property
    def name(self) -> str:
        return f"{self.resource}.*"

    @property
    def prefix(self) -> str:
        return f"{self.resource}."


@dataclass(frozen=True)
class Exact:
    name: str


PermissionToken = Union[Global, ResourceWildcard, Exact]


def parse_permission(name: str) -> PermissionToken:
    name = name.strip()
    if name == "*":
        return Global()
    if name.endswith(".*"):
        return ResourceWildcard(name[:-2])
    return Exact(name)


def grants(granted: Iterable[PermissionToken], required: PermissionToken) -> bool:
    granted = list(granted)

    if any(isinstance(g, Global) for g in granted):
        return True

    if any(g == required for g in granted):
        return True

    if isinstance(required, (Global, ResourceWildcard)):
        return any(g.name.startswith(required.prefix) for g in granted)

    return any(
        isinstance(g, ResourceWildcard) and required.name.startswith(g.prefix)
        for g in granted
    )


def grants_any(granted_names: Iterable[str], required_names: Iterable[str]) -> bool:
    granted = [parse_permission(n) for n in granted_names]
    return any(grants(granted, parse_permission(r)) for r in required_names)


def menu_implies_visibility(granted_names: Iterable[str], required_names: Iterable[str]) -> bool:
    """Menu access implies seeing restaurants and categories."""
    required = set(required_names)
    if VIEW_RESTAURANTS not in required and VIEW_CATEGORIES not in required:
        return False
    return any(name.startswith(MENU_PREFIX) for name in granted_names)

"""Role-based row visibility.

Business roles map to the policy classes they may see. Admin and super-user
roles see every class. Scoping drops rows outright and must run before the
facet index is built, so values that only exist on hidden rows never surface
as filter options.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional

import pandas as pd


logger = logging.getLogger(__name__)

ADMIN_ROLES = {"admin"}
SUPER_USER_ROLES = {"super user", "super-user", "superuser"}
BUSINESS_ROLES = ["fi", "eg", "ca", "hu", "marine", "ac", "en", "li"]

ROLE_TO_CLASS_MAP = {
    "fi": ["FI", "Property", "FI Property"],
    "eg": ["EG", "Energy", "EG Energy"],
    "ca": ["CA", "Cargo", "CA Cargo"],
    "hu": ["HU", "Hull", "HU Hull"],
    "marine": ["CA", "HU", "Cargo", "Hull", "Marine", "CA Cargo", "HU Hull"],
    "ac": ["AC", "Casualty", "AC Casualty"],
    "en": ["EN", "Engineering", "EN Engineering"],
    "li": ["LI", "Life", "LI Life"],
}

ROLE_DISPLAY_NAMES = {
    "li": "LIFE",
    "fi": "PROPERTY",
    "eg": "ENERGY",
    "ca": "CARGO",
    "hu": "HULL",
    "marine": "MARINE",
    "ac": "CASUALTY",
    "en": "ENGINEERING",
    "admin": "Main Admin",
    "super user": "Super User",
    "super-user": "Super User",
}


@dataclass(frozen=True)
class RoleScope:
    """Classes a caller may see; ``None`` means unrestricted."""

    allowed_classes: Optional[FrozenSet[str]]

    @property
    def bypass(self) -> bool:
        return self.allowed_classes is None

    @property
    def cache_key(self) -> Optional[tuple]:
        return None if self.allowed_classes is None else tuple(sorted(self.allowed_classes))

    def allows(self, class_name: Optional[str]) -> bool:
        if self.allowed_classes is None:
            return True
        k = (class_name or "").strip().lower()
        return bool(k) and k in self.allowed_classes


UNRESTRICTED = RoleScope(allowed_classes=None)


def _clean_roles(roles: Optional[Iterable[str]]) -> List[str]:
    return [str(r).strip().lower() for r in (roles or []) if r is not None and str(r).strip()]


def is_admin(roles: Optional[Iterable[str]]) -> bool:
    return any(r in ADMIN_ROLES for r in _clean_roles(roles))


def is_super_user(roles: Optional[Iterable[str]]) -> bool:
    return any(r in SUPER_USER_ROLES for r in _clean_roles(roles))


def scope(roles: Optional[Iterable[str]]) -> RoleScope:
    cleaned = _clean_roles(roles)
    if any(r in ADMIN_ROLES or r in SUPER_USER_ROLES for r in cleaned):
        return UNRESTRICTED
    allowed = {cls.lower() for r in cleaned for cls in ROLE_TO_CLASS_MAP.get(r, [])}
    return RoleScope(allowed_classes=frozenset(allowed))


def apply_scope(rows: pd.DataFrame, role_scope: RoleScope) -> pd.DataFrame:
    if role_scope.bypass:
        return rows
    if rows.empty or not role_scope.allowed_classes:
        logger.debug("role scope allows no classes; hiding %d rows", len(rows))
        return rows.iloc[0:0].reset_index(drop=True)
    mask = rows["k_class"].isin(role_scope.allowed_classes)
    logger.debug("role scope kept %d of %d rows", int(mask.sum()), len(rows))
    return rows[mask].reset_index(drop=True)


def role_display_name(role: str) -> str:
    return ROLE_DISPLAY_NAMES.get(role.strip().lower(), role.upper())


def primary_role(roles: Optional[Iterable[str]]) -> Optional[str]:
    given = [str(r) for r in (roles or []) if r is not None and str(r).strip()]
    for r in given:
        if r.strip().lower() in BUSINESS_ROLES:
            return r
    for r in given:
        if r.strip().lower() in ADMIN_ROLES:
            return r
    return given[0] if given else None

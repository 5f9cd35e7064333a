"""
Tests for portfolio.roles
"""

import pytest

from portfolio.normalize import normalize_records
from portfolio.roles import (
    UNRESTRICTED,
    apply_scope,
    is_admin,
    is_super_user,
    primary_role,
    role_display_name,
    scope,
)


class TestScope:
    @pytest.mark.parametrize("roles", [["admin"], ["ADMIN"], ["Super User"], ["fi", "super-user"]])
    def test_bypass_roles(self, roles):
        assert scope(roles).bypass

    def test_business_role_classes(self):
        s = scope(["fi"])
        assert not s.bypass
        assert s.allowed_classes == frozenset({"fi", "property", "fi property"})

    def test_roles_union(self):
        s = scope(["fi", "en"])
        assert {"fi", "en", "engineering"} <= s.allowed_classes

    @pytest.mark.parametrize("roles", [None, [], ["unknown"], ["  "]])
    def test_fails_closed(self, roles):
        s = scope(roles)
        assert not s.bypass
        assert s.allowed_classes == frozenset()

    def test_allows(self):
        s = scope(["marine"])
        assert s.allows("Cargo")
        assert s.allows(" hu ")
        assert not s.allows("FI")
        assert not s.allows(None)
        assert UNRESTRICTED.allows(None)


class TestApplyScope:
    def test_unrestricted_keeps_everything(self, rows):
        assert apply_scope(rows, UNRESTRICTED) is rows

    def test_fi_role(self, rows):
        scoped = apply_scope(rows, scope(["fi"]))
        assert scoped["class_name"].tolist() == ["FI", "FI"]
        assert list(scoped.index) == [0, 1]

    def test_no_roles_hides_everything(self, rows):
        scoped = apply_scope(rows, scope([]))
        assert scoped.empty
        assert list(scoped.columns) == list(rows.columns)

    def test_class_match_is_exact(self):
        df = normalize_records([{"class_name": "Casualty"}, {"class_name": "CA"}, {"class_name": "Cargo Plus"}])
        scoped = apply_scope(df, scope(["ca"]))
        assert scoped["class_name"].tolist() == ["CA"]

    def test_match_is_case_insensitive(self):
        df = normalize_records([{"class_name": "ENGINEERING"}, {"class_name": "en engineering"}])
        assert len(apply_scope(df, scope(["EN"]))) == 2


class TestRoleHelpers:
    def test_admin_and_super_user(self):
        assert is_admin(["Admin"])
        assert not is_admin(["super user"])
        assert is_super_user(["SuperUser"])
        assert not is_super_user(None)

    def test_primary_role_prefers_business_role(self):
        assert primary_role(["admin", "FI"]) == "FI"
        assert primary_role(["viewer", "admin"]) == "admin"
        assert primary_role(["viewer"]) == "viewer"
        assert primary_role([]) is None

    def test_display_name(self):
        assert role_display_name("marine") == "MARINE"
        assert role_display_name("Super User") == "Super User"
        assert role_display_name("xx") == "XX"

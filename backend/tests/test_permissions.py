"""Role permission tests."""

import pytest

from fretmarine.auth.permissions import (
    ALL_PERMISSIONS,
    ROLE_PERMISSIONS,
    expand_grants,
    has_permission,
)


@pytest.mark.unit
class TestPermissions:

    def test_admin_has_everything(self):
        assert ROLE_PERMISSIONS["admin"] == ALL_PERMISSIONS

    def test_resource_wildcard(self):
        assert expand_grants(["payment.*"]) == frozenset(
            {"payment.read", "payment.write", "payment.cancel", "payment.export"}
        )

    def test_unknown_grants_ignored(self):
        assert expand_grants(["ship.*", "client.fly", "client.read"]) == frozenset({"client.read"})

    def test_operator_cannot_close(self):
        assert has_permission("operator", "cargo_item.assign")
        assert not has_permission("operator", "container.close")
        assert not has_permission("operator", "payment.cancel")

    def test_accountant_money_only(self):
        assert has_permission("accountant", "payment.cancel")
        assert has_permission("accountant", "report.financial")
        assert not has_permission("accountant", "cargo_item.assign")

    def test_unknown_role(self):
        assert not has_permission("pirate", "client.read")

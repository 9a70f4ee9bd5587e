"""
Tests for the role -> action permission table
"""
import json

import pytest

from lams.core.errors import Forbidden
from lams.core.permissions import (Actor, Permission, Role,
                                   load_permission_table)


class TestPermissionTable:

    def test_admin_holds_every_action(self):
        table = load_permission_table(None)
        assert table.has_permission(Role.ADMIN, Permission.DRAW_RESET)
        assert table.has_permission(Role.ADMIN, "anything.at_all")

    def test_draw_reset_is_admin_only(self):
        table = load_permission_table(None)
        for role in table.roles:
            if role != Role.ADMIN:
                assert not table.has_permission(role, Permission.DRAW_RESET)

    def test_auditor_view_wildcard(self):
        table = load_permission_table(None)
        assert table.has_permission(Role.AUDITOR, "parcel.view")
        assert not table.has_permission(Role.AUDITOR, Permission.PARCEL_CREATE)

    def test_unknown_role_has_nothing(self):
        table = load_permission_table(None)
        assert not table.has_permission("anonymous", Permission.OBJECTION_SUBMIT)

    def test_check_raises_forbidden(self):
        table = load_permission_table(None)
        with pytest.raises(Forbidden) as exc_info:
            table.check(Actor(role=Role.CITIZEN, user_id="c-1"), Permission.AWARD_APPROVE)
        assert exc_info.value.role == Role.CITIZEN
        assert exc_info.value.action == Permission.AWARD_APPROVE

    def test_file_replaces_defaults(self, tmp_path):
        path = tmp_path / "permissions.json"
        path.write_text(json.dumps({"clerk": [Permission.PARCEL_CREATE]}), encoding="utf-8")
        table = load_permission_table(str(path))
        assert table.roles == ["clerk"]
        assert table.has_permission("clerk", Permission.PARCEL_CREATE)
        assert not table.has_permission(Role.ADMIN, Permission.PARCEL_CREATE)

    def test_malformed_file_is_rejected(self, tmp_path):
        path = tmp_path / "permissions.json"
        path.write_text(json.dumps({"clerk": "parcel.create"}), encoding="utf-8")
        with pytest.raises(ValueError):
            load_permission_table(str(path))

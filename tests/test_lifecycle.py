"""
Tests for the lifecycle tables
"""
import pytest

from lams.core.errors import IllegalTransition
from lams.models.sia import SiaStatus
from lams.workflow.lifecycle import (APPLICATION, AWARD, PARCEL,
                                     SEC11_NOTIFICATION, SEC19_NOTIFICATION,
                                     SIA, notification_lifecycle)


class TestLifecycle:

    def test_sia_happy_path(self):
        status = "draft"
        for action in ("publish", "schedule_hearing", "complete_hearing", "generate_report", "close"):
            status = SIA.apply(status, action)
        assert status == "closed"
        assert SIA.is_terminal(status)

    def test_accepts_enum_members(self):
        assert SIA.apply(SiaStatus.DRAFT, "publish") == "published"

    def test_illegal_transition_names_entity_status_and_action(self):
        with pytest.raises(IllegalTransition) as exc_info:
            SIA.apply("published", "close")
        err = exc_info.value
        assert err.entity == "sia"
        assert err.from_status == "published"
        assert err.action == "close"
        assert err.to_dict()["details"] == {"entity": "sia", "from": "published", "action": "close"}

    def test_unknown_status_is_rejected(self):
        result = SIA.check("archived", "publish")
        assert not result.allowed
        assert result.reason.startswith("unknown_current_state")

    def test_parcel_status_only_moves_forward(self):
        assert PARCEL.apply("unaffected", "notify") == "under_acq"
        assert PARCEL.apply("under_acq", "award") == "awarded"
        assert PARCEL.apply("awarded", "possess") == "possessed"
        for action in ("notify", "award", "possess"):
            assert not PARCEL.can("possessed", action)
        assert not PARCEL.can("awarded", "notify")

    def test_award_void_from_draft_and_approved_only(self):
        assert AWARD.apply("draft", "void") == "voided"
        assert AWARD.apply("approved", "void") == "voided"
        with pytest.raises(IllegalTransition):
            AWARD.apply("disbursed", "void")

    def test_selected_application_can_only_be_reverted(self):
        assert APPLICATION.allowed_actions("selected") == ["revert_selection"]
        assert APPLICATION.is_terminal("selected")
        assert APPLICATION.is_terminal("rejected")
        assert not APPLICATION.is_terminal("verified")

    def test_notification_lifecycle_by_type(self):
        assert notification_lifecycle("sec11") is SEC11_NOTIFICATION
        assert notification_lifecycle("SEC19") is SEC19_NOTIFICATION
        assert not SEC19_NOTIFICATION.can("published", "open_objection_window")
        assert SEC11_NOTIFICATION.apply("objection_window_open", "close_window") == "objection_resolved"

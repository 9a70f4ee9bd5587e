"""
Tests for property schemes, applications, the e-draw and allotment
"""
from datetime import timedelta

import pytest

from lams.core.errors import (AlreadyDrawn, Forbidden, IllegalTransition,
                              InsufficientPool, InvalidState,
                              InventoryConflict, PreconditionFailed,
                              ValidationError)
from lams.models.scheme import (ApplicationStatus, DrawStatus, PropertyStatus,
                                SchemeStatus)
from lams.workflow.draw import run_draw


@pytest.fixture
def build_scheme(engine, officer, citizen, now):
    """Published scheme with ``applications`` verified applicants and ``properties`` units"""
    counter = {"n": 0}

    def _build(applications=5, properties=3, eligibility=None, deadline=None):
        scheme = engine.create_scheme(officer, now, "Sector 12 housing", "residential",
                                      eligibility, deadline)
        for _ in range(properties):
            counter["n"] += 1
            prop = engine.register_property(officer, now, f"U-{counter['n']:03d}", "Sector 12", 45)
            engine.add_scheme_inventory(officer, now, scheme.id, prop.id)
        engine.publish_scheme(officer, now, scheme.id)
        for i in range(applications):
            party = engine.register_party(citizen, now, f"Applicant {i}", f"90000000{i:02d}",
                                          annual_income=300000)
            application = engine.submit_application(citizen, now, scheme.id, party.id, ["docs/id.pdf"])
            engine.verify_application(officer, now, application.id)
        return engine.schemes.get_scheme(scheme.id)

    return _build


BAD_ELIGIBILITY = [
    {"min_annual_income": "abc"},
    {"max_annual_income": "Infinity"},
    {"min_annual_income": 500000, "max_annual_income": 100000},
    {"party_types": "individual"},
    {"party_types": [""]},
    {"caste": "open"},
    ["party_types"],
]


class TestEligibilityRules:

    @pytest.mark.parametrize("rules", BAD_ELIGIBILITY)
    def test_rejected_on_create(self, engine, officer, now, rules):
        with pytest.raises(ValidationError):
            engine.create_scheme(officer, now, "Sector 12 housing", "residential", rules)
        assert engine.schemes.list_schemes() == []

    @pytest.mark.parametrize("rules", BAD_ELIGIBILITY)
    def test_rejected_on_update(self, engine, officer, now, rules):
        scheme = engine.create_scheme(officer, now, "Sector 12 housing", "residential")
        with pytest.raises(ValidationError):
            engine.update_scheme(officer, now, scheme.id, eligibility=rules)
        assert engine.schemes.get_scheme(scheme.id).eligibility == {}

    def test_valid_rules_are_stored(self, engine, officer, now):
        rules = {"party_types": ["individual"], "min_annual_income": "0", "max_annual_income": 500000}
        scheme = engine.create_scheme(officer, now, "Sector 12 housing", "residential", rules)
        assert engine.schemes.get_scheme(scheme.id).eligibility == rules


class TestApplications:

    def test_submit_requires_published_scheme(self, engine, officer, citizen, now):
        scheme = engine.create_scheme(officer, now, "Draft", "commercial")
        party = engine.register_party(citizen, now, "A", "9000000000")
        with pytest.raises(IllegalTransition):
            engine.submit_application(citizen, now, scheme.id, party.id)

    def test_deadline(self, engine, citizen, now, build_scheme):
        scheme = build_scheme(applications=0, deadline=now + timedelta(days=1))
        party = engine.register_party(citizen, now, "Late", "9000000099")
        with pytest.raises(PreconditionFailed):
            engine.submit_application(citizen, now + timedelta(days=2), scheme.id, party.id)

    def test_one_active_application_per_party(self, engine, citizen, now, build_scheme):
        scheme = build_scheme(applications=0)
        party = engine.register_party(citizen, now, "Twice", "9000000098")
        engine.submit_application(citizen, now, scheme.id, party.id)
        with pytest.raises(ValidationError):
            engine.submit_application(citizen, now, scheme.id, party.id)

    def test_eligibility_checked_on_verify(self, engine, officer, citizen, now, build_scheme):
        scheme = build_scheme(applications=0, eligibility={"max_annual_income": 500000})
        party = engine.register_party(citizen, now, "Rich", "9000000097", annual_income=900000)
        application = engine.submit_application(citizen, now, scheme.id, party.id)
        with pytest.raises(InvalidState) as exc_info:
            engine.verify_application(officer, now, application.id)
        assert exc_info.value.details["failures"]
        assert engine.schemes.get_application(application.id).status == ApplicationStatus.SUBMITTED.value

    def test_verify_scores_and_bumps_pool(self, engine, officer, citizen, now, build_scheme):
        scheme = build_scheme(applications=0)
        before = scheme.pool_revision
        party = engine.register_party(citizen, now, "Ok", "9000000096")
        application = engine.submit_application(citizen, now, scheme.id, party.id)
        verified = engine.verify_application(officer, now, application.id)
        assert verified.status == ApplicationStatus.VERIFIED.value
        assert verified.score == 100
        assert engine.schemes.get_scheme(scheme.id).pool_revision == before + 1

    def test_reject_needs_reason(self, engine, officer, citizen, now, build_scheme):
        scheme = build_scheme(applications=0)
        party = engine.register_party(citizen, now, "No", "9000000095")
        application = engine.submit_application(citizen, now, scheme.id, party.id)
        with pytest.raises(ValidationError):
            engine.reject_application(officer, now, application.id, "")
        rejected = engine.reject_application(officer, now, application.id, "Missing income proof")
        assert rejected.status == ApplicationStatus.REJECTED.value


class TestDraw:

    def test_conduct(self, engine, officer, now, build_scheme):
        scheme = build_scheme()
        draw = engine.conduct_draw(officer, now, scheme.id, 3)

        selected = engine.schemes.list_applications(scheme.id, status=ApplicationStatus.SELECTED.value)
        verified = engine.schemes.list_applications(scheme.id, status=ApplicationStatus.VERIFIED.value)
        assert sorted(a.draw_seq for a in selected) == [1, 2, 3]
        assert len(verified) == 2
        assert all(a.draw_seq is None for a in verified)
        assert [a.id for a in sorted(selected, key=lambda a: a.draw_seq)] == draw.permutation[:3]
        assert engine.schemes.get_scheme(scheme.id).status == SchemeStatus.PUBLISHED.value

    def test_reproducible_from_persisted_inputs(self, engine, officer, auditor, now, build_scheme):
        scheme = build_scheme()
        draw = engine.conduct_draw(officer, now, scheme.id, 2)

        recomputed = run_draw(draw.seed, draw.nonce, draw.application_ids, draw.selected_count)
        assert recomputed.permutation == draw.permutation
        assert recomputed.audit_hash == draw.audit_hash
        assert sorted(draw.permutation) == draw.application_ids

        assert engine.verify_draw(auditor, draw.id) == {"draw_id": draw.id, "valid": True, "problems": []}

    def test_tampering_is_detected(self, db, engine, officer, auditor, now, build_scheme):
        scheme = build_scheme()
        draw = engine.conduct_draw(officer, now, scheme.id, 2)
        draw.permutation = list(reversed(draw.permutation))
        db.commit()

        report = engine.verify_draw(auditor, draw.id)
        assert not report["valid"]
        assert "permutation mismatch" in report["problems"]

    def test_only_one_completed_draw(self, engine, officer, now, build_scheme):
        scheme = build_scheme()
        engine.conduct_draw(officer, now, scheme.id, 1)
        with pytest.raises(AlreadyDrawn):
            engine.conduct_draw(officer, now, scheme.id, 1)

    @pytest.mark.parametrize("k", [0, 6, True, 2.0])
    def test_insufficient_pool(self, engine, officer, now, build_scheme, k):
        scheme = build_scheme()
        with pytest.raises(InsufficientPool):
            engine.conduct_draw(officer, now, scheme.id, k)
        assert engine.draws.list_draws(scheme.id) == []

    def test_draft_scheme(self, engine, officer, now):
        scheme = engine.create_scheme(officer, now, "Draft", "mixed")
        with pytest.raises(IllegalTransition):
            engine.conduct_draw(officer, now, scheme.id, 1)

    def test_reset_is_admin_only(self, engine, officer, admin, now, build_scheme):
        scheme = build_scheme()
        first = engine.conduct_draw(officer, now, scheme.id, 3)
        with pytest.raises(Forbidden):
            engine.reset_draw(officer, now, scheme.id, "Projector failed during live stream")

        voided = engine.reset_draw(admin, now, scheme.id, "Projector failed during live stream")
        assert voided.status == DrawStatus.VOIDED.value
        assert voided.void_reason == "Projector failed during live stream"
        verified = engine.schemes.list_applications(scheme.id, status=ApplicationStatus.VERIFIED.value)
        assert len(verified) == 5
        assert all(a.draw_seq is None for a in verified)

        second = engine.conduct_draw(officer, now, scheme.id, 3)
        assert second.id != first.id
        assert second.seed != first.seed
        assert second.application_ids == first.application_ids

    def test_reset_needs_reason(self, engine, officer, admin, now, build_scheme):
        scheme = build_scheme()
        engine.conduct_draw(officer, now, scheme.id, 1)
        with pytest.raises(ValidationError):
            engine.reset_draw(admin, now, scheme.id, "  ")


class TestAllotment:

    def test_allot_in_draw_order(self, engine, officer, now, build_scheme):
        scheme = build_scheme(applications=5, properties=3)
        draw = engine.conduct_draw(officer, now, scheme.id, 3)
        allotted = engine.allot_draw_results(officer, now, scheme.id)

        assert [p.allotted_application_id for p in allotted] == draw.permutation[:3]
        assert all(p.status == PropertyStatus.ALLOTTED.value for p in allotted)
        assert [p.id for p in allotted] == sorted(p.id for p in allotted)

    def test_not_enough_units(self, engine, officer, now, build_scheme):
        scheme = build_scheme(applications=5, properties=2)
        engine.conduct_draw(officer, now, scheme.id, 3)
        with pytest.raises(InventoryConflict):
            engine.allot_draw_results(officer, now, scheme.id)

    def test_reset_refused_after_allotment(self, engine, officer, admin, now, build_scheme):
        scheme = build_scheme()
        engine.conduct_draw(officer, now, scheme.id, 2)
        engine.allot_draw_results(officer, now, scheme.id)
        with pytest.raises(PreconditionFailed):
            engine.reset_draw(admin, now, scheme.id, "Too late")

    def test_unit_allotted_elsewhere_blocks_draw(self, engine, officer, now, build_scheme):
        first = build_scheme(applications=2, properties=1)
        engine.conduct_draw(officer, now, first.id, 1)
        [unit] = engine.allot_draw_results(officer, now, first.id)

        second = build_scheme(applications=2, properties=1)
        engine.add_scheme_inventory(officer, now, second.id, unit.id)
        with pytest.raises(InventoryConflict) as exc_info:
            engine.conduct_draw(officer, now, second.id, 1)
        assert exc_info.value.details["property_ids"] == [unit.id]

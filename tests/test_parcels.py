"""
Tests for the parcel registry
"""
from decimal import Decimal

import pytest

from lams.core.errors import Forbidden, NotFound, ValidationError
from lams.models.parcel import ParcelStatus


class TestParcelRegistry:

    def test_register(self, engine, make_parcel):
        parcel = make_parcel(lat="18.5793", lng="73.9800", land_use="agricultural")
        assert parcel.status == ParcelStatus.UNAFFECTED.value
        assert parcel.area_sq_m == Decimal("100")
        assert [e.action for e in engine.history("parcel", parcel.id)] == ["register"]

    @pytest.mark.parametrize("overrides", [
        {"parcel_no": " "},
        {"village": ""},
        {"area_sq_m": 0},
        {"area_sq_m": "abc"},
        {"area_sq_m": "Infinity"},
        {"area_sq_m": float("nan")},
        {"lat": "NaN", "lng": 10},
        {"lat": "18.5"},
        {"lat": 91, "lng": 10},
        {"lat": 10, "lng": -181},
    ])
    def test_invalid_fields(self, make_parcel, overrides):
        with pytest.raises(ValidationError):
            make_parcel(**overrides)

    def test_duplicate_parcel_no(self, make_parcel):
        make_parcel(parcel_no="S-12/3")
        with pytest.raises(ValidationError):
            make_parcel(parcel_no="S-12/3")

    def test_missing_parcel(self, engine):
        with pytest.raises(NotFound):
            engine.parcels.get_parcel(999)

    def test_citizen_cannot_register(self, engine, citizen, now):
        with pytest.raises(Forbidden):
            engine.register_parcel(citizen, now, parcel_no="X", village="V", taluka="T",
                                   district="D", area_sq_m=1)


class TestOwners:

    def test_aadhaar_format(self, engine, officer, now):
        with pytest.raises(ValidationError):
            engine.register_owner(officer, now, name="Sanjay", phone="9811111111", aadhaar="1234-5678-9012")
        owner = engine.register_owner(officer, now, name="Sanjay", phone="9811111111", aadhaar="123456789012")
        assert owner.aadhaar == "123456789012"

    def test_shares_cannot_exceed_whole(self, engine, officer, now, make_parcel):
        parcel = make_parcel()
        first = engine.register_owner(officer, now, name="A", phone="1")
        second = engine.register_owner(officer, now, name="B", phone="2")
        engine.add_owner_share(officer, now, parcel.id, first.id, "70.5")
        with pytest.raises(ValidationError) as exc_info:
            engine.add_owner_share(officer, now, parcel.id, second.id, 30)
        assert Decimal(exc_info.value.details["total_pct"]) == Decimal("100.5")
        engine.add_owner_share(officer, now, parcel.id, second.id, "29.5")
        assert len(engine.parcels.get_parcel(parcel.id).owners) == 2

    def test_owner_listed_once(self, engine, officer, now, make_parcel):
        parcel = make_parcel()
        owner = engine.register_owner(officer, now, name="A", phone="1")
        engine.add_owner_share(officer, now, parcel.id, owner.id, 10)
        with pytest.raises(ValidationError):
            engine.add_owner_share(officer, now, parcel.id, owner.id, 10)

    @pytest.mark.parametrize("share", [0, -5, 101])
    def test_share_range(self, engine, officer, now, make_parcel, share):
        parcel = make_parcel()
        owner = engine.register_owner(officer, now, name="A", phone="1")
        with pytest.raises(ValidationError):
            engine.add_owner_share(officer, now, parcel.id, owner.id, share)


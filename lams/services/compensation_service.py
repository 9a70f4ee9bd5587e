"""
Valuation & award engine

Amounts are computed in Decimal with banker's rounding to two places. An
award freezes the amount of the parcel's latest valuation at draft time;
later re-valuations never change it.
"""
from datetime import datetime
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Dict, List, Mapping, Optional

from lams.core.config import Settings, get_settings
from lams.core.errors import ValidationError, ValuationMissing
from lams.core.logging_config import LoggingConfig
from lams.core.permissions import Actor
from lams.models.compensation import (Award, AwardMode, AwardStatus,
                                      Valuation, ValuationBasis,
                                      ValuationFactor)
from lams.models.parcel import Owner, Parcel
from lams.services.base import BaseService
from lams.services.parcel_service import ParcelService, to_decimal
from lams.services.sequence_service import next_number
from lams.workflow.lifecycle import AWARD

logger = LoggingConfig.get_logger(__name__)

CENT = Decimal("0.01")


def quantize_amount(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_EVEN)


def parse_multipliers(multipliers: Optional[Mapping[str, object]]) -> Dict[str, Decimal]:
    """Validate factor names against ValuationFactor and values as positive decimals"""
    parsed: Dict[str, Decimal] = {}
    for name, raw in (multipliers or {}).items():
        key = str(getattr(name, "value", name))
        try:
            factor = ValuationFactor(key)
        except ValueError:
            raise ValidationError(
                f"unknown valuation factor {key!r}",
                {"factor": key, "allowed": [f.value for f in ValuationFactor]},
            )
        value = to_decimal(raw, f"multipliers.{factor.value}")
        if value <= 0:
            raise ValidationError(f"multiplier {factor.value} must be positive",
                                  {"factor": factor.value, "value": str(value)})
        parsed[factor.value] = value
    return parsed


def compute_amount(circle_rate, area_sq_m, multipliers: Optional[Mapping[str, object]] = None) -> Decimal:
    """circle_rate x area x product(multipliers), rounded half-even to 2 dp"""
    rate = to_decimal(circle_rate, "circle_rate")
    if rate <= 0:
        raise ValidationError("circle_rate must be positive", {"circle_rate": str(rate)})
    area = to_decimal(area_sq_m, "area_sq_m")
    if area <= 0:
        raise ValidationError("area_sq_m must be positive", {"area_sq_m": str(area)})
    amount = rate * area
    for value in parse_multipliers(multipliers).values():
        amount *= value
    return quantize_amount(amount)


class CompensationService(BaseService):

    def __init__(self, db, audit=None, settings: Optional[Settings] = None):
        super().__init__(db, audit)
        self.settings = settings or get_settings()
        self.parcels = ParcelService(db, self.audit)

    def compute_valuation(
        self,
        actor: Actor,
        now: datetime,
        parcel_id: int,
        basis: str,
        circle_rate,
        multipliers: Optional[Mapping[str, object]] = None,
        justification_notes: Optional[str] = None,
    ) -> Valuation:
        parcel = self.parcels.get_parcel(parcel_id)
        try:
            basis_value = ValuationBasis(str(getattr(basis, "value", basis))).value
        except ValueError:
            raise ValidationError(f"unknown valuation basis {basis!r}",
                                  {"allowed": [b.value for b in ValuationBasis]})
        parsed = parse_multipliers(multipliers)
        amount = compute_amount(circle_rate, parcel.area_sq_m, parsed)

        valuation = Valuation(
            parcel_id=parcel.id,
            basis=basis_value,
            circle_rate=to_decimal(circle_rate, "circle_rate"),
            area_sq_m=parcel.area_sq_m,
            multipliers={k: str(v) for k, v in parsed.items()},
            computed_amount=amount,
            justification_notes=justification_notes,
            created_by=actor.user_id,
            created_at=now,
        )
        self.db.add(valuation)
        self.db.flush()
        self.audit.record("valuation", valuation.id, "compute", actor, now,
                          event_data={"parcel_id": parcel.id, "amount": str(amount), "basis": basis_value})
        logger.info(f"Valuation {valuation.id} for parcel {parcel.parcel_no}: {amount}",
                    extra={"parcel_id": parcel.id, "valuation_id": valuation.id})
        return valuation

    def latest_valuation(self, parcel_id: int) -> Optional[Valuation]:
        """Most recent valuation by created_at, ties broken by id"""
        return (
            self.db.query(Valuation)
            .filter(Valuation.parcel_id == parcel_id)
            .order_by(Valuation.created_at.desc(), Valuation.id.desc())
            .first()
        )

    def list_valuations(self, parcel_id: int) -> List[Valuation]:
        return (
            self.db.query(Valuation)
            .filter(Valuation.parcel_id == parcel_id)
            .order_by(Valuation.created_at, Valuation.id)
            .all()
        )

    def draft_award(self, actor: Actor, now: datetime, parcel_id: int, owner_id: int, mode: str) -> Award:
        """
        Draft an award, freezing the latest valuation amount

        When the parcel has registered owners the amount is scaled by the
        owner's share; a parcel without registered owners is awarded in full.
        """
        parcel: Parcel = self.parcels.get_parcel(parcel_id, lock=True)
        self._get(Owner, owner_id, "owner")
        try:
            mode_value = AwardMode(str(getattr(mode, "value", mode))).value
        except ValueError:
            raise ValidationError(f"unknown award mode {mode!r}", {"allowed": [m.value for m in AwardMode]})

        valuation = self.latest_valuation(parcel.id)
        if valuation is None:
            raise ValuationMissing(f"parcel {parcel.parcel_no} has no valuation", {"parcel_id": parcel.id})

        share = self.parcels.owner_share(parcel, owner_id)
        if share is None:
            share = Decimal("100")
        elif share == 0:
            raise ValidationError(
                f"owner {owner_id} holds no share of parcel {parcel.parcel_no}",
                {"parcel_id": parcel.id, "owner_id": owner_id},
            )
        amount = quantize_amount(Decimal(str(valuation.computed_amount)) * share / Decimal("100"))

        award = Award(
            parcel_id=parcel.id,
            owner_id=owner_id,
            valuation_id=valuation.id,
            mode=mode_value,
            amount=amount,
            share_pct=share,
            status=AwardStatus.DRAFT.value,
            created_by=actor.user_id,
            created_at=now,
        )
        self.db.add(award)
        self.db.flush()
        self.audit.record("award", award.id, "draft", actor, now, to_status=award.status,
                          event_data={"parcel_id": parcel.id, "owner_id": owner_id,
                                      "valuation_id": valuation.id, "amount": str(amount)})
        return award

    def get_award(self, award_id: int, lock: bool = False) -> Award:
        return self._get(Award, award_id, "award", lock=lock)

    def list_awards(self, parcel_id: Optional[int] = None, status: Optional[str] = None) -> List[Award]:
        query = self.db.query(Award)
        if parcel_id is not None:
            query = query.filter(Award.parcel_id == parcel_id)
        if status:
            query = query.filter(Award.status == status)
        return query.order_by(Award.id).all()

    def approve_award(self, actor: Actor, now: datetime, award_id: int) -> Award:
        """Approve a draft and issue the next AWARD-YYYY-NNN number"""
        award = self.get_award(award_id, lock=True)
        AWARD.apply(award.status, "approve")
        award.award_no = next_number(self.db, self.settings.award_number_prefix, now)
        award.approved_at = now
        self._transition(AWARD, award, "approve", actor, now, domain_event="AwardApproved",
                         event_data={"award_no": award.award_no, "parcel_id": award.parcel_id,
                                     "owner_id": award.owner_id, "amount": str(award.amount)})
        logger.info(f"Approved award {award.award_no}", extra={"award_id": award.id})
        return award

    def disburse_award(self, actor: Actor, now: datetime, award_id: int,
                       payment_ref: Optional[str] = None) -> Award:
        award = self.get_award(award_id, lock=True)
        AWARD.apply(award.status, "disburse")
        award.payment_ref = payment_ref
        award.disbursed_at = now
        self._transition(AWARD, award, "disburse", actor, now, domain_event="AwardDisbursed",
                         event_data={"award_no": award.award_no, "amount": str(award.amount),
                                     "payment_ref": payment_ref})
        return award

    def void_award(self, actor: Actor, now: datetime, award_id: int, reason: str) -> Award:
        """Void a draft or approved award; an issued number stays consumed"""
        award = self.get_award(award_id, lock=True)
        AWARD.apply(award.status, "void")
        if not reason or not reason.strip():
            raise ValidationError("a reason is required to void an award", {"award_id": award.id})
        award.void_reason = reason
        self._transition(AWARD, award, "void", actor, now, domain_event="AwardVoided",
                         event_data={"award_no": award.award_no, "reason": reason})
        return award

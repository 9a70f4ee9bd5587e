"""
Parcel registry: parcels, owners, ownership shares and forward-only acquisition status
"""
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from lams.core.errors import ValidationError
from lams.core.logging_config import LoggingConfig
from lams.core.permissions import Actor
from lams.models.parcel import Owner, Parcel, ParcelOwner, ParcelStatus
from lams.services.base import BaseService
from lams.workflow.lifecycle import PARCEL

logger = LoggingConfig.get_logger(__name__)

_AADHAAR_RE = re.compile(r"^\d{12}$")


def to_decimal(value, field: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number", {"field": field, "value": str(value)})
    if not number.is_finite():
        raise ValidationError(f"{field} must be a finite number", {"field": field, "value": str(value)})
    return number


def validate_coordinates(lat, lng) -> None:
    """Both or neither; lat in [-90, 90], lng in [-180, 180]"""
    if lat is None and lng is None:
        return
    if lat is None or lng is None:
        raise ValidationError("lat and lng must be given together", {"lat": lat, "lng": lng})
    lat_d = to_decimal(lat, "lat")
    lng_d = to_decimal(lng, "lng")
    if not Decimal(-90) <= lat_d <= Decimal(90):
        raise ValidationError("lat must be within [-90, 90]", {"lat": str(lat)})
    if not Decimal(-180) <= lng_d <= Decimal(180):
        raise ValidationError("lng must be within [-180, 180]", {"lng": str(lng)})


class ParcelService(BaseService):

    def register_parcel(
        self,
        actor: Actor,
        now: datetime,
        parcel_no: str,
        village: str,
        taluka: str,
        district: str,
        area_sq_m,
        lat=None,
        lng=None,
        land_use: Optional[str] = None,
    ) -> Parcel:
        if not parcel_no or not parcel_no.strip():
            raise ValidationError("parcel_no is required", {"field": "parcel_no"})
        for name, value in (("village", village), ("taluka", taluka), ("district", district)):
            if not value or not value.strip():
                raise ValidationError(f"{name} is required", {"field": name})
        area = to_decimal(area_sq_m, "area_sq_m")
        if area <= 0:
            raise ValidationError("area_sq_m must be positive", {"area_sq_m": str(area)})
        validate_coordinates(lat, lng)

        if self.db.query(Parcel).filter(Parcel.parcel_no == parcel_no).first():
            raise ValidationError(f"parcel {parcel_no} already exists", {"parcel_no": parcel_no})

        parcel = Parcel(
            parcel_no=parcel_no.strip(),
            village=village.strip(),
            taluka=taluka.strip(),
            district=district.strip(),
            area_sq_m=area,
            lat=to_decimal(lat, "lat") if lat is not None else None,
            lng=to_decimal(lng, "lng") if lng is not None else None,
            land_use=land_use,
            status=ParcelStatus.UNAFFECTED.value,
            created_at=now,
        )
        self.db.add(parcel)
        self.db.flush()
        self.audit.record("parcel", parcel.id, "register", actor, now, to_status=parcel.status)
        logger.info(f"Registered parcel {parcel.parcel_no}", extra={"parcel_id": parcel.id})
        return parcel

    def get_parcel(self, parcel_id: int, lock: bool = False) -> Parcel:
        return self._get(Parcel, parcel_id, "parcel", lock=lock)

    def list_parcels(self, status: Optional[str] = None, village: Optional[str] = None) -> List[Parcel]:
        query = self.db.query(Parcel)
        if status:
            query = query.filter(Parcel.status == status)
        if village:
            query = query.filter(Parcel.village == village)
        return query.order_by(Parcel.id).all()

    def register_owner(
        self,
        actor: Actor,
        now: datetime,
        name: str,
        phone: str,
        email: Optional[str] = None,
        aadhaar: Optional[str] = None,
        address: Optional[str] = None,
    ) -> Owner:
        if not name or not name.strip():
            raise ValidationError("owner name is required", {"field": "name"})
        if not phone or not phone.strip():
            raise ValidationError("owner phone is required", {"field": "phone"})
        if aadhaar is not None and not _AADHAAR_RE.match(aadhaar):
            raise ValidationError("aadhaar must be 12 digits", {"field": "aadhaar"})

        owner = Owner(name=name.strip(), phone=phone.strip(), email=email, aadhaar=aadhaar,
                      address=address, created_at=now)
        self.db.add(owner)
        self.db.flush()
        self.audit.record("owner", owner.id, "register", actor, now)
        return owner

    def get_owner(self, owner_id: int) -> Owner:
        return self._get(Owner, owner_id, "owner")

    def add_owner_share(self, actor: Actor, now: datetime, parcel_id: int, owner_id: int, share_pct) -> ParcelOwner:
        """Record that ``owner_id`` holds ``share_pct`` percent of the parcel"""
        parcel = self.get_parcel(parcel_id, lock=True)
        self.get_owner(owner_id)
        share = to_decimal(share_pct, "share_pct")
        if share <= 0 or share > 100:
            raise ValidationError("share_pct must be within (0, 100]", {"share_pct": str(share)})
        if any(po.owner_id == owner_id for po in parcel.owners):
            raise ValidationError(
                f"owner {owner_id} already holds a share of parcel {parcel_id}",
                {"parcel_id": parcel_id, "owner_id": owner_id},
            )
        total = sum((Decimal(str(po.share_pct)) for po in parcel.owners), Decimal("0")) + share
        if total > 100:
            raise ValidationError(
                f"shares of parcel {parcel_id} would total {total}%",
                {"parcel_id": parcel_id, "total_pct": str(total)},
            )

        link = ParcelOwner(parcel_id=parcel.id, owner_id=owner_id, share_pct=share)
        parcel.owners.append(link)
        self.db.flush()
        self.audit.record(
            "parcel", parcel.id, "add_owner", actor, now,
            event_data={"owner_id": owner_id, "share_pct": str(share)},
        )
        return link

    def owner_share(self, parcel: Parcel, owner_id: int) -> Optional[Decimal]:
        """Registered share of ``owner_id``; None when the parcel has no registered owners"""
        if not parcel.owners:
            return None
        for po in parcel.owners:
            if po.owner_id == owner_id:
                return Decimal(str(po.share_pct))
        return Decimal("0")

    def mark_under_acquisition(self, parcel: Parcel, actor: Actor, now: datetime, notification_id: int) -> bool:
        """Advance an ``unaffected`` parcel; parcels already further along stay where they are"""
        if parcel.status != ParcelStatus.UNAFFECTED.value:
            return False
        self._transition(PARCEL, parcel, "notify", actor, now, event_data={"notification_id": notification_id})
        return True

    def mark_awarded(self, parcel: Parcel, actor: Actor, now: datetime, award_id: int) -> bool:
        """Advance the parcel when its first award is approved"""
        if parcel.status == ParcelStatus.AWARDED.value:
            return False
        self._transition(PARCEL, parcel, "award", actor, now, event_data={"award_id": award_id})
        return True

    def mark_possessed(self, parcel: Parcel, actor: Actor, now: datetime, possession_id: int) -> None:
        """Final parcel step, taken when the possession certificate is issued"""
        self._transition(
            PARCEL, parcel, "possess", actor, now,
            domain_event="PossessionRecorded",
            event_data={"parcel_no": parcel.parcel_no, "possession_id": possession_id},
        )
        parcel.updated_at = now
        logger.info(f"Possession recorded for parcel {parcel.parcel_no}",
                    extra={"parcel_id": parcel.id, "possession_id": possession_id})

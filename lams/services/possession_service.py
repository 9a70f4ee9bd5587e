"""
Possession proceedings for awarded parcels
"""
import hashlib
import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from lams.core.config import Settings, get_settings
from lams.core.errors import IllegalTransition, PreconditionFailed, ValidationError
from lams.core.logging_config import LoggingConfig
from lams.core.permissions import Actor
from lams.models.parcel import Parcel, ParcelStatus
from lams.models.possession import (GpsSource, Possession, PossessionEvidence,
                                    PossessionStatus)
from lams.services.base import BaseService
from lams.services.parcel_service import to_decimal, validate_coordinates
from lams.utils.datetime_utils import ensure_utc
from lams.workflow.lifecycle import POSSESSION

logger = LoggingConfig.get_logger(__name__)

_SHA256_RE = re.compile(r"^[0-9a-f]{64}$")

_FINISHED = (PossessionStatus.CLOSED.value, PossessionStatus.CANCELLED.value)


def certificate_hash(possession: Possession, parcel_no: str) -> str:
    """SHA-256 over the parcel, the visit date and every evidence hash, in capture order"""
    payload = json.dumps(
        {
            "possession_id": possession.id,
            "parcel_no": parcel_no,
            "scheduled_at": ensure_utc(possession.scheduled_at).isoformat(),
            "evidence": [e.sha256 for e in possession.evidence],
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class PossessionService(BaseService):

    def __init__(self, db, audit=None, settings: Optional[Settings] = None):
        super().__init__(db, audit)
        self.settings = settings or get_settings()

    def get_possession(self, possession_id: int, lock: bool = False) -> Possession:
        return self._get(Possession, possession_id, "possession", lock=lock)

    def list_possessions(self, parcel_id: Optional[int] = None, status: Optional[str] = None) -> List[Possession]:
        query = self.db.query(Possession)
        if parcel_id is not None:
            query = query.filter(Possession.parcel_id == parcel_id)
        if status:
            query = query.filter(Possession.status == status)
        return query.order_by(Possession.id).all()

    def active_for_parcel(self, parcel_id: int) -> Optional[Possession]:
        return (
            self.db.query(Possession)
            .filter(Possession.parcel_id == parcel_id, Possession.status.notin_(_FINISHED))
            .first()
        )

    def schedule(
        self,
        actor: Actor,
        now: datetime,
        parcel: Parcel,
        scheduled_at: datetime,
        remarks: Optional[str] = None,
    ) -> Possession:
        """
        Schedule the site visit for an awarded parcel

        One possession may be open per parcel at a time; a cancelled or
        closed one does not count.
        """
        if parcel.status != ParcelStatus.AWARDED.value:
            raise IllegalTransition("parcel", parcel.status, "schedule_possession")
        if scheduled_at is None:
            raise ValidationError("scheduled_at is required", {"field": "scheduled_at"})
        if ensure_utc(scheduled_at) < ensure_utc(now):
            raise ValidationError("possession cannot be scheduled in the past",
                                  {"scheduled_at": ensure_utc(scheduled_at).isoformat()})
        active = self.active_for_parcel(parcel.id)
        if active is not None:
            raise PreconditionFailed(
                f"parcel {parcel.parcel_no} already has possession {active.id} in progress",
                {"parcel_id": parcel.id, "possession_id": active.id, "status": active.status},
            )

        possession = Possession(
            parcel_id=parcel.id,
            status=PossessionStatus.SCHEDULED.value,
            scheduled_at=scheduled_at,
            remarks=remarks,
            created_by=actor.user_id if actor else None,
            created_at=now,
        )
        self.db.add(possession)
        self.db.flush()
        self.audit.record(
            "possession", possession.id, "schedule", actor, now,
            to_status=possession.status,
            domain_event="PossessionScheduled",
            event_data={"parcel_id": parcel.id, "scheduled_at": ensure_utc(scheduled_at).isoformat()},
        )
        logger.info(f"Possession scheduled for parcel {parcel.parcel_no}",
                    extra={"possession_id": possession.id, "parcel_id": parcel.id})
        return possession

    def start(self, actor: Actor, now: datetime, possession_id: int) -> Possession:
        possession = self.get_possession(possession_id, lock=True)
        POSSESSION.apply(possession.status, "start")
        if ensure_utc(now) < ensure_utc(possession.scheduled_at):
            raise PreconditionFailed(
                f"possession {possession.id} cannot start before its scheduled date",
                {"possession_id": possession.id, "scheduled_at": ensure_utc(possession.scheduled_at).isoformat()},
            )
        possession.updated_at = now
        self._transition(POSSESSION, possession, "start", actor, now)
        return possession

    def validate_evidence(self, items: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        items = list(items or [])
        if not items:
            raise ValidationError("at least one photo is required", {"field": "evidence"})
        limit = self.settings.max_possession_photos
        if len(items) > limit:
            raise ValidationError(f"at most {limit} photos are allowed per upload",
                                  {"count": len(items), "limit": limit})
        cleaned = []
        for i, item in enumerate(items):
            item = item or {}
            if not item.get("photo_ref"):
                raise ValidationError(f"photo {i} has no file reference", {"index": i})
            lat, lng = item.get("lat"), item.get("lng")
            if lat is None or lng is None:
                raise ValidationError(f"photo {i} needs coordinates", {"index": i})
            validate_coordinates(lat, lng)
            digest = str(item.get("sha256") or "").lower()
            if not _SHA256_RE.match(digest):
                raise ValidationError(f"photo {i} has no valid sha256", {"index": i})
            try:
                source = GpsSource(item.get("gps_source") or GpsSource.MANUAL.value)
            except ValueError:
                raise ValidationError(
                    f"photo {i} has unknown gps_source {item.get('gps_source')!r}",
                    {"index": i, "allowed": [s.value for s in GpsSource]},
                )
            cleaned.append({
                "photo_ref": item["photo_ref"],
                "lat": to_decimal(lat, "lat"),
                "lng": to_decimal(lng, "lng"),
                "sha256": digest,
                "gps_source": source.value,
            })
        return cleaned

    def capture_evidence(
        self, actor: Actor, now: datetime, possession_id: int, items: List[Dict[str, Any]]
    ) -> Possession:
        """Attach geotagged photos; allowed while the visit is under way and until the certificate"""
        possession = self.get_possession(possession_id, lock=True)
        POSSESSION.apply(possession.status, "capture_evidence")
        cleaned = self.validate_evidence(items)
        for item in cleaned:
            possession.evidence.append(PossessionEvidence(captured_at=now, **item))
        possession.updated_at = now
        self._transition(POSSESSION, possession, "capture_evidence", actor, now,
                         event_data={"photos": len(cleaned), "total": len(possession.evidence)})
        return possession

    def issue_certificate(
        self, actor: Actor, now: datetime, possession: Possession, parcel: Parcel, certificate_ref: str
    ) -> Possession:
        """Record the certificate; the caller moves the parcel to ``possessed``"""
        POSSESSION.apply(possession.status, "issue_certificate")
        if not certificate_ref or not certificate_ref.strip():
            raise ValidationError("certificate_ref is required", {"field": "certificate_ref"})
        if not possession.evidence:
            raise PreconditionFailed(f"possession {possession.id} has no evidence",
                                     {"possession_id": possession.id})
        possession.certificate_ref = certificate_ref.strip()
        possession.certificate_hash = certificate_hash(possession, parcel.parcel_no)
        possession.updated_at = now
        self._transition(
            POSSESSION, possession, "issue_certificate", actor, now,
            domain_event="PossessionCertificateIssued",
            event_data={"parcel_id": parcel.id, "certificate_hash": possession.certificate_hash},
        )
        return possession

    def update_registry(self, actor: Actor, now: datetime, possession_id: int) -> Possession:
        possession = self.get_possession(possession_id, lock=True)
        self._transition(POSSESSION, possession, "update_registry", actor, now)
        possession.updated_at = now
        return possession

    def close(self, actor: Actor, now: datetime, possession_id: int) -> Possession:
        possession = self.get_possession(possession_id, lock=True)
        self._transition(POSSESSION, possession, "close", actor, now, domain_event="PossessionClosed")
        possession.updated_at = now
        return possession

    def cancel(self, actor: Actor, now: datetime, possession_id: int, reason: str) -> Possession:
        if not reason or not reason.strip():
            raise ValidationError("cancellation reason is required", {"field": "reason"})
        possession = self.get_possession(possession_id, lock=True)
        self._transition(POSSESSION, possession, "cancel", actor, now, message=reason.strip())
        possession.updated_at = now
        return possession

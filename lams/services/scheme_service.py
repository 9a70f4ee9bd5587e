"""
Property schemes: scheme lifecycle, inventory, applicants and applications
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from lams.core.errors import (IllegalTransition, InvalidState,
                              PreconditionFailed, ValidationError)
from lams.core.logging_config import LoggingConfig
from lams.core.permissions import Actor
from lams.models.scheme import (Application, ApplicationStatus, Party,
                                Property, PropertyStatus, Scheme,
                                SchemeCategory, SchemeStatus)
from lams.services.base import BaseService
from lams.services.parcel_service import to_decimal
from lams.utils.datetime_utils import ensure_utc
from lams.workflow.lifecycle import APPLICATION, SCHEME

logger = LoggingConfig.get_logger(__name__)

_EDITABLE_FIELDS = ("name", "category", "eligibility", "application_deadline")

DEFAULT_SCORE = Decimal("100")

ELIGIBILITY_RULES = ("party_types", "min_annual_income", "max_annual_income")


def validate_eligibility(rules: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Check eligibility rules before they are stored on a scheme

    Supported rules: ``party_types`` (list of strings), ``min_annual_income``
    and ``max_annual_income`` (finite numbers, min not above max).
    """
    if rules is None:
        return {}
    if not isinstance(rules, dict):
        raise ValidationError("eligibility must be an object", {"field": "eligibility"})
    unknown = sorted(set(rules) - set(ELIGIBILITY_RULES))
    if unknown:
        raise ValidationError(f"unknown eligibility rules {unknown}",
                              {"rules": unknown, "allowed": list(ELIGIBILITY_RULES)})
    party_types = rules.get("party_types")
    if party_types is not None and (
        not isinstance(party_types, list) or not all(isinstance(t, str) and t.strip() for t in party_types)
    ):
        raise ValidationError("eligibility.party_types must be a list of names", {"field": "party_types"})
    bounds = {
        key: to_decimal(rules[key], f"eligibility.{key}")
        for key in ("min_annual_income", "max_annual_income")
        if key in rules
    }
    if len(bounds) == 2 and bounds["min_annual_income"] > bounds["max_annual_income"]:
        raise ValidationError("min_annual_income is above max_annual_income",
                              {key: str(value) for key, value in bounds.items()})
    return dict(rules)


def eligibility_failures(rules: Optional[Dict[str, Any]], party: Party) -> List[str]:
    """Evaluate a scheme's validated eligibility rules against a party"""
    rules = rules or {}
    failures = []
    party_types = rules.get("party_types")
    if party_types and party.party_type not in party_types:
        failures.append(f"party type {party.party_type} not in {party_types}")
    income = Decimal(str(party.annual_income)) if party.annual_income is not None else None
    for key, op in (("min_annual_income", "lt"), ("max_annual_income", "gt")):
        if key not in rules:
            continue
        bound = Decimal(str(rules[key]))
        if income is None:
            failures.append(f"{key} requires a declared annual income")
        elif (op == "lt" and income < bound) or (op == "gt" and income > bound):
            failures.append(f"annual income {income} violates {key}={bound}")
    return failures


class SchemeService(BaseService):

    def _category(self, category) -> str:
        try:
            return SchemeCategory(str(getattr(category, "value", category))).value
        except ValueError:
            raise ValidationError(f"unknown scheme category {category!r}",
                                  {"allowed": [c.value for c in SchemeCategory]})

    def create_scheme(
        self,
        actor: Actor,
        now: datetime,
        name: str,
        category: str,
        eligibility: Optional[Dict[str, Any]] = None,
        application_deadline: Optional[datetime] = None,
    ) -> Scheme:
        scheme = Scheme(
            name=(name or "").strip(),
            category=self._category(category),
            eligibility=validate_eligibility(eligibility),
            application_deadline=application_deadline,
            status=SchemeStatus.DRAFT.value,
            pool_revision=0,
            created_by=actor.user_id,
            created_at=now,
        )
        self.db.add(scheme)
        self.db.flush()
        self.audit.record("scheme", scheme.id, "create", actor, now, to_status=scheme.status)
        logger.info(f"Created scheme {scheme.name}", extra={"scheme_id": scheme.id})
        return scheme

    def get_scheme(self, scheme_id: int, lock: bool = False) -> Scheme:
        return self._get(Scheme, scheme_id, "scheme", lock=lock)

    def list_schemes(self, status: Optional[str] = None) -> List[Scheme]:
        query = self.db.query(Scheme)
        if status:
            query = query.filter(Scheme.status == status)
        return query.order_by(Scheme.id).all()

    def update_draft(self, actor: Actor, now: datetime, scheme_id: int, **changes) -> Scheme:
        scheme = self.get_scheme(scheme_id, lock=True)
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"fields {sorted(unknown)} cannot be edited", {"fields": sorted(unknown)})
        SCHEME.apply(scheme.status, "update")
        if changes.get("category") is not None:
            changes["category"] = self._category(changes["category"])
        if changes.get("eligibility") is not None:
            changes["eligibility"] = validate_eligibility(changes["eligibility"])
        for key, value in changes.items():
            if value is not None:
                setattr(scheme, key, value)
        self._transition(SCHEME, scheme, "update", actor, now, event_data={"fields": sorted(changes)})
        return scheme

    def publish(self, actor: Actor, now: datetime, scheme_id: int) -> Scheme:
        scheme = self.get_scheme(scheme_id, lock=True)
        SCHEME.apply(scheme.status, "publish")
        if not scheme.name:
            raise InvalidState("scheme name is required to publish", {"scheme_id": scheme.id})
        scheme.published_at = now
        self._transition(SCHEME, scheme, "publish", actor, now, domain_event="SchemePublished",
                         event_data={"name": scheme.name})
        return scheme

    def close(self, actor: Actor, now: datetime, scheme_id: int) -> Scheme:
        scheme = self.get_scheme(scheme_id, lock=True)
        SCHEME.apply(scheme.status, "close")
        scheme.closed_at = now
        self._transition(SCHEME, scheme, "close", actor, now, domain_event="SchemeClosed")
        return scheme

    # Inventory

    def register_property(self, actor: Actor, now: datetime, property_no: str, address: str, area) -> Property:
        if not property_no or not property_no.strip():
            raise ValidationError("property_no is required", {"field": "property_no"})
        if not address or not address.strip():
            raise ValidationError("address is required", {"field": "address"})
        area_d = to_decimal(area, "area")
        if area_d <= 0:
            raise ValidationError("area must be positive", {"area": str(area_d)})
        if self.db.query(Property).filter(Property.property_no == property_no.strip()).first():
            raise ValidationError(f"property {property_no} already exists", {"property_no": property_no})

        prop = Property(property_no=property_no.strip(), address=address.strip(), area=area_d,
                        status=PropertyStatus.AVAILABLE.value)
        self.db.add(prop)
        self.db.flush()
        self.audit.record("property", prop.id, "register", actor, now, to_status=prop.status)
        return prop

    def get_property(self, property_id: int, lock: bool = False) -> Property:
        return self._get(Property, property_id, "property", lock=lock)

    def add_inventory(self, actor: Actor, now: datetime, scheme_id: int, property_id: int) -> Scheme:
        scheme = self.get_scheme(scheme_id, lock=True)
        if scheme.status == SchemeStatus.CLOSED.value:
            raise IllegalTransition("scheme", scheme.status, "add_inventory")
        prop = self.get_property(property_id)
        if prop in scheme.inventory:
            raise ValidationError(f"property {prop.property_no} is already listed in scheme {scheme.id}",
                                  {"scheme_id": scheme.id, "property_id": prop.id})
        scheme.inventory.append(prop)
        self.db.flush()
        self.audit.record("scheme", scheme.id, "add_inventory", actor, now,
                          event_data={"property_id": prop.id})
        return scheme

    def inventory_conflicts(self, scheme: Scheme) -> List[Property]:
        """Inventory properties already allotted through another scheme"""
        return [
            p for p in scheme.inventory
            if p.status == PropertyStatus.ALLOTTED.value and p.allotted_scheme_id != scheme.id
        ]

    # Applicants and applications

    def register_party(
        self,
        actor: Optional[Actor],
        now: datetime,
        name: str,
        phone: str,
        party_type: str = "individual",
        email: Optional[str] = None,
        annual_income=None,
    ) -> Party:
        if not name or not name.strip():
            raise ValidationError("party name is required", {"field": "name"})
        if not phone or not phone.strip():
            raise ValidationError("party phone is required", {"field": "phone"})
        party = Party(
            name=name.strip(),
            phone=phone.strip(),
            party_type=party_type or "individual",
            email=email,
            annual_income=to_decimal(annual_income, "annual_income") if annual_income is not None else None,
            created_at=now,
        )
        self.db.add(party)
        self.db.flush()
        self.audit.record("party", party.id, "register", actor, now)
        return party

    def get_party(self, party_id: int) -> Party:
        return self._get(Party, party_id, "party")

    def submit_application(
        self,
        now: datetime,
        scheme_id: int,
        party_id: int,
        docs: Optional[List[str]] = None,
        actor: Optional[Actor] = None,
    ) -> Application:
        scheme = self.get_scheme(scheme_id, lock=True)
        if scheme.status != SchemeStatus.PUBLISHED.value:
            raise IllegalTransition("scheme", scheme.status, "submit_application")
        if scheme.application_deadline and ensure_utc(now) > ensure_utc(scheme.application_deadline):
            raise PreconditionFailed(
                f"application deadline of scheme {scheme.id} has passed",
                {"scheme_id": scheme.id, "deadline": ensure_utc(scheme.application_deadline).isoformat()},
            )
        party = self.get_party(party_id)
        active = (
            self.db.query(Application)
            .filter(
                Application.scheme_id == scheme.id,
                Application.party_id == party.id,
                Application.status != ApplicationStatus.REJECTED.value,
            )
            .first()
        )
        if active is not None:
            raise ValidationError(
                f"party {party.id} already has application {active.id} in scheme {scheme.id}",
                {"application_id": active.id},
            )

        application = Application(
            scheme_id=scheme.id,
            party_id=party.id,
            status=ApplicationStatus.SUBMITTED.value,
            docs=list(docs or []),
            created_at=now,
        )
        scheme.application_count = (scheme.application_count or 0) + 1
        self.db.add(application)
        self.db.flush()
        self.audit.record("application", application.id, "submit", actor, now,
                          to_status=application.status, event_data={"scheme_id": scheme.id},
                          domain_event="ApplicationSubmitted")
        return application

    def get_application(self, application_id: int, lock: bool = False) -> Application:
        return self._get(Application, application_id, "application", lock=lock)

    def list_applications(self, scheme_id: int, status: Optional[str] = None) -> List[Application]:
        query = self.db.query(Application).filter(Application.scheme_id == scheme_id)
        if status:
            query = query.filter(Application.status == status)
        return query.order_by(Application.id).all()

    def _bump_pool(self, scheme: Scheme) -> None:
        scheme.pool_revision = (scheme.pool_revision or 0) + 1

    def verify_application(self, actor: Actor, now: datetime, application_id: int) -> Application:
        """
        Verify a submitted application and score it against the eligibility rules

        Locks the scheme and bumps its pool revision, so a draw running
        concurrently on the same scheme fails its version check.
        """
        application = self.get_application(application_id)
        scheme = self.get_scheme(application.scheme_id, lock=True)
        application = self.get_application(application_id, lock=True)
        APPLICATION.apply(application.status, "verify")
        failures = eligibility_failures(scheme.eligibility, application.party)
        if failures:
            raise InvalidState(f"application {application.id} fails eligibility",
                               {"application_id": application.id, "failures": failures})

        application.score = DEFAULT_SCORE
        application.verified_at = now
        self._bump_pool(scheme)
        self._transition(APPLICATION, application, "verify", actor, now,
                         event_data={"scheme_id": scheme.id, "pool_revision": scheme.pool_revision})
        return application

    def reject_application(self, actor: Actor, now: datetime, application_id: int, reason: str) -> Application:
        application = self.get_application(application_id)
        scheme = self.get_scheme(application.scheme_id, lock=True)
        application = self.get_application(application_id, lock=True)
        APPLICATION.apply(application.status, "reject")
        if not reason or not reason.strip():
            raise ValidationError("a rejection reason is required", {"application_id": application.id})

        application.rejection_reason = reason
        self._bump_pool(scheme)
        self._transition(APPLICATION, application, "reject", actor, now, domain_event="ApplicationRejected",
                         event_data={"scheme_id": scheme.id, "reason": reason})
        return application

"""
E-draw over a scheme's verified applications: conduct, verify, reset and allot
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from lams.core.errors import (AlreadyDrawn, IllegalTransition,
                              InsufficientPool, InventoryConflict,
                              PreconditionFailed, ValidationError)
from lams.core.logging_config import LoggingConfig
from lams.core.permissions import Actor
from lams.models.scheme import (Application, ApplicationStatus, Draw,
                                DrawStatus, Property, PropertyStatus, Scheme,
                                SchemeStatus)
from lams.services.base import BaseService
from lams.services.scheme_service import SchemeService
from lams.workflow import draw as draw_algorithm
from lams.workflow.lifecycle import APPLICATION, DRAW

logger = LoggingConfig.get_logger(__name__)


class DrawService(BaseService):

    def __init__(self, db, audit=None):
        super().__init__(db, audit)
        self.schemes = SchemeService(db, self.audit)

    def completed_draw(self, scheme_id: int) -> Optional[Draw]:
        return (
            self.db.query(Draw)
            .filter(Draw.scheme_id == scheme_id, Draw.status == DrawStatus.COMPLETED.value)
            .first()
        )

    def get_draw(self, draw_id: int) -> Draw:
        return self._get(Draw, draw_id, "draw")

    def list_draws(self, scheme_id: int) -> List[Draw]:
        return self.db.query(Draw).filter(Draw.scheme_id == scheme_id).order_by(Draw.id).all()

    def conduct_draw(self, actor: Actor, now: datetime, scheme_id: int, selected_count: int) -> Draw:
        """
        Run the draw for a published scheme

        The first ``selected_count`` ids of the permutation become ``selected``
        with ``draw_seq`` 1..k; the remaining verified applications are not
        touched.
        """
        scheme: Scheme = self.schemes.get_scheme(scheme_id, lock=True)
        if scheme.status != SchemeStatus.PUBLISHED.value:
            raise IllegalTransition("scheme", scheme.status, "conduct_draw")
        if self.completed_draw(scheme.id) is not None:
            raise AlreadyDrawn(f"scheme {scheme.id} already has a completed draw", {"scheme_id": scheme.id})

        verified = (
            self.db.query(Application)
            .filter(Application.scheme_id == scheme.id, Application.status == ApplicationStatus.VERIFIED.value)
            .order_by(Application.id)
            .with_for_update()
            .all()
        )
        valid = isinstance(selected_count, int) and not isinstance(selected_count, bool)
        if not valid or not 0 < selected_count <= len(verified):
            raise InsufficientPool(
                f"cannot select {selected_count} of {len(verified)} verified applications",
                {"scheme_id": scheme.id, "selected_count": selected_count, "verified": len(verified)},
            )

        result = draw_algorithm.run_draw(
            draw_algorithm.new_seed(),
            draw_algorithm.new_nonce(),
            [a.id for a in verified],
            selected_count,
        )
        by_id = {a.id: a for a in verified}
        for app_id, seq in result.selected:
            application = by_id[app_id]
            application.status = APPLICATION.apply(application.status, "select")
            application.draw_seq = seq

        draw = Draw(
            scheme_id=scheme.id,
            seed=result.seed,
            nonce=result.nonce,
            input_digest=result.input_digest,
            application_ids=result.application_ids,
            permutation=result.permutation,
            selected_count=result.selected_count,
            audit_hash=result.audit_hash,
            status=DrawStatus.COMPLETED.value,
            conducted_by=actor.user_id,
            conducted_at=now,
        )
        self.db.add(draw)
        scheme.pool_revision = (scheme.pool_revision or 0) + 1
        self.db.flush()

        audit_data = self.describe(draw)
        self.audit.record("draw", draw.id, "conduct", actor, now, to_status=draw.status,
                          event_data=audit_data, domain_event="DrawConducted")
        for app_id, seq in result.selected:
            self.audit.record("application", app_id, "select", actor, now,
                              from_status=ApplicationStatus.VERIFIED, to_status=ApplicationStatus.SELECTED,
                              event_data={"draw_id": draw.id, "draw_seq": seq})
        logger.info(
            f"Draw {draw.id} conducted for scheme {scheme.id}: {selected_count} of {len(verified)} selected",
            extra={"scheme_id": scheme.id, "draw_id": draw.id, "seed": draw.seed, "nonce": draw.nonce,
                   "input_digest": draw.input_digest, "audit_hash": draw.audit_hash},
        )
        return draw

    def describe(self, draw: Draw) -> Dict[str, Any]:
        return {
            "scheme_id": draw.scheme_id,
            "seed": draw.seed,
            "nonce": draw.nonce,
            "input_digest": draw.input_digest,
            "application_ids": list(draw.application_ids),
            "permutation": list(draw.permutation),
            "selected_count": draw.selected_count,
            "audit_hash": draw.audit_hash,
        }

    def verify_draw(self, draw_id: int) -> Dict[str, Any]:
        """Recompute a persisted draw from its seed and input and compare"""
        draw = self.get_draw(draw_id)
        problems = []
        try:
            result = draw_algorithm.run_draw(draw.seed, draw.nonce, draw.application_ids, draw.selected_count)
        except ValueError as e:
            return {"draw_id": draw.id, "valid": False, "problems": [str(e)]}
        if result.application_ids != list(draw.application_ids):
            problems.append("application_ids are not in canonical order")
        if result.input_digest != draw.input_digest:
            problems.append("input_digest mismatch")
        if result.permutation != list(draw.permutation):
            problems.append("permutation mismatch")
        if result.audit_hash != draw.audit_hash:
            problems.append("audit_hash mismatch")
        if problems:
            logger.warning(f"Draw {draw.id} failed verification", extra={"draw_id": draw.id, "problems": problems})
        return {"draw_id": draw.id, "valid": not problems, "problems": problems}

    def reset_draw(self, actor: Actor, now: datetime, scheme_id: int, reason: str) -> Draw:
        """
        Void the completed draw of a scheme

        Its selected applications go back to ``verified`` with ``draw_seq``
        cleared, so a later draw starts from the same pool on a fresh seed.
        """
        if not reason or not reason.strip():
            raise ValidationError("a reason is required to reset a draw", {"scheme_id": scheme_id})
        scheme = self.schemes.get_scheme(scheme_id, lock=True)
        draw = self.completed_draw(scheme.id)
        if draw is None:
            raise PreconditionFailed(f"scheme {scheme.id} has no completed draw", {"scheme_id": scheme.id})
        allotted = (
            self.db.query(Property)
            .filter(Property.allotted_scheme_id == scheme.id, Property.status == PropertyStatus.ALLOTTED.value)
            .count()
        )
        if allotted:
            raise PreconditionFailed(
                f"draw {draw.id} results are already allotted",
                {"draw_id": draw.id, "allotted": allotted},
            )

        selected = (
            self.db.query(Application)
            .filter(Application.scheme_id == scheme.id, Application.status == ApplicationStatus.SELECTED.value)
            .with_for_update()
            .all()
        )
        for application in selected:
            previous_seq = application.draw_seq
            application.draw_seq = None
            self._transition(APPLICATION, application, "revert_selection", actor, now,
                             event_data={"draw_id": draw.id, "draw_seq": previous_seq})

        draw.voided_at = now
        draw.void_reason = reason
        scheme.pool_revision = (scheme.pool_revision or 0) + 1
        self._transition(DRAW, draw, "void", actor, now, domain_event="DrawReset",
                         event_data={"scheme_id": scheme.id, "reason": reason,
                                     "reverted_applications": len(selected)},
                         message=reason)
        logger.warning(
            f"Draw {draw.id} of scheme {scheme.id} reset: {reason}",
            extra={"scheme_id": scheme.id, "draw_id": draw.id, "actor_role": actor.role, "actor_id": actor.user_id},
        )
        return draw

    def allot_draw_results(self, actor: Actor, now: datetime, scheme_id: int) -> List[Property]:
        """Assign available inventory to selected applications in draw_seq order"""
        scheme = self.schemes.get_scheme(scheme_id, lock=True)
        draw = self.completed_draw(scheme.id)
        if draw is None:
            raise PreconditionFailed(f"scheme {scheme.id} has no completed draw", {"scheme_id": scheme.id})
        if any(p.allotted_scheme_id == scheme.id for p in scheme.inventory):
            raise PreconditionFailed(f"scheme {scheme.id} results are already allotted", {"scheme_id": scheme.id})

        winners = (
            self.db.query(Application)
            .filter(Application.scheme_id == scheme.id, Application.status == ApplicationStatus.SELECTED.value)
            .order_by(Application.draw_seq)
            .all()
        )
        available = [p for p in scheme.inventory if p.status == PropertyStatus.AVAILABLE.value]
        if len(available) < len(winners):
            raise InventoryConflict(
                f"scheme {scheme.id} has {len(available)} available properties for {len(winners)} winners",
                {"scheme_id": scheme.id, "available": len(available), "selected": len(winners)},
            )

        allotted = []
        for application, prop in zip(winners, available):
            prop.status = PropertyStatus.ALLOTTED.value
            prop.allotted_scheme_id = scheme.id
            prop.allotted_application_id = application.id
            prop.allotted_at = now
            allotted.append(prop)
        self.db.flush()
        for prop in allotted:
            self.audit.record("property", prop.id, "allot", actor, now,
                              from_status=PropertyStatus.AVAILABLE, to_status=PropertyStatus.ALLOTTED,
                              event_data={"scheme_id": scheme.id, "application_id": prop.allotted_application_id},
                              domain_event="PropertyAllotted")
        return allotted

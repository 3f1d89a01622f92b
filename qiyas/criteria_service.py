"""Assessment criteria persistence"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .models import AssessmentCriteria, CriteriaLevel, CriteriaType, Domain, DomainWeight
from .store import ASSESSMENT_CRITERIA, domains_ref

logger = logging.getLogger(__name__)


def get_assessment_criteria(db, framework_id: str) -> Optional[AssessmentCriteria]:
    """Get the criteria stored for a framework, or None."""
    try:
        snapshot = db.collection(ASSESSMENT_CRITERIA).document(framework_id).get()
    except Exception:
        logger.exception("Error getting assessment criteria for framework %s", framework_id)
        raise
    if not snapshot.exists:
        return None
    return AssessmentCriteria.from_dict(snapshot.to_dict() or {})


def save_assessment_criteria(db, framework_id: str, criteria_type: CriteriaType,
                             domain_weights: List[DomainWeight],
                             levels: Optional[List[CriteriaLevel]] = None) -> AssessmentCriteria:
    """Replace the criteria document of a framework."""
    criteria = AssessmentCriteria(
        framework_id=framework_id,
        type=criteria_type,
        domain_weights=list(domain_weights),
        levels=list(levels or []) if criteria_type != CriteriaType.PERCENTAGE else [],
        created_at=datetime.now(timezone.utc),
    )
    try:
        db.collection(ASSESSMENT_CRITERIA).document(framework_id).set(criteria.to_dict())
    except Exception:
        logger.exception("Error saving assessment criteria for framework %s", framework_id)
        raise
    logger.info("Saved %s criteria for framework %s (%d domains, %d levels)",
                criteria_type.value, framework_id, len(criteria.domain_weights), len(criteria.levels))
    return criteria


def delete_assessment_criteria(db, framework_id: str) -> None:
    try:
        db.collection(ASSESSMENT_CRITERIA).document(framework_id).delete()
    except Exception:
        logger.exception("Error deleting assessment criteria for framework %s", framework_id)
        raise


def get_framework_domains(db, framework_id: str) -> List[Domain]:
    """Domains of a framework, in store order."""
    try:
        return [Domain.from_dict(doc.id, doc.to_dict() or {}) for doc in domains_ref(db, framework_id).stream()]
    except Exception:
        logger.exception("Error getting domains for framework %s", framework_id)
        raise


class CriteriaStore:
    """Binds the criteria functions to one Firestore client.

    This is the store client the wizard talks to; each call may raise and the
    wizard decides how to surface the failure.
    """

    def __init__(self, db):
        self.db = db

    def get_assessment_criteria(self, framework_id: str) -> Optional[AssessmentCriteria]:
        return get_assessment_criteria(self.db, framework_id)

    def save_criteria(self, framework_id: str, criteria: AssessmentCriteria) -> bool:
        save_assessment_criteria(self.db, framework_id, criteria.type, criteria.domain_weights, criteria.levels)
        return True

    def delete_criteria(self, framework_id: str) -> bool:
        delete_assessment_criteria(self.db, framework_id)
        return True

    def get_framework_domains(self, framework_id: str) -> List[Domain]:
        return get_framework_domains(self.db, framework_id)


class InMemoryCriteriaStore:
    """Dict-backed store client for the CLI demo and tests"""

    def __init__(self, domains: Optional[Dict[str, List[Domain]]] = None):
        self.domains: Dict[str, List[Domain]] = {k: list(v) for k, v in (domains or {}).items()}
        self.criteria: Dict[str, AssessmentCriteria] = {}

    def add_domain(self, framework_id: str, domain: Domain) -> Domain:
        self.domains.setdefault(framework_id, []).append(domain)
        return domain

    def get_assessment_criteria(self, framework_id: str) -> Optional[AssessmentCriteria]:
        return self.criteria.get(framework_id)

    def save_criteria(self, framework_id: str, criteria: AssessmentCriteria) -> bool:
        if criteria.created_at is None:
            criteria.created_at = datetime.now(timezone.utc)
        self.criteria[framework_id] = criteria
        return True

    def delete_criteria(self, framework_id: str) -> bool:
        self.criteria.pop(framework_id, None)
        return True

    def get_framework_domains(self, framework_id: str) -> List[Domain]:
        return list(self.domains.get(framework_id, []))

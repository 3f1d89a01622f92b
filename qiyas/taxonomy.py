"""Frameworks, domains, controls and specifications"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .exceptions import DuplicateEntityError, ValidationError
from .models import (
    Control, Dimension, Domain, Framework, LocalizedText,
    Specification, convert_legacy_capability_level,
)
from .store import FRAMEWORKS, SERVER_TIMESTAMP, controls_ref, domains_ref, specifications_ref

logger = logging.getLogger(__name__)

NPC_FRAMEWORK_ID = "npc"


def _now_iso():
    return datetime.now(timezone.utc).isoformat()


# ============================================================================
# FRAMEWORKS
# ============================================================================

def list_frameworks(db) -> List[Framework]:
    return [Framework.from_dict(doc.id, doc.to_dict() or {}) for doc in db.collection(FRAMEWORKS).stream()]


def get_framework(db, framework_id: str) -> Optional[Framework]:
    snapshot = db.collection(FRAMEWORKS).document(framework_id).get()
    if not snapshot.exists:
        return None
    return Framework.from_dict(snapshot.id, snapshot.to_dict() or {})


def _check_framework_fields(name=None, description=None, creating=False):
    if creating or name is not None:
        if not name or not name.strip():
            raise ValidationError("Framework name is required" if creating else "Framework name cannot be empty")
    if creating or description is not None:
        if not description or not (description.get("en") or "").strip():
            raise ValidationError("Framework description in English is required")


def create_framework(db, name: str, description: Dict[str, str]) -> str:
    _check_framework_fields(name, description, creating=True)
    framework = Framework(
        id="",
        name=name.strip(),
        description=LocalizedText.from_dict(description),
        created_at=SERVER_TIMESTAMP,
        updated_at=SERVER_TIMESTAMP,
    )
    try:
        _, doc_ref = db.collection(FRAMEWORKS).add(framework.to_dict())
    except Exception:
        logger.exception("Error creating framework")
        raise
    return doc_ref.id


def update_framework(db, framework_id: str, name: Optional[str] = None,
                     description: Optional[Dict[str, str]] = None):
    _check_framework_fields(name, description)
    data = {"updatedAt": SERVER_TIMESTAMP}
    if name is not None:
        data["name"] = name.strip()
    if description is not None:
        data["description"] = LocalizedText.from_dict(description).to_dict()
    try:
        db.collection(FRAMEWORKS).document(framework_id).update(data)
    except Exception:
        logger.exception("Error updating framework with ID %s", framework_id)
        raise


def delete_framework(db, framework_id: str):
    try:
        db.collection(FRAMEWORKS).document(framework_id).delete()
    except Exception:
        logger.exception("Error deleting framework with ID %s", framework_id)
        raise


def create_or_update_npc_framework(db):
    """Write the NPC framework under its fixed id."""
    framework = Framework(
        id=NPC_FRAMEWORK_ID,
        name="NPC",
        description=LocalizedText(
            en="Manage the NPC enterprise framework and its domains.",
            ar="إدارة إطار عمل المؤسسة NPC ومجالاتها.",
        ),
        updated_at=SERVER_TIMESTAMP,
    )
    data = framework.to_dict()
    data.pop("createdAt")
    db.collection(FRAMEWORKS).document(NPC_FRAMEWORK_ID).set(data)


def migrate_to_npc_framework(db, old_id: str) -> bool:
    """Copy an old framework document to the "npc" id and delete the old one."""
    old_ref = db.collection(FRAMEWORKS).document(old_id)
    snapshot = old_ref.get()
    if not snapshot.exists:
        return False
    data = dict(snapshot.to_dict() or {})
    data["updatedAt"] = SERVER_TIMESTAMP
    db.collection(FRAMEWORKS).document(NPC_FRAMEWORK_ID).set(data)
    old_ref.delete()
    logger.info("Migrated framework %s to %s", old_id, NPC_FRAMEWORK_ID)
    return True


# ============================================================================
# DOMAINS
# ============================================================================

def list_domains(db, framework_id: str) -> List[Domain]:
    return [Domain.from_dict(doc.id, doc.to_dict() or {}) for doc in domains_ref(db, framework_id).stream()]


def get_domain(db, framework_id: str, domain_id: str) -> Optional[Domain]:
    snapshot = domains_ref(db, framework_id).document(domain_id).get()
    if not snapshot.exists:
        return None
    return Domain.from_dict(snapshot.id, snapshot.to_dict() or {})


def create_domain(db, framework_id: str, domain: Domain):
    """Store a domain under its own id; an existing id is rejected."""
    if not domain.domain_id:
        raise ValidationError("Domain ID is required")
    if not (domain.name.en or domain.name.ar):
        raise ValidationError("Domain name is required")
    doc_ref = domains_ref(db, framework_id).document(domain.domain_id)
    if doc_ref.get().exists:
        raise DuplicateEntityError("Domain", domain.domain_id)
    doc_ref.set(domain.to_dict())


def update_domain(db, framework_id: str, domain_id: str, updates: dict):
    domains_ref(db, framework_id).document(domain_id).update(updates)


def delete_domain(db, framework_id: str, domain_id: str):
    domains_ref(db, framework_id).document(domain_id).delete()


# ============================================================================
# CONTROLS
# ============================================================================

def parse_dimension(value) -> Dimension:
    try:
        return Dimension((value or "").strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid dimension: '{value}'. Must be one of: plan, implement, operate")


def list_controls(db, framework_id: str, domain_id: str) -> List[Control]:
    return [Control.from_dict(doc.id, doc.to_dict() or {})
            for doc in controls_ref(db, framework_id, domain_id).stream()]


def get_control(db, framework_id: str, domain_id: str, control_id: str) -> Optional[Control]:
    snapshot = controls_ref(db, framework_id, domain_id).document(control_id).get()
    if not snapshot.exists:
        return None
    return Control.from_dict(snapshot.id, snapshot.to_dict() or {})


def create_control(db, framework_id: str, domain_id: str, control: Control):
    if not control.control_id:
        raise ValidationError("Control ID is required")
    if not (control.name.en or control.name.ar):
        raise ValidationError("Control name is required")
    doc_ref = controls_ref(db, framework_id, domain_id).document(control.control_id)
    if doc_ref.get().exists:
        raise DuplicateEntityError("Control", control.control_id)
    doc_ref.set(control.to_dict())


def update_control(db, framework_id: str, domain_id: str, control_id: str, updates: dict):
    if "dimension" in updates:
        updates = dict(updates, dimension=parse_dimension(updates["dimension"]).value)
    controls_ref(db, framework_id, domain_id).document(control_id).update(updates)


def delete_control(db, framework_id: str, domain_id: str, control_id: str):
    controls_ref(db, framework_id, domain_id).document(control_id).delete()


# ============================================================================
# SPECIFICATIONS
# ============================================================================

def list_specifications(db, framework_id: str, domain_id: str, control_id: str) -> List[Specification]:
    """Specifications of a control, ordered by number; legacy levels are converted."""
    query = specifications_ref(db, framework_id, domain_id, control_id).order_by("number")
    return [Specification.from_dict(doc.id, doc.to_dict() or {}) for doc in query.stream()]


def add_specification(db, framework_id: str, domain_id: str, control_id: str,
                      specification: Specification) -> str:
    """Store a specification keyed by its number and return that id."""
    if not specification.number or not specification.name.en or not specification.name.ar:
        raise ValidationError("Missing required fields: number and name are required")
    now = _now_iso()
    specification.created_at = now
    specification.updated_at = now
    specifications_ref(db, framework_id, domain_id, control_id).document(specification.number).set(
        specification.to_dict())
    return specification.number


def update_specification(db, framework_id: str, domain_id: str, control_id: str,
                         specification_id: str, updates: dict):
    data = {key: value for key, value in updates.items() if key not in ("id", "createdAt")}
    if "capabilityLevel" in data:
        data["capabilityLevel"] = convert_legacy_capability_level(data["capabilityLevel"]).value
    data["updatedAt"] = _now_iso()
    specifications_ref(db, framework_id, domain_id, control_id).document(specification_id).update(data)


def delete_specification(db, framework_id: str, domain_id: str, control_id: str, specification_id: str):
    specifications_ref(db, framework_id, domain_id, control_id).document(specification_id).delete()


def filter_specifications(specifications: List[Specification], search_term: str = "",
                          level: str = "all") -> List[Specification]:
    """Search number/names/descriptions and filter by capability level."""
    term = (search_term or "").strip().lower()
    result = []
    for specification in specifications:
        if level != "all" and specification.capability_level.value != level:
            continue
        if term:
            haystack = [
                specification.number,
                specification.name.en, specification.name.ar,
                specification.description.en, specification.description.ar,
            ]
            if not any(term in (text or "").lower() for text in haystack):
                continue
        result.append(specification)
    return result


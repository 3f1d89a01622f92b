"""Organizations and projects"""

import logging
from typing import Dict, List, Optional

from google.cloud.firestore_v1.base_query import FieldFilter

from .exceptions import ValidationError
from .models import LocalizedText, Organization, Project, ProjectStatus, get_localized_value
from .store import ORGANIZATIONS, PROJECTS, SERVER_TIMESTAMP

logger = logging.getLogger(__name__)


# ============================================================================
# ORGANIZATIONS
# ============================================================================

def create_organization(db, name: Dict[str, str], project_ids: Optional[List[str]] = None,
                        description: Optional[Dict[str, str]] = None, default_lang: str = "en",
                        logo_url: Optional[str] = None) -> str:
    """Create an organization and return its generated id."""
    name_text = LocalizedText.from_dict(name)
    if not (name_text.en.strip() or name_text.ar.strip()):
        raise ValidationError("Organization name is required")
    organization = Organization(
        id="",
        name=name_text,
        description=LocalizedText.from_dict(description),
        default_lang=default_lang,
        logo_url=logo_url,
        project_ids=list(project_ids or []),
        created_at=SERVER_TIMESTAMP,
        updated_at=SERVER_TIMESTAMP,
    )
    try:
        _, doc_ref = db.collection(ORGANIZATIONS).add(organization.to_dict())
    except Exception:
        logger.exception("Error creating organization")
        raise
    return doc_ref.id


def get_organization(db, organization_id: str) -> Optional[Organization]:
    snapshot = db.collection(ORGANIZATIONS).document(organization_id).get()
    if not snapshot.exists:
        return None
    return Organization.from_dict(snapshot.id, snapshot.to_dict() or {})


def list_organizations(db) -> List[Organization]:
    return [Organization.from_dict(doc.id, doc.to_dict() or {}) for doc in db.collection(ORGANIZATIONS).stream()]


def update_organization(db, organization_id: str, updates: dict):
    """Update stored fields; createdAt is never overwritten."""
    data = {key: value for key, value in updates.items() if key != "createdAt"}
    data["updatedAt"] = SERVER_TIMESTAMP
    try:
        db.collection(ORGANIZATIONS).document(organization_id).update(data)
    except Exception:
        logger.exception("Error updating organization %s", organization_id)
        raise


def delete_organization(db, organization_id: str):
    try:
        db.collection(ORGANIZATIONS).document(organization_id).delete()
    except Exception:
        logger.exception("Error deleting organization %s", organization_id)
        raise


def get_organizations_by_project(db, project_id: str) -> List[Organization]:
    query = db.collection(ORGANIZATIONS).where(filter=FieldFilter("projectIds", "array_contains", project_id))
    return [Organization.from_dict(doc.id, doc.to_dict() or {}) for doc in query.stream()]


# ============================================================================
# PROJECTS
# ============================================================================

def create_project(db, name: Dict[str, str], description: Dict[str, str], organization_id: str,
                   start_date: str, project_deadline: str, framework_id: str,
                   status: str = "open", default_lang: str = "en") -> str:
    """Create a project and return its generated id."""
    name_text = LocalizedText.from_dict(name)
    if not (name_text.en.strip() or name_text.ar.strip()):
        raise ValidationError("Project name is required")
    if not organization_id:
        raise ValidationError("Project organization is required")
    try:
        project_status = ProjectStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid project status: {status}")
    project = Project(
        id="",
        name=name_text,
        description=LocalizedText.from_dict(description),
        organization_id=organization_id,
        framework_id=framework_id,
        start_date=start_date,
        project_deadline=project_deadline,
        status=project_status,
        default_lang=default_lang,
        created_at=SERVER_TIMESTAMP,
        updated_at=SERVER_TIMESTAMP,
    )
    try:
        _, doc_ref = db.collection(PROJECTS).add(project.to_dict())
    except Exception:
        logger.exception("Error creating project")
        raise
    return doc_ref.id


def list_projects(db) -> List[Project]:
    return [Project.from_dict(doc.id, doc.to_dict() or {}) for doc in db.collection(PROJECTS).stream()]


def get_project(db, project_id: str) -> Optional[Project]:
    snapshot = db.collection(PROJECTS).document(project_id).get()
    if not snapshot.exists:
        return None
    return Project.from_dict(snapshot.id, snapshot.to_dict() or {})


def update_project(db, project_id: str, updates: dict):
    data = {key: value for key, value in updates.items() if key != "createdAt"}
    if "status" in data:
        try:
            ProjectStatus(data["status"])
        except ValueError:
            raise ValidationError(f"Invalid project status: {data['status']}")
    data["updatedAt"] = SERVER_TIMESTAMP
    try:
        db.collection(PROJECTS).document(project_id).update(data)
    except Exception:
        logger.exception("Error updating project %s", project_id)
        raise


def delete_project(db, project_id: str):
    try:
        db.collection(PROJECTS).document(project_id).delete()
    except Exception:
        logger.exception("Error deleting project %s", project_id)
        raise


def _projects_where(db, field_name, value) -> List[Project]:
    query = db.collection(PROJECTS).where(filter=FieldFilter(field_name, "==", value))
    return [Project.from_dict(doc.id, doc.to_dict() or {}) for doc in query.stream()]


def get_projects_by_organization(db, organization_id: str) -> List[Project]:
    return _projects_where(db, "organizationId", organization_id)


def get_projects_by_status(db, status: str) -> List[Project]:
    return _projects_where(db, "status", status)


def get_projects_by_framework(db, framework_id: str) -> List[Project]:
    return _projects_where(db, "frameworkId", framework_id)


def filter_projects(projects: List[Project], search_term: str = "", status: str = "all",
                    organization_id: str = "all", framework_id: str = "all",
                    locale: str = "en") -> List[Project]:
    """Project list filter; "all" disables a select filter."""
    term = (search_term or "").strip().lower()
    result = []
    for project in projects:
        if status != "all" and project.status.value != status:
            continue
        if organization_id != "all" and project.organization_id != organization_id:
            continue
        if framework_id != "all" and project.framework_id != framework_id:
            continue
        if term:
            names = [
                get_localized_value(project.name, locale, default_lang=project.default_lang),
                project.name.en,
                project.name.ar,
            ]
            if not any(term in name.lower() for name in names if name):
                continue
        result.append(project)
    return result

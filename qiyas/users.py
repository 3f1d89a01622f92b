"""User administration across Firebase Auth and the users collection"""

import logging
import re
from typing import List, Optional

from firebase_admin import auth as firebase_auth
from google.cloud.firestore_v1.base_query import FieldFilter

from .exceptions import DuplicateEntityError, NotFoundError, ValidationError
from .models import User, UserRole, UserStatus
from .store import SERVER_TIMESTAMP, USERS

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


def _check_role(role):
    try:
        return UserRole(role)
    except ValueError:
        raise ValidationError(f"Invalid role: {role}")


def _check_status(status):
    try:
        return UserStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid status: {status}")


def create_user(db, client, email: str, password: str, name: str, role: str,
                organization_id: str = "", assigned_project_ids=None,
                status: str = "Active", locale: Optional[str] = None) -> str:
    """Create the Auth account, its role claims and the Firestore profile."""
    if not email or not password or not name or not role:
        raise ValidationError("Missing required fields")
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format")
    if len(password) < 6:
        raise ValidationError("Password must be at least 6 characters")
    user_role = _check_role(role)
    user_status = _check_status(status)

    try:
        record = client.create_user(
            email=email,
            password=password,
            display_name=name,
            disabled=user_status != UserStatus.ACTIVE,
        )
    except firebase_auth.EmailAlreadyExistsError:
        raise DuplicateEntityError("User", email, "Email already exists")
    except ValueError as e:
        raise ValidationError(str(e))

    client.set_custom_user_claims(record.uid, {"role": user_role.value, "organizationId": organization_id})

    user = User(
        id=record.uid,
        name=name,
        email=email,
        role=user_role,
        status=user_status,
        organization_id=organization_id,
        assigned_project_ids=list(assigned_project_ids or []),
        locale=locale,
        created_at=SERVER_TIMESTAMP,
    )
    db.collection(USERS).document(record.uid).set(user.to_dict())
    logger.info("Created user %s with role %s", record.uid, user_role.value)
    return record.uid


def get_user(db, user_id: str) -> Optional[User]:
    snapshot = db.collection(USERS).document(user_id).get()
    if not snapshot.exists:
        return None
    return User.from_dict(snapshot.id, snapshot.to_dict() or {})


def list_users(db, claims=None, role: Optional[str] = None, organization_id: Optional[str] = None,
               limit: Optional[int] = None) -> List[User]:
    """List users; callers who are not admins only see their own organization."""
    query = db.collection(USERS)
    if claims is not None and (claims.get('role') or 'User') != UserRole.ADMIN.value:
        organization_id = claims.get('organizationId') or ''
    if role:
        query = query.where(filter=FieldFilter("role", "==", role))
    if organization_id:
        query = query.where(filter=FieldFilter("organizationId", "==", organization_id))
    if limit:
        query = query.limit(int(limit))
    return [User.from_dict(doc.id, doc.to_dict() or {}) for doc in query.stream()]


def update_user(db, client, user_id: str, updates: dict):
    """Apply profile changes to Auth, claims and Firestore.

    ``updates`` uses the stored field names (name, email, role, status,
    organizationId, assignedProjectIds, locale); ``password`` is passed to
    Auth only.
    """
    doc_ref = db.collection(USERS).document(user_id)
    snapshot = doc_ref.get()
    if not snapshot.exists:
        raise NotFoundError("User", user_id)
    current = User.from_dict(snapshot.id, snapshot.to_dict() or {})
    role = _check_role(updates.get('role') or current.role.value)
    status = _check_status(updates['status']) if updates.get('status') else None

    auth_updates = {}
    if updates.get('email'):
        if not EMAIL_PATTERN.match(updates['email']):
            raise ValidationError("Invalid email format")
        auth_updates['email'] = updates['email']
    if updates.get('password'):
        if len(updates['password']) < 6:
            raise ValidationError("Password must be at least 6 characters")
        auth_updates['password'] = updates['password']
    if updates.get('name'):
        auth_updates['display_name'] = updates['name']
    if status is not None:
        auth_updates['disabled'] = status != UserStatus.ACTIVE

    if auth_updates:
        try:
            client.update_user(user_id, **auth_updates)
        except firebase_auth.EmailAlreadyExistsError:
            raise DuplicateEntityError("User", updates['email'], "Email already exists")

    if 'role' in updates or 'organizationId' in updates:
        client.set_custom_user_claims(user_id, {
            "role": role.value,
            "organizationId": updates.get('organizationId', current.organization_id),
        })

    data = {key: value for key, value in updates.items()
            if key in ('name', 'email', 'role', 'status', 'organizationId', 'assignedProjectIds', 'locale')}
    if data:
        doc_ref.update(data)


def set_user_status(db, client, user_id: str, status: str):
    update_user(db, client, user_id, {"status": status})


def delete_user(db, client, user_id: str):
    """Remove the Auth account, then the profile document."""
    try:
        client.delete_user(user_id)
    except firebase_auth.UserNotFoundError:
        logger.warning("Auth user %s already gone, deleting profile only", user_id)
    db.collection(USERS).document(user_id).delete()


def user_stats(users: List[User]) -> dict:
    """Counts for the dashboard cards"""
    stats = {
        "total": len(users),
        "active": 0,
        "inactive": 0,
        "byRole": {role.value: 0 for role in UserRole},
    }
    for user in users:
        if user.is_active:
            stats["active"] += 1
        else:
            stats["inactive"] += 1
        stats["byRole"][user.role.value] += 1
    return stats

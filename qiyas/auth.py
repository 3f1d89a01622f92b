"""Firebase session cookies and role checks for the Flask routes"""

import logging
from datetime import timedelta
from functools import wraps

from firebase_admin import exceptions as firebase_exceptions
from flask import current_app, g, jsonify, request

from .config import config
from .models import UserRole
from .store import get_auth

logger = logging.getLogger(__name__)

DEFAULT_ROLE = 'User'


def auth_client():
    """The Auth client used by the routes; tests put a double in app.config."""
    return current_app.config.get('AUTH_CLIENT') or get_auth()


def session_expires_in() -> timedelta:
    return timedelta(days=config.SESSION_EXPIRATION_DAYS)


def create_session_cookie(client, id_token: str) -> str:
    """Exchange a client ID token for a session cookie."""
    return client.create_session_cookie(id_token, expires_in=session_expires_in())


def verify_session(client, session_cookie: str):
    """Claims of a valid, unrevoked session cookie, or None."""
    if not session_cookie:
        return None
    try:
        return client.verify_session_cookie(session_cookie, check_revoked=True)
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.info("Rejected session cookie: %s", e)
        return None


def role_of(claims) -> str:
    return (claims or {}).get('role') or DEFAULT_ROLE


def can_manage_user(claims, target_uid: str) -> bool:
    """Admins manage anyone; everyone else only themselves."""
    if not claims:
        return False
    return role_of(claims) == UserRole.ADMIN.value or claims.get('uid') == target_uid


def set_session_cookie(response, session_cookie: str):
    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        session_cookie,
        max_age=int(session_expires_in().total_seconds()),
        httponly=True,
        secure=config.IS_PRODUCTION,
        samesite='Strict',
        path='/',
    )
    return response


def clear_session_cookie(response):
    response.delete_cookie(config.SESSION_COOKIE_NAME, path='/')
    return response


def authorize(roles=None):
    """Require a valid session cookie and, when given, one of the roles.

    The verified claims are left on ``g.claims`` for the view.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            session_cookie = request.cookies.get(config.SESSION_COOKIE_NAME)
            if not session_cookie:
                return jsonify({'success': False, 'error': 'Unauthorized - No session cookie'}), 401

            claims = verify_session(auth_client(), session_cookie)
            if claims is None:
                return jsonify({'success': False, 'error': 'Unauthorized - Invalid session'}), 401

            if roles and role_of(claims) not in roles:
                logger.warning("User %s with role %s denied %s", claims.get('uid'), role_of(claims), request.path)
                return jsonify({'success': False, 'error': 'Forbidden - Insufficient permissions'}), 403

            g.claims = claims
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    """Shorthand for authorize(['Admin'])"""
    return authorize([UserRole.ADMIN.value])(f)

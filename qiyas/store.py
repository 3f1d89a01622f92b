"""Firebase Admin bootstrap: Firestore client and Auth module"""

import json
import logging

import firebase_admin
from firebase_admin import auth, credentials, firestore

from .config import config

logger = logging.getLogger(__name__)

ORGANIZATIONS = "organizations"
PROJECTS = "projects"
FRAMEWORKS = "frameworks"
DOMAINS = "domains"
CONTROLS = "controls"
SPECIFICATIONS = "specifications"
USERS = "users"
ASSESSMENT_CRITERIA = "assessmentCriteria"

SERVER_TIMESTAMP = firestore.SERVER_TIMESTAMP


def format_private_key(private_key):
    """Normalise a private key copied out of a JSON key file into an env var."""
    if not private_key:
        return None
    if private_key.startswith('"') and private_key.endswith('"'):
        try:
            private_key = json.loads(private_key)
        except ValueError as e:
            logger.error("Error parsing private key from JSON: %s", e)
    return private_key.replace('\\n', '\n')


def _build_credential():
    private_key = format_private_key(config.FIREBASE_PRIVATE_KEY)
    if config.FIREBASE_PROJECT_ID and config.FIREBASE_CLIENT_EMAIL and private_key:
        return credentials.Certificate({
            "type": "service_account",
            "project_id": config.FIREBASE_PROJECT_ID,
            "client_email": config.FIREBASE_CLIENT_EMAIL,
            "private_key": private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        })
    if config.GOOGLE_APPLICATION_CREDENTIALS:
        return credentials.Certificate(config.GOOGLE_APPLICATION_CREDENTIALS)
    raise RuntimeError(
        "Missing Firebase Admin configuration. "
        f"ProjectId: {'OK' if config.FIREBASE_PROJECT_ID else 'MISSING'}, "
        f"ClientEmail: {'OK' if config.FIREBASE_CLIENT_EMAIL else 'MISSING'}, "
        f"PrivateKey: {'OK' if private_key else 'MISSING'}"
    )


def init_firebase():
    """Initialise the default Firebase app once and return it."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        options = {}
        if config.FIREBASE_PROJECT_ID:
            options["projectId"] = config.FIREBASE_PROJECT_ID
        if config.FIREBASE_STORAGE_BUCKET:
            options["storageBucket"] = config.FIREBASE_STORAGE_BUCKET
        app = firebase_admin.initialize_app(_build_credential(), options or None)
        logger.info("Firebase Admin initialised for project %s", config.FIREBASE_PROJECT_ID or "(default)")
        return app


def get_firestore():
    """Firestore client bound to the default Firebase app."""
    return firestore.client(init_firebase())


def get_auth():
    """The firebase_admin.auth module, after making sure the app exists."""
    init_firebase()
    return auth


def domains_ref(db, framework_id):
    return db.collection(FRAMEWORKS).document(framework_id).collection(DOMAINS)


def controls_ref(db, framework_id, domain_id):
    return domains_ref(db, framework_id).document(domain_id).collection(CONTROLS)


def specifications_ref(db, framework_id, domain_id, control_id):
    return controls_ref(db, framework_id, domain_id).document(control_id).collection(SPECIFICATIONS)

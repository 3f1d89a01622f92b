"""Shared fixtures: an in-memory Firestore double and a fake Auth client"""

import copy
import itertools
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from firebase_admin import auth as firebase_auth
from google.api_core.exceptions import NotFound

from qiyas.store import SERVER_TIMESTAMP


def _resolve(value):
    if value is SERVER_TIMESTAMP:
        return datetime.now(timezone.utc)
    if isinstance(value, dict):
        return {k: _resolve(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve(v) for v in value]
    return value


class FakeSnapshot:
    def __init__(self, doc_id, data, reference=None):
        self.id = doc_id
        self._data = data
        self.reference = reference

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, db, path):
        self._db = db
        self.path = path
        self.id = path[-1]

    def collection(self, name):
        return FakeCollection(self._db, self.path + (name,))

    def get(self):
        return FakeSnapshot(self.id, self._db.docs.get(self.path), self)

    def set(self, data, merge=False):
        data = _resolve(copy.deepcopy(data))
        if merge and self.path in self._db.docs:
            self._db.docs[self.path].update(data)
        else:
            self._db.docs[self.path] = data

    def update(self, data):
        if self.path not in self._db.docs:
            raise NotFound(f"No document to update: {'/'.join(self.path)}")
        self._db.docs[self.path].update(_resolve(copy.deepcopy(data)))

    def delete(self):
        self._db.docs.pop(self.path, None)


class FakeQuery:
    def __init__(self, collection, filters=(), order=None, max_results=None):
        self._collection = collection
        self._filters = list(filters)
        self._order = order
        self._limit = max_results

    def where(self, filter=None):
        return FakeQuery(self._collection, self._filters + [filter], self._order, self._limit)

    def order_by(self, field_path):
        return FakeQuery(self._collection, self._filters, field_path, self._limit)

    def limit(self, count):
        return FakeQuery(self._collection, self._filters, self._order, count)

    def _matches(self, data):
        for f in self._filters:
            value = data.get(f.field_path)
            if f.op_string == "==" and value != f.value:
                return False
            if f.op_string == "array_contains" and f.value not in (value or []):
                return False
        return True

    def stream(self):
        snapshots = [s for s in self._collection._snapshots() if self._matches(s.to_dict())]
        if self._order:
            snapshots.sort(key=lambda s: s.to_dict().get(self._order))
        if self._limit:
            snapshots = snapshots[:self._limit]
        return iter(snapshots)


class FakeCollection(FakeQuery):
    def __init__(self, db, path):
        self._db = db
        self.path = path
        super().__init__(self)

    def document(self, doc_id=None):
        if doc_id is None:
            doc_id = f"auto{next(self._db.ids)}"
        return FakeDocument(self._db, self.path + (doc_id,))

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return datetime.now(timezone.utc), ref

    def _snapshots(self):
        depth = len(self.path) + 1
        return [FakeSnapshot(path[-1], data, FakeDocument(self._db, path))
                for path, data in list(self._db.docs.items())
                if len(path) == depth and path[:-1] == self.path]


class FakeFirestore:
    """Enough of google.cloud.firestore.Client for the services"""

    def __init__(self):
        self.docs = {}
        self.ids = itertools.count(1)

    def collection(self, name):
        return FakeCollection(self, (name,))


class FakeAuth:
    """Stands in for the firebase_admin.auth module"""

    def __init__(self):
        self.sessions = {}
        self.users = {}
        self.claims = {}
        self.ids = itertools.count(1)

    def create_session_cookie(self, id_token, expires_in):
        if id_token == "bad-token":
            raise ValueError("Invalid ID token")
        return f"cookie-{id_token}"

    def verify_session_cookie(self, session_cookie, check_revoked=False):
        if session_cookie not in self.sessions:
            raise ValueError("Invalid session cookie")
        return dict(self.sessions[session_cookie])

    def create_user(self, email, password, display_name=None, disabled=False):
        if any(u.email == email for u in self.users.values()):
            raise firebase_auth.EmailAlreadyExistsError("The user with the provided email already exists", None, None)
        uid = f"uid{next(self.ids)}"
        self.users[uid] = SimpleNamespace(uid=uid, email=email, display_name=display_name, disabled=disabled)
        return self.users[uid]

    def set_custom_user_claims(self, uid, claims):
        self.claims[uid] = dict(claims)

    def update_user(self, uid, **kwargs):
        for key, value in kwargs.items():
            if key != "password":
                setattr(self.users[uid], key, value)

    def delete_user(self, uid):
        self.users.pop(uid, None)


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def fake_auth():
    client = FakeAuth()
    client.sessions["admin-cookie"] = {"uid": "admin1", "email": "admin@example.com", "role": "Admin"}
    client.sessions["consultant-cookie"] = {"uid": "cons1", "email": "c@example.com", "role": "Consultant",
                                            "organizationId": "org1"}
    client.sessions["plain-cookie"] = {"uid": "plain1", "email": "p@example.com"}
    return client


@pytest.fixture
def flask_app(db, fake_auth):
    import app as app_module
    app_module.app.config.update(TESTING=True, FIRESTORE_CLIENT=db, AUTH_CLIENT=fake_auth)
    app_module.WIZARDS.clear()
    app_module.DASHBOARD_CACHE.clear()
    yield app_module.app
    app_module.app.config.pop("FIRESTORE_CLIENT", None)
    app_module.app.config.pop("AUTH_CLIENT", None)


@pytest.fixture
def client(flask_app):
    """Test client signed in as an admin"""
    test_client = flask_app.test_client()
    test_client.set_cookie("session", "admin-cookie")
    return test_client


@pytest.fixture
def anonymous_client(flask_app):
    return flask_app.test_client()

# tripboard/conftest.py
"""
테스트 공용 fixture.

FakeFirestore 는 서비스 코드가 사용하는 Firestore API 일부만 흉내 내는 인메모리 구현입니다.
(collection/document/add/set(merge)/update(DELETE_FIELD)/delete/get/stream,
 where('array_contains' | '=='), order_by, on_snapshot)
on_snapshot 리스너는 등록 즉시 한 번, 이후 쓰기가 일어날 때마다 같은 스레드에서 동기적으로 호출됩니다.
"""
import copy
import itertools
import uuid
from datetime import datetime, timezone

import pytest
from firebase_admin import firestore
from flask_jwt_extended import create_access_token, create_refresh_token
from google.api_core import exceptions as google_exceptions

from tripboard import create_app


class FakeSnapshot:
    def __init__(self, path, data):
        self.reference_path = path
        self.id = path.rsplit('/', 1)[-1]
        self._data = copy.deepcopy(data)

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeWatch:
    def __init__(self, db, matches, snapshot_fn, callback):
        self._db = db
        self.matches = matches
        self._snapshot_fn = snapshot_fn
        self._callback = callback
        self._active = True

    @property
    def is_active(self):
        return self._active

    def drop(self):
        """리스너가 서버 쪽에서 끊어진 상황을 흉내 냅니다."""
        self._active = False

    def unsubscribe(self):
        self._active = False
        if self in self._db.watches:
            self._db.watches.remove(self)

    def fire(self):
        if self._active:
            self._callback(self._snapshot_fn(), [], datetime.now(timezone.utc))


class FakeQuery:
    def __init__(self, db, collection_path, filters=(), order=None):
        self._db = db
        self._collection_path = collection_path
        self._filters = tuple(filters)
        self._order = order

    def where(self, field_path, op_string, value):
        return FakeQuery(self._db, self._collection_path, self._filters + ((field_path, op_string, value),), self._order)

    def order_by(self, field_path, direction="ASCENDING"):
        return FakeQuery(self._db, self._collection_path, self._filters, (field_path, direction))

    def _matches(self, data):
        for field_path, op, value in self._filters:
            current = data.get(field_path)
            if op == 'array_contains':
                if not isinstance(current, list) or value not in current:
                    return False
            elif op == '==':
                if current != value:
                    return False
            else:
                raise NotImplementedError(op)
        return True

    def stream(self):
        self._db.reads += 1
        docs = [
            FakeSnapshot(path, data)
            for path, data in self._db.documents_in(self._collection_path)
            if self._matches(data)
        ]
        if self._order:
            field_path, direction = self._order
            docs.sort(key=lambda snap: snap.to_dict().get(field_path), reverse=direction == "DESCENDING")
        return docs

    def get(self):
        return self.stream()

    def on_snapshot(self, callback):
        self._db.check_listen()
        watch = FakeWatch(
            self._db,
            matches=lambda path: path.rsplit('/', 1)[0] == self._collection_path,
            snapshot_fn=self.stream,
            callback=callback,
        )
        self._db.watches.append(watch)
        watch.fire()
        return watch


class FakeCollection(FakeQuery):
    def __init__(self, db, path):
        super().__init__(db, path)
        self.path = path

    def document(self, document_id=None):
        return FakeDocumentRef(self._db, f"{self.path}/{document_id or uuid.uuid4().hex[:20]}")

    def add(self, data):
        doc_ref = self.document()
        doc_ref.set(data)
        return datetime.now(timezone.utc), doc_ref


class FakeDocumentRef:
    def __init__(self, db, path):
        self._db = db
        self.path = path
        self.id = path.rsplit('/', 1)[-1]

    def collection(self, name):
        return FakeCollection(self._db, f"{self.path}/{name}")

    def get(self):
        self._db.reads += 1
        return FakeSnapshot(self.path, self._db.store.get(self.path))

    def set(self, data, merge=False):
        self._db.check_write()
        current = self._db.store.get(self.path) if merge else None
        merged = copy.deepcopy(current) if current else {}
        for key, value in data.items():
            if value is firestore.DELETE_FIELD:
                merged.pop(key, None)
            else:
                merged[key] = copy.deepcopy(value)
        self._db.store[self.path] = merged
        self._db.notify(self.path)

    def update(self, data):
        self._db.check_write()
        if self.path not in self._db.store:
            raise google_exceptions.NotFound(f"No document to update: {self.path}")
        current = self._db.store[self.path]
        for key, value in data.items():
            if value is firestore.DELETE_FIELD:
                current.pop(key, None)
            else:
                current[key] = copy.deepcopy(value)
        self._db.notify(self.path)

    def delete(self):
        self._db.check_write()
        self._db.store.pop(self.path, None)
        self._db.notify(self.path)

    def on_snapshot(self, callback):
        self._db.check_listen()
        watch = FakeWatch(
            self._db,
            matches=lambda path: path == self.path,
            snapshot_fn=lambda: [self.get()],
            callback=callback,
        )
        self._db.watches.append(watch)
        watch.fire()
        return watch


class FakeFirestore:
    def __init__(self):
        self.store = {}
        self.watches = []
        self.reads = 0
        self.fail_writes = False
        self.listen_failures = 0

    def collection(self, name):
        return FakeCollection(self, name)

    def documents_in(self, collection_path):
        depth = collection_path.count('/') + 1
        for path in sorted(self.store):
            if path.startswith(collection_path + '/') and path.count('/') == depth:
                yield path, self.store[path]

    def check_write(self):
        if self.fail_writes:
            raise google_exceptions.PermissionDenied("Missing or insufficient permissions.")

    def check_listen(self):
        if self.listen_failures > 0:
            self.listen_failures -= 1
            raise google_exceptions.ServiceUnavailable("listen stream unavailable")

    def notify(self, path):
        for watch in list(self.watches):
            if watch.matches(path):
                watch.fire()


class FakeGoogleAuth:
    """GoogleAuthService 대체. auth_code 를 그대로 사용자 정보 키로 사용합니다."""

    def __init__(self, users=None):
        self.users = users or {}

    def exchange_code_for_user_info(self, auth_code, client_secrets_path, redirect_uri="postmessage"):
        if auth_code not in self.users:
            raise ValueError("invalid_grant")
        return self.users[auth_code]


_uid_counter = itertools.count(1)


@pytest.fixture
def fake_db():
    return FakeFirestore()


@pytest.fixture
def fake_google_auth():
    return FakeGoogleAuth()


@pytest.fixture
def app(fake_db, fake_google_auth):
    app = create_app('testing', db=fake_db, services={'google_auth': fake_google_auth})
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app):
    """uid 를 받아 Authorization 헤더를 만들어주는 함수"""
    def make(uid=None):
        uid = uid or f"user-{next(_uid_counter)}"
        with app.app_context():
            token = create_access_token(identity=uid)
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
def token_pair(app):
    def make(uid):
        with app.app_context():
            return create_access_token(identity=uid), create_refresh_token(identity=uid)
    return make

"""
In-memory collaborators for unit and integration tests.

InMemoryUserRepository mirrors UserRepository's contract (including the
unique email index and the conditional delete) without MongoDB.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from bson import ObjectId

from errors import DuplicateEmailError
from infrastructure.email.protocol import EmailKind
from schemas.models.user import UserDoc
from shared.crypto import hash_password

START = datetime.now(timezone.utc).replace(microsecond=0)
PASSWORD = "correct-horse-42"


def make_user(
    email: str = "owner@example.com",
    password: str = PASSWORD,
    *,
    verified: bool = True,
    **fields: Any,
) -> UserDoc:
    return UserDoc(
        _id=ObjectId(),
        email=email,
        password_hash=hash_password(password),
        name=fields.pop("name", "Test Owner"),
        email_verified=verified,
        **fields,
    )


class FakeClock:
    """Wall clock returning timezone-aware datetimes that only move when told."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeMonotonic:
    def __init__(self, start: float = 1000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> float:
        self.value += seconds
        return self.value


class RecordingEmailProvider:
    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.sent: list[tuple[EmailKind, str, dict[str, Any]]] = []

    async def send(
        self, kind: EmailKind, to_email: str, template_data: dict[str, Any]
    ) -> bool:
        self.sent.append((kind, to_email, dict(template_data)))
        return self.succeed

    def last_token(self) -> str:
        return self.sent[-1][2]["link"].rsplit("/", 1)[-1]


class InMemoryUserRepository:
    def __init__(self) -> None:
        self.docs: dict[ObjectId, dict] = {}
        self.fail_find_pending: Optional[Exception] = None
        self.fail_delete_for: set[ObjectId] = set()

    # helpers for tests
    def seed(self, user: UserDoc) -> UserDoc:
        user.id = user.id or ObjectId()
        self.docs[user.id] = user.to_mongo()
        return user

    def get(self, user_id) -> Optional[UserDoc]:
        return UserDoc.from_mongo(self.docs.get(ObjectId(str(user_id))))

    @staticmethod
    def _oid(user_id) -> Optional[ObjectId]:
        if isinstance(user_id, ObjectId):
            return user_id
        if isinstance(user_id, str) and ObjectId.is_valid(user_id):
            return ObjectId(user_id)
        return None

    def _find(self, predicate) -> Optional[UserDoc]:
        for doc in self.docs.values():
            if predicate(doc):
                return UserDoc.from_mongo(doc)
        return None

    async def ensure_indexes(self) -> None:
        return None

    async def find_by_id(self, user_id) -> Optional[UserDoc]:
        oid = self._oid(user_id)
        return UserDoc.from_mongo(self.docs.get(oid)) if oid else None

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        return self._find(lambda d: d["email"] == email)

    async def email_taken(self, email: str, exclude_id=None) -> bool:
        exclude = self._oid(exclude_id) if exclude_id is not None else None
        return any(
            d["email"] == email and oid != exclude for oid, d in self.docs.items()
        )

    async def find_by_verification_token(self, token_hash: str, now: datetime):
        return self._find(
            lambda d: d.get("verification_token_hash") == token_hash
            and d.get("verification_token_expires") is not None
            and d["verification_token_expires"] > now
        )

    async def find_by_reset_token(self, token_hash: str, now: datetime):
        return self._find(
            lambda d: d.get("reset_password_token_hash") == token_hash
            and d.get("reset_password_expires") is not None
            and d["reset_password_expires"] > now
        )

    async def find_by_email_change_token(self, token_hash: str, now: datetime):
        return self._find(
            lambda d: d.get("email_change_token_hash") == token_hash
            and d.get("email_change_expires") is not None
            and d["email_change_expires"] > now
        )

    async def find_pending_deletions(self) -> list[UserDoc]:
        if self.fail_find_pending is not None:
            raise self.fail_find_pending
        scheduled = [
            d
            for d in self.docs.values()
            if d.get("deletion_scheduled_at") is not None
            and d.get("deletion_scheduled_for") is not None
        ]
        scheduled.sort(key=lambda d: d["deletion_scheduled_for"])
        return [UserDoc.from_mongo(d) for d in scheduled]

    async def create(self, user: UserDoc) -> UserDoc:
        if any(d["email"] == user.email for d in self.docs.values()):
            raise DuplicateEmailError("An account with this email already exists", field="email")
        user.id = ObjectId()
        self.docs[user.id] = user.to_mongo()
        return user

    async def update(
        self,
        user_id,
        set_fields: Optional[dict[str, Any]] = None,
        unset_fields: Iterable[str] = (),
    ) -> bool:
        oid = self._oid(user_id)
        doc = self.docs.get(oid) if oid else None
        if doc is None:
            return False
        new_email = (set_fields or {}).get("email")
        if new_email is not None and any(
            d["email"] == new_email for other, d in self.docs.items() if other != oid
        ):
            raise DuplicateEmailError("An account with this email already exists", field="email")
        doc.update(set_fields or {})
        for field in unset_fields:
            doc.pop(field, None)
        return True

    async def increment_login_attempts(self, user_id, *, lock_until=None):
        oid = self._oid(user_id)
        doc = self.docs.get(oid) if oid else None
        if doc is None:
            return None
        doc["login_attempts"] = doc.get("login_attempts", 0) + 1
        if lock_until is not None:
            doc["lock_until"] = lock_until
        return UserDoc.from_mongo(doc)

    async def delete_if_due(self, user_id, now: datetime) -> bool:
        oid = self._oid(user_id)
        if oid in self.fail_delete_for:
            raise RuntimeError("write concern timeout")
        doc = self.docs.get(oid)
        if (
            doc is None
            or doc.get("deletion_scheduled_at") is None
            or doc.get("deletion_scheduled_for") is None
            or doc["deletion_scheduled_for"] > now
        ):
            return False
        del self.docs[oid]
        return True

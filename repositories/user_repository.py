"""
Repository for the `users` collection.

All methods are async and return typed UserDoc models. Write conflicts on the
unique email index surface as DuplicateEmailError so services never need to
know about pymongo exceptions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Optional, Union

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from errors import DuplicateEmailError
from schemas.models.user import UserDoc
from shared.datetime_utils import utc_now
from shared.logging import get_logger

log = get_logger(__name__)

UserId = Union[str, ObjectId]


def _oid(user_id: UserId) -> Optional[ObjectId]:
    if isinstance(user_id, ObjectId):
        return user_id
    if isinstance(user_id, str) and ObjectId.is_valid(user_id):
        return ObjectId(user_id)
    return None


class UserRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    @classmethod
    def from_database(cls, db: AsyncDatabase) -> "UserRepository":
        return cls(db["users"])

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("email", ASCENDING)], unique=True)
        for field in (
            "verification_token_hash",
            "reset_password_token_hash",
            "email_change_token_hash",
            "deletion_scheduled_for",
        ):
            await self._col.create_index([(field, ASCENDING)], sparse=True)
        log.info("user_indexes_ensured")

    # ── Lookups ──────────────────────────────────────────────────────────────

    async def find_by_id(self, user_id: UserId) -> Optional[UserDoc]:
        oid = _oid(user_id)
        if oid is None:
            return None
        return UserDoc.from_mongo(await self._col.find_one({"_id": oid}))

    async def find_by_email(self, email: str) -> Optional[UserDoc]:
        return UserDoc.from_mongo(await self._col.find_one({"email": email}))

    async def email_taken(self, email: str, exclude_id: Optional[UserId] = None) -> bool:
        query: dict[str, Any] = {"email": email}
        oid = _oid(exclude_id) if exclude_id is not None else None
        if oid is not None:
            query["_id"] = {"$ne": oid}
        return await self._col.find_one(query, projection={"_id": 1}) is not None

    async def find_by_verification_token(
        self, token_hash: str, now: datetime
    ) -> Optional[UserDoc]:
        doc = await self._col.find_one(
            {
                "verification_token_hash": token_hash,
                "verification_token_expires": {"$gt": now},
            }
        )
        return UserDoc.from_mongo(doc)

    async def find_by_reset_token(self, token_hash: str, now: datetime) -> Optional[UserDoc]:
        doc = await self._col.find_one(
            {
                "reset_password_token_hash": token_hash,
                "reset_password_expires": {"$gt": now},
            }
        )
        return UserDoc.from_mongo(doc)

    async def find_by_email_change_token(
        self, token_hash: str, now: datetime
    ) -> Optional[UserDoc]:
        doc = await self._col.find_one(
            {
                "email_change_token_hash": token_hash,
                "email_change_expires": {"$gt": now},
            }
        )
        return UserDoc.from_mongo(doc)

    async def find_pending_deletions(self) -> list[UserDoc]:
        """Every account that currently has a deletion schedule, soonest first."""
        cursor = self._col.find(
            {
                "deletion_scheduled_at": {"$ne": None},
                "deletion_scheduled_for": {"$ne": None},
            }
        ).sort("deletion_scheduled_for", ASCENDING)
        return [UserDoc.from_mongo(doc) async for doc in cursor]

    # ── Writes ───────────────────────────────────────────────────────────────

    async def create(self, user: UserDoc) -> UserDoc:
        now = utc_now()
        if user.created_at is None:
            user.created_at = now
        user.updated_at = now
        try:
            result = await self._col.insert_one(user.to_mongo())
        except DuplicateKeyError:
            raise DuplicateEmailError(
                "An account with this email already exists", field="email"
            )
        user.id = result.inserted_id
        return user

    async def update(
        self,
        user_id: UserId,
        set_fields: Optional[dict[str, Any]] = None,
        unset_fields: Iterable[str] = (),
    ) -> bool:
        """Apply a partial update. Returns True if a document matched."""
        oid = _oid(user_id)
        if oid is None:
            return False
        update: dict[str, Any] = {"$set": {**(set_fields or {}), "updated_at": utc_now()}}
        unset = {field: "" for field in unset_fields}
        if unset:
            update["$unset"] = unset
        try:
            result = await self._col.update_one({"_id": oid}, update)
        except DuplicateKeyError:
            raise DuplicateEmailError(
                "An account with this email already exists", field="email"
            )
        return result.matched_count > 0

    async def increment_login_attempts(
        self, user_id: UserId, *, lock_until: Optional[datetime] = None
    ) -> Optional[UserDoc]:
        """Atomically bump the failure counter, optionally locking in the same write."""
        oid = _oid(user_id)
        if oid is None:
            return None
        update: dict[str, Any] = {
            "$inc": {"login_attempts": 1},
            "$set": {"updated_at": utc_now()},
        }
        if lock_until is not None:
            update["$set"]["lock_until"] = lock_until
        doc = await self._col.find_one_and_update(
            {"_id": oid}, update, return_document=ReturnDocument.AFTER
        )
        return UserDoc.from_mongo(doc)

    async def delete_if_due(self, user_id: UserId, now: datetime) -> bool:
        """Delete only if the account is still scheduled and past its deadline."""
        oid = _oid(user_id)
        if oid is None:
            return False
        result = await self._col.delete_one(
            {
                "_id": oid,
                "deletion_scheduled_at": {"$ne": None},
                "deletion_scheduled_for": {"$lte": now},
            }
        )
        return result.deleted_count == 1

"""
Account persistence on the `accounts` collection.

Every counter/lock mutation is a single atomic update so concurrent logins
against the same account never read-modify-write in process. Locks can only
be extended by a racing request (``$max``), never shortened.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import EmailExistsError
from schemas.models.account import AccountDoc
from schemas.models.base import to_object_id
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)

COLLECTION_NAME = "accounts"


class AccountRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def ensure_indexes(self) -> None:
        try:
            await self._col.create_index([("email", ASCENDING)], unique=True)
        except PyMongoError as e:
            log.error(
                "index_creation_failed",
                collection=COLLECTION_NAME,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def insert(self, account: AccountDoc) -> str:
        """Insert *account*; the unique email index rejects duplicates atomically."""
        try:
            result = await self._col.insert_one(account.to_mongo())
        except DuplicateKeyError:
            raise EmailExistsError()
        return str(result.inserted_id)

    async def find_by_id(self, account_id: str) -> Optional[AccountDoc]:
        oid = to_object_id(account_id)
        if oid is None:
            return None
        return AccountDoc.from_mongo(await self._col.find_one({"_id": oid}))

    async def find_by_email(self, email: str) -> Optional[AccountDoc]:
        doc = await self._col.find_one({"email": normalize_email(email)})
        return AccountDoc.from_mongo(doc)

    async def mark_email_verified(self, account_id: str, now: datetime) -> bool:
        result = await self._col.update_one(
            {"_id": to_object_id(account_id)},
            {"$set": {"email_verified": True, "updated_at": now}},
        )
        return result.matched_count == 1

    async def record_failed_login(
        self,
        account_id: str,
        *,
        threshold: int,
        lock_until: datetime,
        now: datetime,
    ) -> int:
        """Increment the failure counter; lock once it reaches *threshold*.

        Returns:
            The counter value after the increment (0 if the account vanished).
        """
        oid = to_object_id(account_id)
        doc = await self._col.find_one_and_update(
            {"_id": oid},
            {"$inc": {"failed_login_attempts": 1}, "$set": {"updated_at": now}},
            projection={"failed_login_attempts": 1},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            return 0
        attempts = int(doc.get("failed_login_attempts", 0))
        if attempts >= threshold:
            await self._col.update_one(
                {"_id": oid}, {"$max": {"locked_until": lock_until}}
            )
        return attempts

    async def clear_expired_lock(self, account_id: str, now: datetime) -> bool:
        """Reset counter and lock, but only if the lock window has already passed."""
        result = await self._col.update_one(
            {"_id": to_object_id(account_id), "locked_until": {"$lte": now}},
            {
                "$set": {
                    "failed_login_attempts": 0,
                    "locked_until": None,
                    "updated_at": now,
                }
            },
        )
        return result.modified_count == 1

    async def record_successful_login(self, account_id: str, now: datetime) -> bool:
        """Stamp last_login and clear counters.

        Returns False when a concurrent request locked the account in the
        meantime; the lock is left untouched in that case.
        """
        result = await self._col.update_one(
            {
                "_id": to_object_id(account_id),
                "$or": [{"locked_until": None}, {"locked_until": {"$lte": now}}],
            },
            {
                "$set": {
                    "failed_login_attempts": 0,
                    "locked_until": None,
                    "last_login": now,
                    "updated_at": now,
                }
            },
        )
        return result.matched_count == 1

    async def update_password_hash(
        self, account_id: str, password_hash: str, now: datetime
    ) -> None:
        """Swap in a re-hash of the same password (cost upgrade); counters untouched."""
        await self._col.update_one(
            {"_id": to_object_id(account_id)},
            {"$set": {"password_hash": password_hash, "updated_at": now}},
        )

    async def replace_password(
        self, account_id: str, password_hash: str, now: datetime
    ) -> bool:
        result = await self._col.update_one(
            {"_id": to_object_id(account_id)},
            {
                "$set": {
                    "password_hash": password_hash,
                    "failed_login_attempts": 0,
                    "locked_until": None,
                    "updated_at": now,
                }
            },
        )
        return result.matched_count == 1

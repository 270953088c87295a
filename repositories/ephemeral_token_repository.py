"""
Ephemeral token persistence on the `ephemeral-tokens` collection.

Consumption is a single conditional find-and-modify, so a token can be
consumed at most once even under concurrent requests. Expiry is part of
every lookup filter; the TTL index only tidies up.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import PyMongoError

from schemas.models.base import to_object_id
from schemas.models.ephemeral_token import EphemeralTokenDoc, TokenKind
from shared.logging import get_logger

log = get_logger(__name__)

COLLECTION_NAME = "ephemeral-tokens"


class EphemeralTokenRepository:
    def __init__(self, collection: AsyncCollection) -> None:
        self._col = collection

    async def ensure_indexes(self) -> None:
        try:
            await self._col.create_index([("token_hash", ASCENDING)], unique=True)
            await self._col.create_index(
                [("account_id", ASCENDING), ("kind", ASCENDING)]
            )
            # Used reset tokens are kept; only verification tokens are reaped
            await self._col.create_index(
                [("expires_at", ASCENDING)],
                expireAfterSeconds=0,
                partialFilterExpression={"kind": TokenKind.EMAIL_VERIFICATION.value},
            )
        except PyMongoError as e:
            log.error(
                "index_creation_failed",
                collection=COLLECTION_NAME,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def insert(self, token: EphemeralTokenDoc) -> str:
        result = await self._col.insert_one(token.to_mongo())
        return str(result.inserted_id)

    async def delete_unused_for_account(self, account_id: str, kind: TokenKind) -> int:
        result = await self._col.delete_many(
            {"account_id": to_object_id(account_id), "kind": kind.value, "used": False}
        )
        return result.deleted_count

    async def claim(
        self, token_hash: str, kind: TokenKind, now: datetime
    ) -> Optional[EphemeralTokenDoc]:
        """Atomically flip an unexpired, unused token of *kind* to used."""
        doc = await self._col.find_one_and_update(
            {
                "token_hash": token_hash,
                "kind": kind.value,
                "used": False,
                "expires_at": {"$gt": now},
            },
            {"$set": {"used": True, "used_at": now}},
            return_document=ReturnDocument.AFTER,
        )
        return EphemeralTokenDoc.from_mongo(doc)

    async def release(self, token_id: str) -> None:
        """Undo claim() when the account write that followed it failed."""
        await self._col.update_one(
            {"_id": to_object_id(token_id)},
            {"$set": {"used": False, "used_at": None}},
        )

    async def delete(self, token_id: str) -> None:
        await self._col.delete_one({"_id": to_object_id(token_id)})

"""
app/services/account_service.py

Purpose: Account persistence

- Lookup by phone number and by id
- Insert-or-update keyed by phone number, enforcing uniqueness
- Bulk clearing of expired verification codes
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError

from app.core.exceptions import DuplicateAccountError
from app.core.logging import get_logger, LogContext
from app.models.account import Account, object_id_or_none
from utils.validation_utils import mask_phone

logger = get_logger(__name__)


class AccountStore(ABC):
    """Persistence contract used by the auth flow."""

    @abstractmethod
    async def find_by_phone(self, phone_number: str) -> Optional[Account]:
        ...

    @abstractmethod
    async def find_by_id(self, account_id: str) -> Optional[Account]:
        ...

    @abstractmethod
    async def save(self, account: Account) -> Account:
        """
        Inserts an unsaved account (no id) or updates an existing one.

        Raises:
            DuplicateAccountError: an insert collided with an existing phone number
        """

    @abstractmethod
    async def cleanup_expired_codes(self, now: datetime) -> int:
        """Clears code/expiry on every account whose code has expired at `now`."""


class MongoAccountStore(AccountStore):
    """Account store backed by the `accounts` collection."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def find_by_phone(self, phone_number: str) -> Optional[Account]:
        doc = await self.collection.find_one({"phone_number": phone_number})
        return Account.from_document(doc) if doc else None

    async def find_by_id(self, account_id: str) -> Optional[Account]:
        object_id = object_id_or_none(account_id)
        if object_id is None:
            return None
        doc = await self.collection.find_one({"_id": object_id})
        return Account.from_document(doc) if doc else None

    async def save(self, account: Account) -> Account:
        with LogContext(phone_number=mask_phone(account.phone_number)):
            doc = account.to_document()

            if account.id is None:
                insert_doc = {k: v for k, v in doc.items() if v is not None}
                try:
                    result = await self.collection.insert_one(insert_doc)
                except DuplicateKeyError:
                    logger.warning("Duplicate phone number on insert")
                    raise DuplicateAccountError()

                logger.info("Account created")
                return account.update(id=str(result.inserted_id))

            update = {"$set": {k: v for k, v in doc.items() if v is not None}}
            unset = {k: "" for k, v in doc.items() if v is None}
            if unset:
                update["$unset"] = unset

            try:
                await self.collection.update_one(
                    {"_id": object_id_or_none(account.id)},
                    update
                )
            except DuplicateKeyError:
                logger.warning("Duplicate phone number on update")
                raise DuplicateAccountError()

            return account

    async def cleanup_expired_codes(self, now: datetime) -> int:
        result = await self.collection.update_many(
            {"verification_code_expiry": {"$lte": now}},
            {
                "$unset": {
                    "verification_code": "",
                    "verification_code_expiry": ""
                }
            }
        )
        if result.modified_count:
            logger.info(f"Cleared {result.modified_count} expired verification codes")
        return result.modified_count

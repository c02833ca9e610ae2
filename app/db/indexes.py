"""
app/db/indexes.py

Purpose: Database index management

- Unique phone number index (one account per number)
- Expiry index backing the expired-code sweep
"""

from pymongo import ASCENDING

from app.db.mongo import get_accounts_collection
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        accounts = get_accounts_collection()

        logger.info("Creating database indexes...")

        # Unique index on phone_number (primary identifier)
        await accounts.create_index(
            [("phone_number", ASCENDING)],
            unique=True,
            name="phone_number_unique"
        )
        logger.debug("Created unique index on accounts.phone_number")

        # Plain (non-TTL) index: expired codes are cleared, accounts are never deleted
        await accounts.create_index(
            [("verification_code_expiry", ASCENDING)],
            sparse=True,
            name="verification_code_expiry_idx"
        )
        logger.debug("Created index on accounts.verification_code_expiry")

        account_indexes = await accounts.index_information()
        logger.info(f"✅ Database indexes ready: Accounts={len(account_indexes)}")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    """
    Run this script directly to create indexes manually.
    """
    import asyncio
    from app.db.mongo import connect_to_mongo, close_mongo_connection

    async def main():
        await connect_to_mongo()
        await create_indexes()
        await close_mongo_connection()

    asyncio.run(main())

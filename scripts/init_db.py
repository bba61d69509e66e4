"""
Database initialization script

Creates the schema and, for development, a demo account.
Run this script to set up the database for the first time.
"""
import asyncio
import logging
import os
import sys

# Add project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fileshare.config import settings  # noqa: E402
from fileshare.database.connection import close_db, get_session_maker, init_db  # noqa: E402
from fileshare.database.repositories.user_repository import UserRepository  # noqa: E402

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@example.com"
DEMO_PASSWORD = "demo-pass-2024"


async def create_demo_user(session):
    """
    Create a demo account if it does not exist yet

    Args:
        session: Database session

    Returns:
        User instance
    """
    user_repo = UserRepository(session)

    existing = await user_repo.get_by_email(DEMO_EMAIL)
    if existing:
        logger.info("Demo user already exists. Skipping creation.")
        return existing

    user = await user_repo.create(email=DEMO_EMAIL, password=DEMO_PASSWORD, name="Demo")
    await session.commit()
    logger.info(f"Demo user created: {DEMO_EMAIL} / {DEMO_PASSWORD}")
    return user


async def init_database(with_demo_user: bool) -> None:
    """
    Initialize the database with tables and optional demo data
    """
    logger.info("Starting database initialization...")
    try:
        await init_db(create_tables=True)
        if with_demo_user:
            async with get_session_maker()() as session:
                await create_demo_user(session)
    finally:
        await close_db()
    logger.info("Database initialization completed successfully!")


def main():
    """
    Main entry point for database initialization
    """
    with_demo_user = "--demo" in sys.argv[1:] or settings.ENVIRONMENT == "development"
    try:
        asyncio.run(init_database(with_demo_user))
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

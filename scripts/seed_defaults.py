"""
Seed script to populate the module catalog and the system roles.

Run this script after database initialization to create:
- Default modules (Hiring, Candidate, Contracts, Payroll, Company, Support, User)
- Default system roles with their permission matrices

Usage:
    python -m scripts.seed_defaults
"""
import asyncio

from app.core.database.engine import AsyncSessionLocal, init_db
from app.features.permissions.defaults import DEFAULT_ROLES, seed_defaults
from app.utils import get_logger


log = get_logger(__name__)


async def main():
    """Main function to seed modules and roles."""
    log.info("Starting default seeding...")

    log.info("Initializing database tables...")
    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            await seed_defaults(db)
        except Exception as e:
            log.error("Error seeding defaults: %s", e, exc_info=True)
            raise

    log.info("Seeding completed successfully!")
    log.info("")
    log.info("System roles:")
    for role_name, role_config in DEFAULT_ROLES.items():
        log.info("  - %s (%s): %s", role_name, role_config["privilege_level"], role_config["description"])


if __name__ == "__main__":
    asyncio.run(main())

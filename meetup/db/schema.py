"""Schema management.

Tables for events, slots, contacts, responses and chat messages are created by
the versioned SQL files in ``migrations/``. They are applied in order when the
pool opens.
"""

import logging

from meetup.db.migrations import get_current_version, get_migration_history, get_pending_migrations, run_migrations

logger = logging.getLogger(__name__)


async def _ensure_schema() -> None:
    """Apply pending migrations. Safe to call repeatedly."""
    before = await get_current_version()
    applied = await run_migrations()
    if applied:
        logger.info("Schema migrated %d -> %d (%d applied)", before, await get_current_version(), applied)
    else:
        logger.info("Schema up to date at version %d", before)


async def get_schema_info() -> dict:
    """Current version, applied history and the file names still pending."""
    return {
        "current_version": await get_current_version(),
        "migration_history": await get_migration_history(),
        "pending": [m["filename"] for m in await get_pending_migrations()],
    }

"""
Database service for Supabase operations.

Records configured LLM interactions. Writes are best effort: they run as
detached tasks, are never retried, and a failure is only logged.
"""
import asyncio
import logging
from typing import Any, Optional, Set

from supabase import create_client

from fabrik_mcp.config import Settings
from fabrik_mcp.models import InteractionRecord

logger = logging.getLogger(__name__)


class InteractionStore:
    """
    Service for recording LLM interactions in a Supabase table.
    """

    def __init__(self, client: Any, table_name: str = "gemini_interactions"):
        """
        Initialize the interaction store.

        Args:
            client: Supabase client
            table_name: Table receiving one row per interaction
        """
        self.client = client
        self.table_name = table_name
        self._pending: Set[asyncio.Task] = set()

    def insert_interaction(self, record: InteractionRecord) -> None:
        """Insert one interaction row. Blocking; raises on failure."""
        self.client.table(self.table_name).insert(record.model_dump()).execute()

    async def _write(self, record: InteractionRecord) -> None:
        try:
            await asyncio.to_thread(self.insert_interaction, record)
            logger.info(f"Recorded interaction for config {record.config_id}")
        except Exception as e:
            logger.warning(f"Failed to record interaction for config {record.config_id}: {e}")

    def record_interaction_background(self, record: InteractionRecord) -> asyncio.Task:
        """
        Schedule the interaction write and return without waiting for it.

        Must be called from a running event loop.

        Args:
            record: Interaction to store

        Returns:
            The scheduled task
        """
        task = asyncio.create_task(self._write(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for outstanding writes, used at shutdown."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def create_interaction_store(settings: Settings) -> Optional[InteractionStore]:
    """
    Create the interaction store when persistence is enabled and configured.

    Returns:
        InteractionStore, or None when persistence is off or the client
        cannot be created
    """
    if not settings.persistence_configured:
        logger.info("Interaction persistence disabled - set SUPABASE_URL and SUPABASE_SERVICE_KEY to enable")
        return None

    try:
        client = create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.warning(f"Could not initialize Supabase client, persistence disabled: {e}")
        return None

    logger.info(f"Interaction persistence enabled (table: {settings.interactions_table})")
    return InteractionStore(client, settings.interactions_table)

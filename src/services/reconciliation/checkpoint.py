"""
Checkpoint Manager - one monotonic cursor per named sync task.

Storage is append-only: advancing inserts a row and reads take the newest.
"""

from typing import Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.crud import get_latest_checkpoint, insert_checkpoint


class CheckpointManager:
    """
    Reads and advances sync cursors.

    Callers must advance only after the batch it covers is committed; a crash
    in between re-processes that batch, it never skips it.
    """

    async def get_checkpoint(self, session: AsyncSession, task_name: str) -> Optional[int]:
        """
        Last processed id for a task

        Returns:
            Cursor value, or None when the task has never checkpointed
            (a full scan from the lowest id, not "position 0")
        """
        checkpoint = await get_latest_checkpoint(session, task_name)
        if checkpoint is None:
            return None
        return checkpoint.cursor_value

    async def advance_checkpoint(
        self, session: AsyncSession, task_name: str, new_cursor: int
    ) -> int:
        """
        Record progress for a task

        Same value: nothing written. Lower value: the cursor never moves
        backwards, the current value is kept.

        Returns:
            Effective cursor after the call
        """
        current = await self.get_checkpoint(session, task_name)

        if current is not None and new_cursor <= current:
            if new_cursor < current:
                logger.warning(
                    f"Checkpoint {task_name}: refusing to move back from {current} to {new_cursor}"
                )
            return current

        await insert_checkpoint(session, task_name, new_cursor)
        logger.debug(f"Checkpoint {task_name}: {current} -> {new_cursor}")
        return new_cursor

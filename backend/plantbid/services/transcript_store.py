"""Transcript Store — version-guarded append/replace/read for conversation transcripts.

Invariants:
    - append never does a blind read-modify-write: the UPDATE carries the version it read
    - A version mismatch re-reads and retries (bounded); messages are never dropped silently
    - All messages of one append land together, in the given order
    - The caller's session must have nothing pending: a lost race rolls the session back
    - read() returns messages sorted by timestamp (stable)

Design Decisions:
    - Optimistic version token over SELECT ... FOR UPDATE: works the same on
      PostgreSQL and SQLite, holds no lock while the caller does other work
    - Column-level SELECT (not ORM entity) so the identity map never serves a stale array
"""

import asyncio
import logging
import random
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from plantbid.core.errors import (
    ConcurrencyError, ErrorContext, ResourceNotFoundError, TranscriptAppendError,
)
from plantbid.core.transcript import is_duplicate_message, sort_transcript
from plantbid.models.conversation import Conversation

logger = logging.getLogger(__name__)


class TranscriptStore:
    """Append-only conversation log keyed by conversation id."""

    def __init__(
        self,
        db: AsyncSession,
        max_attempts: int = 20,
        base_delay_ms: int = 5,
    ):
        self.db = db
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms

    async def _load(self, conversation_id: int):
        result = await self.db.execute(
            select(Conversation.messages, Conversation.version)
            .where(Conversation.id == conversation_id),
        )
        row = result.one_or_none()
        if row is None:
            raise ResourceNotFoundError(
                "Conversation", str(conversation_id),
                ErrorContext(conversation_id=conversation_id),
            )
        return row

    async def read(self, conversation_id: int) -> dict:
        row = await self._load(conversation_id)
        return {
            "id": conversation_id,
            "messages": sort_transcript(list(row.messages or [])),
            "version": row.version,
        }

    async def append(
        self,
        conversation_id: int,
        messages: list[dict],
        dedupe: bool = False,
        now: datetime | None = None,
    ) -> int:
        """Append messages atomically. Returns the new version.

        With dedupe=True, messages already posted (same role, content and
        vendor within a minute) are dropped before writing.
        """
        now = now or datetime.now(timezone.utc)
        for attempt in range(self.max_attempts):
            row = await self._load(conversation_id)
            current = list(row.messages or [])
            to_add = messages
            if dedupe:
                to_add = [m for m in messages if not is_duplicate_message(current, m, now)]
                if not to_add:
                    logger.info(
                        "Duplicate transcript message dropped",
                        extra={"conversation_id": conversation_id},
                    )
                    return row.version

            result = await self.db.execute(
                update(Conversation)
                .where(Conversation.id == conversation_id)
                .where(Conversation.version == row.version)
                .values(
                    messages=current + list(to_add),
                    version=row.version + 1,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False),
            )
            if result.rowcount == 1:
                await self.db.commit()
                return row.version + 1

            await self.db.rollback()
            logger.debug(
                "Transcript version conflict, retrying",
                extra={"conversation_id": conversation_id, "attempt": attempt + 1},
            )
            await asyncio.sleep(self._backoff() / 1000)

        raise TranscriptAppendError(conversation_id, self.max_attempts)

    async def replace(
        self, conversation_id: int, messages: list[dict], expected_version: int,
    ) -> int:
        """Overwrite the whole array, only if nobody wrote since expected_version."""
        await self._load(conversation_id)
        result = await self.db.execute(
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .where(Conversation.version == expected_version)
            .values(
                messages=list(messages),
                version=expected_version + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False),
        )
        if result.rowcount != 1:
            await self.db.rollback()
            raise ConcurrencyError(
                f"Conversation {conversation_id} changed since version {expected_version}",
                ErrorContext(conversation_id=conversation_id),
            )
        await self.db.commit()
        return expected_version + 1

    def _backoff(self) -> int:
        return int(self.base_delay_ms * random.uniform(0.5, 1.5))  # nosec B311

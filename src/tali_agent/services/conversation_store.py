"""Conversation store — persists per-conversation state keyed by conversation ID."""

from __future__ import annotations

import copy
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tali_agent.agents.state import ConversationState
from tali_agent.database.repository import ConversationRepository
from tali_agent.errors import PersistenceError

logger = logging.getLogger(__name__)


class ConversationStore:
    """In-memory store keyed by conversation ID.

    States are kept in their serialized form so every load hands out a
    fresh object.  For durable storage use :class:`SqlConversationStore`,
    which overrides :pymethod:`_read` / :pymethod:`_write` / :pymethod:`_remove`.
    """

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    async def load(self, conversation_id: str) -> ConversationState:
        """Retrieve the state for *conversation_id*, or a fresh one on first contact."""
        data = await self._read(conversation_id)
        if data is None:
            logger.info("Creating new conversation state for %s", conversation_id)
            return ConversationState()
        try:
            return ConversationState.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Corrupt state for conversation {conversation_id}") from exc

    async def save(self, conversation_id: str, state: ConversationState) -> None:
        await self._write(conversation_id, state.to_dict())
        logger.debug("Saved state for %s (turn %d)", conversation_id, state.turn_count)

    async def clear(self, conversation_id: str) -> None:
        """Forget a conversation (e.g. an operator reset)."""
        await self._remove(conversation_id)
        logger.info("Conversation state cleared for %s", conversation_id)

    # ── Storage hooks ────────────────────────────────────

    async def _read(self, conversation_id: str) -> dict[str, Any] | None:
        data = self._records.get(conversation_id)
        return None if data is None else copy.deepcopy(data)

    async def _write(self, conversation_id: str, data: dict[str, Any]) -> None:
        self._records[conversation_id] = copy.deepcopy(data)

    async def _remove(self, conversation_id: str) -> None:
        self._records.pop(conversation_id, None)


class SqlConversationStore(ConversationStore):
    """Conversation store backed by the ``conversations`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        super().__init__()
        self._session_factory = session_factory

    async def _read(self, conversation_id: str) -> dict[str, Any] | None:
        try:
            async with self._session_factory() as session:
                return await ConversationRepository(session).get(conversation_id)
        except SQLAlchemyError as exc:
            logger.exception("Failed to load conversation %s", conversation_id)
            raise PersistenceError(f"Could not load conversation {conversation_id}") from exc

    async def _write(self, conversation_id: str, data: dict[str, Any]) -> None:
        try:
            async with self._session_factory() as session:
                await ConversationRepository(session).upsert(conversation_id, data)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to save conversation %s", conversation_id)
            raise PersistenceError(f"Could not save conversation {conversation_id}") from exc

    async def _remove(self, conversation_id: str) -> None:
        try:
            async with self._session_factory() as session:
                await ConversationRepository(session).delete(conversation_id)
                await session.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to clear conversation %s", conversation_id)
            raise PersistenceError(f"Could not clear conversation {conversation_id}") from exc

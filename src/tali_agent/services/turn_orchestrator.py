"""Turn orchestrator — runs one conversation turn end to end."""

from __future__ import annotations

import asyncio
import logging
import weakref

from tali_agent.agents.base import (
    AgentResponse,
    ClassifyIntent,
    FetchBalance,
    FetchBills,
    FinalizedRecord,
    TurnResult,
)
from tali_agent.agents.dialog_engine import DialogEngine
from tali_agent.agents.records import BillInformation
from tali_agent.agents.state import ConversationState, IntentLabel
from tali_agent.errors import ServiceLookupError
from tali_agent.services.account_api import AccountQueryService
from tali_agent.services.conversation_store import ConversationStore
from tali_agent.services.intent_classifier import IntentClassifier

logger = logging.getLogger(__name__)

MESSAGE_ACTIVITY = "message"


class TurnOrchestrator:
    """Glue between a channel, the conversation store and the dialog engine.

    Per turn
    --------
    * Non-message activities get a fixed greeting; the engine is not run.
    * Load the conversation's state (fresh on first contact).
    * Step the engine, answering each request it makes: classify the
      utterance, fetch the balance or fetch the bills.
    * Hand a finished bill or transfer to the account service.
    * Save the new state before returning, so the caller only replies
      once the turn is recorded.

    Turns of the same conversation are serialized; different
    conversations run concurrently.
    """

    def __init__(
        self,
        store: ConversationStore,
        classifier: IntentClassifier,
        accounts: AccountQueryService,
        engine: DialogEngine | None = None,
        assistant_name: str = "Tali",
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._accounts = accounts
        self._engine = engine or DialogEngine(assistant_name)
        self._assistant_name = assistant_name
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    async def handle(
        self,
        conversation_id: str,
        text: str,
        activity_type: str = MESSAGE_ACTIVITY,
    ) -> AgentResponse:
        """Process one inbound activity and return the reply to send.

        Raises :class:`PersistenceError` if the state can't be loaded or
        saved; in that case nothing should be sent to the user.
        """
        if activity_type != MESSAGE_ACTIVITY:
            logger.info("Non-message activity %r from %s", activity_type, conversation_id)
            return AgentResponse(
                reply_text=(
                    f"Hey! I'm {self._assistant_name}, a Virtual Intelligence "
                    "here to help with your banking."
                )
            )

        async with self._lock_for(conversation_id):
            state = await self._store.load(conversation_id)
            result = await self._run_engine(conversation_id, state, text)
            await self._store.save(conversation_id, result.state)

        return AgentResponse(
            reply_text=result.reply_text,
            end_conversation=result.state.end_conversation,
        )

    async def reset(self, conversation_id: str) -> None:
        """Drop the stored state so the next message starts onboarding again."""
        async with self._lock_for(conversation_id):
            await self._store.clear(conversation_id)

    # ── Private helpers ──────────────────────────────────

    def _lock_for(self, conversation_id: str) -> asyncio.Lock:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[conversation_id] = lock
        return lock

    async def _run_engine(
        self, conversation_id: str, state: ConversationState, text: str
    ) -> TurnResult:
        intent: IntentLabel | None = None
        try:
            result = self._engine.step(state, text)

            if isinstance(result.request, ClassifyIntent):
                intent = await self._classifier.classify(result.request.text)
                result = self._engine.step(state, text, intent=intent)

            if isinstance(result.request, FetchBalance):
                balance = await self._accounts.fetch_balance(result.request.account_id)
                result = self._engine.step(state, text, intent=intent, lookup=balance)
            elif isinstance(result.request, FetchBills):
                bills = await self._accounts.fetch_bills(result.request.account_id)
                result = self._engine.step(state, text, intent=intent, lookup=bills)

            if result.finalized is not None:
                await self._submit(state.account_id, result.finalized)
        except ServiceLookupError as exc:
            logger.warning("Lookup failed for %s: %s", conversation_id, exc)
            return self._engine.fail_turn(state, exc)

        if result.error is not None:
            logger.info("Turn for %s ended with %s", conversation_id, type(result.error).__name__)
        logger.info(
            "Conversation %s → turn %d, mode %s",
            conversation_id,
            result.state.turn_count,
            result.state.dialog_mode.kind.value,
        )
        return result

    async def _submit(self, account_id: str, record: FinalizedRecord) -> None:
        if isinstance(record, BillInformation):
            await self._accounts.create_bill(account_id, record)
        else:
            await self._accounts.create_transfer(account_id, record)

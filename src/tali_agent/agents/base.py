"""Value objects passed between the dialog engine and the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from tali_agent.agents.records import BillInformation, TransferInformation
from tali_agent.agents.state import ConversationState
from tali_agent.errors import TaliError


@dataclass(frozen=True)
class ClassifyIntent:
    """The engine needs the utterance's intent before it can answer."""

    text: str


@dataclass(frozen=True)
class FetchBalance:
    """The engine needs the account balance before it can answer."""

    account_id: str


@dataclass(frozen=True)
class FetchBills:
    """The engine needs the account's bills before it can answer."""

    account_id: str


EngineRequest = Union[ClassifyIntent, FetchBalance, FetchBills]
FinalizedRecord = Union[BillInformation, TransferInformation]


@dataclass(frozen=True)
class TurnResult:
    """Outcome of one :meth:`DialogEngine.step` call.

    When ``request`` is set the turn is suspended: ``state`` is the
    unchanged input state and ``reply_text`` is empty.  The caller must
    satisfy the request and call the engine again with the answer.
    """

    state: ConversationState
    reply_text: str = ""
    request: EngineRequest | None = None
    finalized: FinalizedRecord | None = None
    error: TaliError | None = None

    @property
    def is_suspended(self) -> bool:
        return self.request is not None


@dataclass
class AgentResponse:
    """Value object returned by the orchestrator after processing a message."""

    reply_text: str
    end_conversation: bool = False

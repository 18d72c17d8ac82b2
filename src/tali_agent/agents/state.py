"""Conversation state — the persisted per-conversation record.

All classes are frozen; the dialog engine builds new instances with
:func:`dataclasses.replace` instead of mutating the one it was given.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class IntentLabel(str, Enum):
    """Fixed intent vocabulary produced by the classifier."""

    START_CONVERSATION = "StartConversation"
    END_CONVERSATION = "EndConversation"
    BALANCE = "Balance"
    GET_BILLS = "GetBills"
    POST_BILLS = "PostBills"
    START_TRANSFER_FUNDS = "StartTransferFunds"
    UNRECOGNIZED = "Unrecognized"

    @classmethod
    def from_raw(cls, raw: str | None) -> IntentLabel:
        """Map a raw classifier label onto the vocabulary."""
        for label in cls:
            if label.value == raw:
                return label
        return cls.UNRECOGNIZED


class DialogKind(str, Enum):
    IDLE = "idle"
    COLLECTING_BILL = "collecting_bill"
    COLLECTING_TRANSFER = "collecting_transfer"


# Number of slot-collection steps for each dialog
DIALOG_STEPS = {
    DialogKind.IDLE: 0,
    DialogKind.COLLECTING_BILL: 4,
    DialogKind.COLLECTING_TRANSFER: 2,
}


@dataclass(frozen=True)
class DialogMode:
    """Which slot-filling dialog is active, and at which step."""

    kind: DialogKind = DialogKind.IDLE
    step: int = 0

    def __post_init__(self) -> None:
        last = DIALOG_STEPS[self.kind]
        if self.kind is DialogKind.IDLE:
            if self.step != 0:
                raise ValueError("Idle dialog mode has no step")
        elif not 1 <= self.step <= last:
            raise ValueError(f"{self.kind.value} step must be in 1..{last}, got {self.step}")

    @classmethod
    def idle(cls) -> DialogMode:
        return cls()

    @classmethod
    def collecting_bill(cls, step: int = 1) -> DialogMode:
        return cls(DialogKind.COLLECTING_BILL, step)

    @classmethod
    def collecting_transfer(cls, step: int = 1) -> DialogMode:
        return cls(DialogKind.COLLECTING_TRANSFER, step)

    @property
    def is_idle(self) -> bool:
        return self.kind is DialogKind.IDLE

    def advance(self) -> DialogMode:
        return replace(self, step=self.step + 1)


@dataclass(frozen=True)
class OnboardingInfo:
    is_first_launch: bool = False
    user_name: str = ""
    account_id: str = ""
    completed_setup: bool = False


@dataclass(frozen=True)
class BillDraft:
    """Scratch data for the bill dialog; each slot is ``None`` until collected."""

    status: str | None = None
    payee: str | None = None
    amount: int | None = None
    due_date: str | None = None


@dataclass(frozen=True)
class TransferDraft:
    """Scratch data for the transfer dialog."""

    payee: str | None = None
    amount: int | None = None


@dataclass(frozen=True)
class ConversationState:
    """Everything the dialog engine needs to decide the next turn."""

    turn_count: int = 0
    onboarding: OnboardingInfo = field(default_factory=OnboardingInfo)
    dialog_mode: DialogMode = field(default_factory=DialogMode)
    end_conversation: bool = False
    pending_bill: BillDraft = field(default_factory=BillDraft)
    pending_transfer: TransferDraft = field(default_factory=TransferDraft)

    @property
    def user_name(self) -> str:
        return self.onboarding.user_name

    @property
    def account_id(self) -> str:
        return self.onboarding.account_id

    # ── Serialization ────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-safe representation of the state."""
        return {
            "turn_count": self.turn_count,
            "onboarding": {
                "is_first_launch": self.onboarding.is_first_launch,
                "user_name": self.onboarding.user_name,
                "account_id": self.onboarding.account_id,
                "completed_setup": self.onboarding.completed_setup,
            },
            "dialog_mode": {
                "kind": self.dialog_mode.kind.value,
                "step": self.dialog_mode.step,
            },
            "end_conversation": self.end_conversation,
            "pending_bill": {
                "status": self.pending_bill.status,
                "payee": self.pending_bill.payee,
                "amount": self.pending_bill.amount,
                "due_date": self.pending_bill.due_date,
            },
            "pending_transfer": {
                "payee": self.pending_transfer.payee,
                "amount": self.pending_transfer.amount,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationState:
        """Rebuild a state from :meth:`to_dict` output.

        Missing sections fall back to their defaults, so records written
        by older versions still load.
        """
        onboarding = data.get("onboarding", {})
        mode = data.get("dialog_mode", {})
        bill = data.get("pending_bill", {})
        transfer = data.get("pending_transfer", {})
        return cls(
            turn_count=int(data.get("turn_count", 0)),
            onboarding=OnboardingInfo(
                is_first_launch=bool(onboarding.get("is_first_launch", False)),
                user_name=onboarding.get("user_name", ""),
                account_id=onboarding.get("account_id", ""),
                completed_setup=bool(onboarding.get("completed_setup", False)),
            ),
            dialog_mode=DialogMode(
                kind=DialogKind(mode.get("kind", DialogKind.IDLE.value)),
                step=int(mode.get("step", 0)),
            ),
            end_conversation=bool(data.get("end_conversation", False)),
            pending_bill=BillDraft(
                status=bill.get("status"),
                payee=bill.get("payee"),
                amount=bill.get("amount"),
                due_date=bill.get("due_date"),
            ),
            pending_transfer=TransferDraft(
                payee=transfer.get("payee"),
                amount=transfer.get("amount"),
            ),
        )

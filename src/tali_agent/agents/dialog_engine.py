"""Dialog engine — the per-conversation turn state machine.

The engine is a pure function of its inputs: it never performs I/O and
never mutates the state it is given.  When it needs something from the
outside world (an intent label, a balance, a bill list) it returns a
suspended :class:`TurnResult` carrying the request, and the caller
re-invokes :meth:`DialogEngine.step` with the same state, the same text
and the answer.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import replace
from decimal import Decimal

from tali_agent.agents.base import (
    ClassifyIntent,
    FetchBalance,
    FetchBills,
    TurnResult,
)
from tali_agent.agents.records import BillInformation, BillRecord, TransferInformation
from tali_agent.agents.state import (
    BillDraft,
    ConversationState,
    DialogKind,
    DialogMode,
    IntentLabel,
    OnboardingInfo,
    TransferDraft,
)
from tali_agent.errors import ParseError, TaliError

logger = logging.getLogger(__name__)

# Amounts are signed 32-bit integers typed as plain digits
_AMOUNT_RE = re.compile(r"[+-]?[0-9]+")
_AMOUNT_MIN = -(2**31)
_AMOUNT_MAX = 2**31 - 1

FOLLOW_UP_PROMPT = "Do you have any other questions you wish to ask?"
ANYTHING_ELSE_PROMPT = "Is there anything else we can help you with?"
BILL_STATUS_OPTIONS = ("Pending", "Cancelled", "Completed", "Recurring")


def parse_amount(text: str, slot: str = "amount") -> int:
    """Parse a whole-number amount typed by the user.

    Raises :class:`ParseError` for anything that is not an optionally
    signed run of digits fitting in 32 bits.
    """
    candidate = text.strip()
    if not _AMOUNT_RE.fullmatch(candidate):
        raise ParseError(text, slot)
    value = int(candidate)
    if not _AMOUNT_MIN <= value <= _AMOUNT_MAX:
        raise ParseError(text, slot)
    return value


def format_money(amount: Decimal | int) -> str:
    """Render ``250`` as ``250`` and ``250.5`` as ``250.50``."""
    value = Decimal(amount)
    if not value.is_finite():
        return str(value)
    if value == value.to_integral_value():
        return f"{value.to_integral_value():f}"
    return f"{value:.2f}"


def _next_turn(state: ConversationState, **changes) -> ConversationState:
    return replace(state, turn_count=state.turn_count + 1, **changes)


class DialogEngine:
    """Decides what the agent says next for one conversation turn.

    Flow
    ----
    1. Onboarding: welcome, then capture the user's name, then their
       account ID.  No external calls are made.
    2. Ended: after the user says goodbye every turn gets an empty reply.
    3. Collecting a bill or transfer: the utterance is the next slot
       answer.
    4. Idle: the utterance's intent decides the branch; balance and bill
       questions need an account lookup first.
    """

    def __init__(self, assistant_name: str = "Tali") -> None:
        self._assistant_name = assistant_name

    def step(
        self,
        state: ConversationState,
        text: str,
        intent: IntentLabel | None = None,
        lookup: Decimal | Sequence[BillRecord] | None = None,
    ) -> TurnResult:
        """Process one utterance against *state*.

        Parameters
        ----------
        state:
            The conversation state as loaded at the start of the turn.
        text:
            The raw utterance.
        intent:
            The classifier's label, once a :class:`ClassifyIntent`
            request has been answered.
        lookup:
            The balance or bill list, once a :class:`FetchBalance` or
            :class:`FetchBills` request has been answered.
        """
        text = text or ""

        if not state.onboarding.completed_setup:
            return self._onboard(state, text)

        if state.end_conversation:
            return TurnResult(state=state, reply_text="")

        kind = state.dialog_mode.kind
        if kind is DialogKind.COLLECTING_BILL:
            return self._collect_bill(state, text)
        if kind is DialogKind.COLLECTING_TRANSFER:
            return self._collect_transfer(state, text)

        if intent is None:
            return TurnResult(state=state, request=ClassifyIntent(text))
        return self._handle_intent(state, intent, lookup)

    def fail_turn(self, state: ConversationState, error: TaliError) -> TurnResult:
        """Apologise for a failed collaborator call without moving the dialog."""
        logger.warning("Turn failed, dialog left at %s: %s", state.dialog_mode, error)
        return TurnResult(
            state=_next_turn(state),
            reply_text=(
                "Sorry, my omni-tool couldn't reach the bank just now.\n"
                "Please try that again in a moment."
            ),
            error=error,
        )

    # ── Onboarding ───────────────────────────────────────

    def _onboard(self, state: ConversationState, text: str) -> TurnResult:
        info = state.onboarding

        if not info.is_first_launch and not info.user_name and not info.account_id:
            logger.info("Onboarding: first launch")
            return TurnResult(
                state=_next_turn(state, onboarding=replace(info, is_first_launch=True)),
                reply_text=(
                    "My omni-tool says that it's your first time using this interface!\n"
                    "It's great to meet you. We'll run you through the first time "
                    "registration setup.\n"
                    "First off, may we get your name?"
                ),
            )

        if not info.user_name:
            logger.info("Onboarding: captured user name")
            return TurnResult(
                state=_next_turn(
                    state,
                    onboarding=replace(info, is_first_launch=True, user_name=text),
                ),
                reply_text=(
                    f"Great, {text}! We now have your name inputted into my omni-tool.\n"
                    "To finalize our setup, may we get your account ID?"
                ),
            )

        onboarding = OnboardingInfo(
            is_first_launch=True,
            user_name=info.user_name,
            account_id=info.account_id or text,
        )
        # An empty account ID keeps the user at this step
        if not onboarding.account_id:
            return TurnResult(
                state=_next_turn(state, onboarding=onboarding),
                reply_text=(
                    f"Sorry {onboarding.user_name}, I didn't catch that.\n"
                    "May we get your account ID?"
                ),
            )

        onboarding = replace(onboarding, completed_setup=True)
        logger.info("Onboarding complete for %s", onboarding.user_name)
        return TurnResult(
            state=_next_turn(state, onboarding=onboarding),
            reply_text=(
                f"Fantastic, {onboarding.user_name}! We now have you fully registered.\n"
                "What sort of questions do you have for me today?"
            ),
        )

    # ── Idle: intent branches ────────────────────────────

    def _handle_intent(
        self,
        state: ConversationState,
        intent: IntentLabel,
        lookup: Decimal | Sequence[BillRecord] | None,
    ) -> TurnResult:
        logger.info("Handling intent %s", intent.value)
        name = state.user_name

        if intent is IntentLabel.END_CONVERSATION:
            return TurnResult(
                state=_next_turn(state, end_conversation=True),
                reply_text=(
                    f"Thank you for using {self._assistant_name}, "
                    "your virtual banking assistant!"
                ),
            )

        if intent is IntentLabel.START_CONVERSATION:
            return TurnResult(
                state=_next_turn(state),
                reply_text=(
                    f"Welcome back, {name}!\nIs there something we can help you with?"
                ),
            )

        if intent is IntentLabel.BALANCE:
            if lookup is None:
                return TurnResult(state=state, request=FetchBalance(state.account_id))
            return TurnResult(
                state=_next_turn(state),
                reply_text=(
                    f"Your account balance is ${format_money(lookup)} USD.\n"
                    f"{FOLLOW_UP_PROMPT}"
                ),
            )

        if intent is IntentLabel.GET_BILLS:
            if lookup is None:
                return TurnResult(state=state, request=FetchBills(state.account_id))
            return TurnResult(state=_next_turn(state), reply_text=self._render_bills(name, lookup))

        if intent is IntentLabel.POST_BILLS:
            options = "\n".join(BILL_STATUS_OPTIONS)
            return TurnResult(
                state=_next_turn(
                    state,
                    dialog_mode=DialogMode.collecting_bill(),
                    pending_bill=BillDraft(),
                ),
                reply_text=(
                    "We can update my omni-tool to keep track of a new bill!\n"
                    "What's the status of this bill?\n"
                    f"Options:\n{options}"
                ),
            )

        if intent is IntentLabel.START_TRANSFER_FUNDS:
            return TurnResult(
                state=_next_turn(
                    state,
                    dialog_mode=DialogMode.collecting_transfer(),
                    pending_transfer=TransferDraft(),
                ),
                reply_text="Who are we making this transfer out to?",
            )

        # Debug-visible fallback; replace with a real "didn't understand" reply
        return TurnResult(
            state=_next_turn(state),
            reply_text=f"PLACEHOLDER, RETURNED INTENT IS: {intent.value}",
        )

    @staticmethod
    def _render_bills(name: str, bills: Sequence[BillRecord]) -> str:
        if not bills:
            return f"You have no upcoming bills, {name}!\n{FOLLOW_UP_PROMPT}"
        lines = [f"You have {len(bills)} bill(s):"]
        lines.extend(f"{bill.nickname} due on {bill.upcoming_payment_date}" for bill in bills)
        lines.append(FOLLOW_UP_PROMPT)
        return "\n".join(lines)

    # ── Bill dialog ──────────────────────────────────────

    def _collect_bill(self, state: ConversationState, text: str) -> TurnResult:
        step = state.dialog_mode.step
        draft = state.pending_bill
        logger.info("Collecting bill, step %d", step)

        if step == 1:
            return TurnResult(
                state=_next_turn(
                    state,
                    dialog_mode=state.dialog_mode.advance(),
                    pending_bill=replace(draft, status=text),
                ),
                reply_text=(
                    f"Great! We have logged a new {text} bill.\n"
                    "Now we need the payee, who should we make this bill out to?"
                ),
            )

        if step == 2:
            return TurnResult(
                state=_next_turn(
                    state,
                    dialog_mode=state.dialog_mode.advance(),
                    pending_bill=replace(draft, payee=text),
                ),
                reply_text=(
                    f"It looks like we have our {draft.status} bill made out to {text}!\n"
                    f"How much are we paying {text}?"
                ),
            )

        if step == 3:
            try:
                amount = parse_amount(text)
            except ParseError as exc:
                return self._reprompt_amount(state, draft.payee, exc)
            return TurnResult(
                state=_next_turn(
                    state,
                    dialog_mode=state.dialog_mode.advance(),
                    pending_bill=replace(draft, amount=amount),
                ),
                reply_text=(
                    f"We have our payment of ${amount} USD registered! "
                    "When is this bill due?\n"
                    "Note: Please enter your date format as YYYY-MM-DD"
                ),
            )

        bill = BillInformation(
            status=draft.status,
            payee=draft.payee,
            amount=draft.amount,
            due_date=text,
        )
        logger.info("Bill dialog finished: %s", bill)
        return TurnResult(
            state=_next_turn(state, dialog_mode=DialogMode.idle(), pending_bill=BillDraft()),
            reply_text=f"On {text} it is!\n{ANYTHING_ELSE_PROMPT}",
            finalized=bill,
        )

    # ── Transfer dialog ──────────────────────────────────

    def _collect_transfer(self, state: ConversationState, text: str) -> TurnResult:
        step = state.dialog_mode.step
        draft = state.pending_transfer
        logger.info("Collecting transfer, step %d", step)

        if step == 1:
            return TurnResult(
                state=_next_turn(
                    state,
                    dialog_mode=state.dialog_mode.advance(),
                    pending_transfer=replace(draft, payee=text),
                ),
                reply_text=f"How much are we paying {text}?",
            )

        try:
            amount = parse_amount(text)
        except ParseError as exc:
            return self._reprompt_amount(state, draft.payee, exc)

        transfer = TransferInformation(payee=draft.payee, amount=amount)
        logger.info("Transfer dialog finished: %s", transfer)
        return TurnResult(
            state=_next_turn(
                state, dialog_mode=DialogMode.idle(), pending_transfer=TransferDraft()
            ),
            reply_text=(
                f"Fantastic! I have set up a transfer to {transfer.payee} "
                f"for ${transfer.amount} USD.\n"
                "Is there anything else we can assist you with?"
            ),
            finalized=transfer,
        )

    @staticmethod
    def _reprompt_amount(
        state: ConversationState, payee: str | None, error: ParseError
    ) -> TurnResult:
        """Stay on the amount step and ask again."""
        logger.info("Rejected amount %r at %s", error.text, state.dialog_mode)
        return TurnResult(
            state=_next_turn(state),
            reply_text=(
                f"Sorry, {error.text!r} doesn't look like a whole-dollar amount.\n"
                f"How much are we paying {payee}? Please enter a number, e.g. 400."
            ),
            error=error,
        )

"""Tests for the DialogEngine — onboarding, intents and slot-filling dialogs."""

from __future__ import annotations

from decimal import Decimal

import pytest

from tali_agent.agents.base import ClassifyIntent, FetchBalance, FetchBills
from tali_agent.agents.dialog_engine import (
    FOLLOW_UP_PROMPT,
    DialogEngine,
    format_money,
    parse_amount,
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
from tali_agent.errors import ParseError, ServiceLookupError


@pytest.fixture
def engine() -> DialogEngine:
    return DialogEngine()


@pytest.fixture
def registered() -> ConversationState:
    """A user who finished onboarding and is idle."""
    return ConversationState(
        turn_count=3,
        onboarding=OnboardingInfo(
            is_first_launch=True,
            user_name="Alice",
            account_id="ACC123",
            completed_setup=True,
        ),
    )


def _run(engine: DialogEngine, state: ConversationState, *texts: str) -> ConversationState:
    for text in texts:
        state = engine.step(state, text).state
    return state


# ──────────────────────────────────────────────────────────
# Onboarding
# ──────────────────────────────────────────────────────────
def test_onboarding_sequence(engine):
    state = ConversationState()

    first = engine.step(state, "hello there")
    assert "first time" in first.reply_text
    assert "your name" in first.reply_text
    assert first.state.onboarding.is_first_launch is True
    assert first.state.onboarding.user_name == ""
    assert first.request is None

    second = engine.step(first.state, "Alice")
    assert second.state.onboarding.user_name == "Alice"
    assert "account ID" in second.reply_text
    assert second.state.onboarding.completed_setup is False

    third = engine.step(second.state, "ACC123")
    assert third.state.onboarding.account_id == "ACC123"
    assert third.state.onboarding.completed_setup is True
    assert "Fantastic, Alice!" in third.reply_text
    assert third.state.turn_count == 3


def test_onboarding_captures_text_verbatim(engine):
    state = _run(engine, ConversationState(), "hi", "  Dr. Who?! ")
    assert state.onboarding.user_name == "  Dr. Who?! "


def test_setup_never_completes_without_account_id(engine):
    state = _run(engine, ConversationState(), "hi", "Alice")

    result = engine.step(state, "")

    assert result.state.onboarding.completed_setup is False
    assert result.state.onboarding.account_id == ""
    assert "account ID" in result.reply_text
    assert "fully registered" not in result.reply_text

    result = engine.step(result.state, "ACC123")
    assert result.state.onboarding.completed_setup is True
    assert "fully registered" in result.reply_text


def test_onboarding_never_asks_for_intent(engine):
    state = ConversationState()
    for text in ("hi", "Alice", "ACC123"):
        result = engine.step(state, text, intent=IntentLabel.BALANCE)
        assert result.request is None
        state = result.state
    assert state.dialog_mode.is_idle


# ──────────────────────────────────────────────────────────
# Idle intents
# ──────────────────────────────────────────────────────────
def test_idle_requests_classification(engine, registered):
    result = engine.step(registered, "What's my balance?")

    assert result.request == ClassifyIntent("What's my balance?")
    assert result.is_suspended
    assert result.state is registered
    assert result.reply_text == ""


def test_balance_requests_lookup_then_renders(engine, registered):
    pending = engine.step(registered, "balance?", intent=IntentLabel.BALANCE)
    assert pending.request == FetchBalance("ACC123")
    assert pending.state is registered

    done = engine.step(registered, "balance?", intent=IntentLabel.BALANCE, lookup=Decimal("250"))
    assert done.reply_text.startswith("Your account balance is $250 USD.")
    assert done.request is None
    assert done.state.turn_count == registered.turn_count + 1


def test_get_bills_empty(engine, registered):
    pending = engine.step(registered, "bills", intent=IntentLabel.GET_BILLS)
    assert pending.request == FetchBills("ACC123")

    done = engine.step(registered, "bills", intent=IntentLabel.GET_BILLS, lookup=[])
    assert done.reply_text == f"You have no upcoming bills, Alice!\n{FOLLOW_UP_PROMPT}"


def test_get_bills_lists_in_service_order(engine, registered):
    bills = [
        BillRecord(nickname="Car Loans", upcoming_payment_date="2019-02-05"),
        BillRecord(nickname="Electricity", upcoming_payment_date="2019-02-12"),
    ]

    done = engine.step(registered, "bills", intent=IntentLabel.GET_BILLS, lookup=bills)

    lines = done.reply_text.split("\n")
    assert lines[0] == "You have 2 bill(s):"
    assert lines[1] == "Car Loans due on 2019-02-05"
    assert lines[2] == "Electricity due on 2019-02-12"
    assert lines[-1] == FOLLOW_UP_PROMPT


def test_start_conversation_welcomes_back(engine, registered):
    result = engine.step(registered, "hi", intent=IntentLabel.START_CONVERSATION)
    assert "Welcome back, Alice!" in result.reply_text
    assert result.state.dialog_mode.is_idle


def test_unrecognized_echoes_label(engine, registered):
    result = engine.step(registered, "blorp", intent=IntentLabel.UNRECOGNIZED)
    assert "Unrecognized" in result.reply_text
    assert result.state.dialog_mode.is_idle


# ──────────────────────────────────────────────────────────
# Ended conversation
# ──────────────────────────────────────────────────────────
def test_end_conversation_freezes(engine, registered):
    ended = engine.step(registered, "bye", intent=IntentLabel.END_CONVERSATION)
    assert ended.state.end_conversation is True
    assert "Thank you for using Tali" in ended.reply_text

    for text, intent in [
        ("hello", IntentLabel.START_CONVERSATION),
        ("balance", IntentLabel.BALANCE),
        ("anything", None),
    ]:
        result = engine.step(ended.state, text, intent=intent)
        assert result.reply_text == ""
        assert result.state == ended.state
        assert result.request is None


# ──────────────────────────────────────────────────────────
# Bill dialog
# ──────────────────────────────────────────────────────────
def test_bill_dialog_end_to_end(engine, registered):
    started = engine.step(registered, "new bill", intent=IntentLabel.POST_BILLS)
    assert started.state.dialog_mode == DialogMode.collecting_bill(1)
    assert started.state.pending_bill == BillDraft()
    assert "Recurring" in started.reply_text

    state = started.state
    expected_steps = [2, 3, 4]
    for text, step in zip(["Recurring", "Honda", "400"], expected_steps):
        result = engine.step(state, text)
        assert result.finalized is None
        assert result.state.dialog_mode == DialogMode.collecting_bill(step)
        state = result.state

    assert state.pending_bill == BillDraft(status="Recurring", payee="Honda", amount=400)

    final = engine.step(state, "2019-02-20")
    assert final.state.dialog_mode.is_idle
    assert final.state.pending_bill == BillDraft()
    assert final.finalized == BillInformation(
        status="Recurring", payee="Honda", amount=400, due_date="2019-02-20"
    )
    assert final.reply_text.startswith("On 2019-02-20 it is!")


def test_bill_dialog_does_not_classify(engine, registered):
    state = engine.step(registered, "new bill", intent=IntentLabel.POST_BILLS).state
    result = engine.step(state, "Pending")
    assert result.request is None


def test_bill_amount_parse_error_holds_step(engine, registered):
    state = _run(
        engine,
        engine.step(registered, "new bill", intent=IntentLabel.POST_BILLS).state,
        "Recurring",
        "Honda",
    )
    assert state.dialog_mode == DialogMode.collecting_bill(3)

    result = engine.step(state, "four hundred")

    assert isinstance(result.error, ParseError)
    assert result.state.dialog_mode == DialogMode.collecting_bill(3)
    assert result.state.pending_bill == state.pending_bill
    assert result.finalized is None
    assert "Honda" in result.reply_text

    # The user can simply answer again
    retry = engine.step(result.state, "400")
    assert retry.state.dialog_mode == DialogMode.collecting_bill(4)
    assert retry.state.pending_bill.amount == 400


# ──────────────────────────────────────────────────────────
# Transfer dialog
# ──────────────────────────────────────────────────────────
def test_transfer_dialog_end_to_end(engine, registered):
    started = engine.step(registered, "transfer", intent=IntentLabel.START_TRANSFER_FUNDS)
    assert started.state.dialog_mode.kind is DialogKind.COLLECTING_TRANSFER
    assert started.state.pending_transfer == TransferDraft()

    payee = engine.step(started.state, "Bob")
    assert payee.reply_text == "How much are we paying Bob?"

    final = engine.step(payee.state, "75")
    assert final.finalized == TransferInformation(payee="Bob", amount=75)
    assert final.state.dialog_mode.is_idle
    assert final.state.pending_transfer == TransferDraft()
    assert "$75 USD" in final.reply_text


def test_transfer_amount_parse_error(engine, registered):
    state = _run(
        engine,
        engine.step(registered, "transfer", intent=IntentLabel.START_TRANSFER_FUNDS).state,
        "Bob",
    )

    result = engine.step(state, "lots")

    assert isinstance(result.error, ParseError)
    assert result.state.dialog_mode == DialogMode.collecting_transfer(2)
    assert result.state.pending_transfer.payee == "Bob"


# ──────────────────────────────────────────────────────────
# Purity and failure handling
# ──────────────────────────────────────────────────────────
def test_step_is_deterministic(engine, registered):
    state = engine.step(registered, "new bill", intent=IntentLabel.POST_BILLS).state
    snapshot = state.to_dict()

    first = engine.step(state, "Recurring")
    second = engine.step(state, "Recurring")

    assert first == second
    assert state.to_dict() == snapshot


def test_fail_turn_keeps_dialog(engine, registered):
    state = _run(
        engine,
        engine.step(registered, "new bill", intent=IntentLabel.POST_BILLS).state,
        "Recurring",
    )
    error = ServiceLookupError("down")

    result = engine.fail_turn(state, error)

    assert result.error is error
    assert result.state.dialog_mode == state.dialog_mode
    assert result.state.pending_bill == state.pending_bill
    assert result.state.onboarding == state.onboarding
    assert result.state.turn_count == state.turn_count + 1
    assert "Sorry" in result.reply_text


# ──────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────
@pytest.mark.parametrize(
    ("text", "expected"),
    [("400", 400), (" 400 ", 400), ("+12", 12), ("-5", -5), ("0", 0)],
)
def test_parse_amount_accepts_integers(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize("text", ["", "abc", "1.5", "4_00", "$400", "99999999999"])
def test_parse_amount_rejects(text):
    with pytest.raises(ParseError):
        parse_amount(text)


def test_format_money():
    assert format_money(Decimal("250")) == "250"
    assert format_money(Decimal("250.00")) == "250"
    assert format_money(Decimal("1042.17")) == "1042.17"
    assert format_money(Decimal("12.5")) == "12.50"


def test_format_money_extreme_values():
    assert format_money(Decimal("1E+30")) == "1" + "0" * 30
    assert format_money(Decimal("-3.456")) == "-3.46"
    assert format_money(Decimal("Infinity")) == "Infinity"


def test_balance_renders_huge_amount(engine, registered):
    huge = "1" + "0" * 30
    done = engine.step(registered, "balance?", intent=IntentLabel.BALANCE, lookup=Decimal("1E+30"))
    assert done.reply_text.startswith(f"Your account balance is ${huge} USD.")

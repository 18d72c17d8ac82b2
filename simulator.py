"""Interactive CLI chat simulator — talk to Tali without a messaging channel."""

import asyncio
import uuid

from tali_agent.config import settings
from tali_agent.database.engine import async_session_factory, init_db
from tali_agent.services.account_api import AccountQueryService
from tali_agent.services.conversation_store import SqlConversationStore
from tali_agent.services.intent_classifier import IntentClassifier
from tali_agent.services.turn_orchestrator import TurnOrchestrator

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
DIM = "\033[2m"
BOLD = "\033[1m"
RESET = "\033[0m"


async def main() -> None:
    print(f"\n{BOLD}{'=' * 52}")
    print(f"  🤖  {settings.app_name} — Chat Simulator")
    print(f"{'=' * 52}{RESET}\n")

    # ── Initialise database (state store + mock bank) ────
    await init_db()

    print(f"{DIM}Tip: run seed.py first, then register with account ID ACC123{RESET}")
    print(f"{DIM}     Type 'quit' to exit, 'reset' to start the conversation over{RESET}\n")

    conversation_id = input(f"{YELLOW}Conversation ID (blank for new): {RESET}").strip()
    if not conversation_id:
        conversation_id = f"sim-{uuid.uuid4().hex[:8]}"
    print(f"{DIM}Conversation {conversation_id}{RESET}\n")

    # ── Set up the framework ─────────────────────────────
    orchestrator = TurnOrchestrator(
        store=SqlConversationStore(async_session_factory),
        classifier=IntentClassifier(),
        accounts=AccountQueryService(),
        assistant_name=settings.app_name,
    )

    # ── Start the mock external API in the background ────
    # The intent and account clients talk HTTP to it.
    import uvicorn
    from tali_agent.main import app

    config = uvicorn.Config(app, host="127.0.0.1", port=8000, log_level="warning")
    server = uvicorn.Server(config)
    server_task = asyncio.create_task(server.serve())

    # Give the server a moment to start
    await asyncio.sleep(0.5)

    while True:
        try:
            user_input = input(f"{BLUE}{BOLD}You:{RESET} ").strip()
        except (KeyboardInterrupt, EOFError):
            print(f"\n{DIM}Goodbye!{RESET}")
            break

        if not user_input:
            continue

        if user_input.lower() == "quit":
            print(f"{DIM}Goodbye!{RESET}")
            break

        if user_input.lower() == "reset":
            await orchestrator.reset(conversation_id)
            print(f"{GREEN}{BOLD}Agent:{RESET} 👋 Conversation reset. Send any message to start again.\n")
            continue

        # ── Run the turn ─────────────────────────────────
        response = await orchestrator.handle(conversation_id, user_input)

        print(f"{GREEN}{BOLD}Agent:{RESET} {response.reply_text}\n")
        if response.end_conversation:
            print(f"{DIM}Conversation ended. Type 'reset' to start over or 'quit' to exit.{RESET}\n")

    # Shut down the background server
    server.should_exit = True
    await server_task


if __name__ == "__main__":
    asyncio.run(main())

"""Interactive command-line interface for chatting with a SQLite database."""

import argparse
import json

from chatbot.ChatOrchestrator import ChatOrchestrator  # type: ignore
from chatbot.config import Settings, configure_logging  # type: ignore
from chatbot.errors import ChatError  # type: ignore
from chatbot.llm_client import create_llm_client  # type: ignore
from chatbot.models import ChatResponse  # type: ignore
from chatbot.tools import ToolRegistry  # type: ignore
from database.metadata import ConnectionConfig  # type: ignore
from database.SchemaScanner import SchemaScanner  # type: ignore
from database.semantic import generate_schema_summary  # type: ignore
from database.SQLiteProvider import SQLiteProvider  # type: ignore


HELP_TEXT = """\
Commands:
  /schema        show the scanned schema
  /clear         start a new conversation
  /write on|off  allow or forbid write statements
  quit, exit     leave"""


def _print_response(response: ChatResponse) -> None:
    print(f"\nAssistant: {response.description}")
    if response.sql:
        print(f"\nSQL: {response.sql}")
    if response.data is not None:
        print(json.dumps(response.data, indent=2, default=str))


def _handle_command(command: str, bot: ChatOrchestrator, registry: ToolRegistry) -> None:
    parts = command.split()
    if parts[0] == "/clear":
        bot.clear_history()
        print("Conversation cleared.")
    elif parts[0] == "/schema" and bot.metadata is not None:
        print(generate_schema_summary(bot.metadata))
    elif parts[0] == "/write" and len(parts) == 2 and parts[1] in ("on", "off"):
        registry.set_read_only_mode(parts[1] == "off")
        print(f"Write statements {'allowed' if parts[1] == 'on' else 'blocked'}.")
    else:
        print(HELP_TEXT)


def main():
    """Run the interactive chatbot REPL.

    Connects to the SQLite database, scans its schema, then enters a
    read-eval-print loop where the user can ask questions about the data.
    """
    settings = Settings.from_env()

    parser = argparse.ArgumentParser(description="Chat with a SQLite database.")
    parser.add_argument("--db", default=settings.db_path, help="SQLite database file (default: $DB_PATH)")
    parser.add_argument("--write", action="store_true", help="allow write statements")
    args = parser.parse_args()

    if not args.db:
        parser.error("no database given; pass --db or set DB_PATH")

    configure_logging(settings.log_level)

    provider = SQLiteProvider()
    provider.connect(ConnectionConfig(type="sqlite", filename=args.db))
    metadata = SchemaScanner(provider).scan_database(database_name=args.db)

    registry = ToolRegistry(
        provider,
        metadata,
        read_only_mode=settings.read_only_mode and not args.write,
    )
    llm = create_llm_client(
        settings.llm_api_url,
        settings.llm_api_key,
        settings.llm_model,
        timeout=settings.llm_timeout_seconds,
    )
    bot = ChatOrchestrator(registry, llm, metadata)

    print(f"SQL Chat Assistant: {len(metadata.tables)} tables loaded (type 'quit' or 'exit' to stop)")
    print("-" * 48)

    try:
        while True:
            try:
                user_input = input("\nYou: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\nGoodbye!")
                break

            if not user_input:
                continue
            if user_input.lower() in ("quit", "exit"):
                print("Goodbye!")
                break
            if user_input.startswith("/"):
                _handle_command(user_input, bot, registry)
                continue

            print("\nThinking...")
            try:
                response = bot.chat(
                    user_input,
                    on_tool_call=lambda name, params: print(
                        f"Tool: {name} {params.get('sql', '')}".rstrip()
                    ),
                )
            except ChatError as e:
                print(f"\nAssistant: Sorry, I could not answer that: {e}")
                continue
            _print_response(response)
    finally:
        provider.disconnect()


if __name__ == "__main__":
    main()

import argparse
import asyncio
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown

from orchestrator.orchestrator_manager import OrchestratorManager
from persona_chat.exception.custom_exception import PersonaChatException
from persona_chat.types import ConversationTurn, UploadedFile

console = Console()


def parse_args():
    parser = argparse.ArgumentParser(description="Chat with a persona from the terminal")
    parser.add_argument("--token-id", required=True, help="NFT token id of the persona")
    parser.add_argument(
        "--ingest",
        nargs="*",
        default=[],
        metavar="FILE",
        help="files to ingest for the persona before chatting",
    )
    return parser.parse_args()


async def run(token_id: str, ingest_paths: list[str]):
    # ===========================================================
    # INITIALIZE COMPONENTS
    # ===========================================================
    console.print("[bold cyan]Initializing pipeline...[/bold cyan]")
    manager = OrchestratorManager()
    await manager.startup()
    key = manager.persona_key(token_id)

    try:
        if ingest_paths:
            files = [
                UploadedFile(name=Path(p).name, content=Path(p).read_bytes())
                for p in ingest_paths
            ]
            result = await manager.ingestion.ingest(files, key)
            console.print(
                f"[green]{result.message}[/green] "
                f"(inserted={result.inserted_count}, skipped={len(result.skipped_files)})"
            )
            for err in result.errors:
                console.print(f"[red]{err}[/red]")

        console.print(f"[green]Ready. Chatting with {key}.[/green]\n")

        # Chat history for chatbot mode
        history: list[ConversationTurn] = []

        # ===========================================================
        # CHAT LOOP
        # ===========================================================
        while True:
            user_input = console.input("[bold magenta]You:[/bold magenta] ")

            if user_input.lower() in ["exit", "quit", "bye"]:
                console.print("[yellow]Exiting chat. Goodbye![/yellow]")
                break

            try:
                response = await manager.chat.chat(user_input, key, history)
            except PersonaChatException as e:
                console.print(f"[red]{e.code}: {e.error_message}[/red]\n")
                continue

            console.print("\n[bold green]Persona:[/bold green]")
            console.print(Markdown(response.answer))

            if response.meta.get("sources"):
                console.print(
                    f"\n[dim]sources: {', '.join(response.meta['sources'])}[/dim]"
                )

            # Store in chat history
            history.append(ConversationTurn("user", user_input))
            history.append(ConversationTurn("assistant", response.answer))

            console.print("\n" + "-" * 60 + "\n")
    finally:
        await manager.aclose()


if __name__ == "__main__":
    args = parse_args()
    asyncio.run(run(args.token_id, args.ingest))

#!/usr/bin/env python3
"""Interactive multimodal chat CLI for the ChatRelay gateway."""

import asyncio
import shlex
import sys
from collections.abc import Coroutine
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from chatrelay.chat_client.dispatcher import Dispatcher
from chatrelay.chat_client.gateway import DEFAULT_BASE_URL, GatewayClient, GatewayRequestError
from chatrelay.chat_client.models import ConversationEntry
from chatrelay.chat_client.recorder import FileAudioCapture, RecorderError

SEVERITY_STYLES = {"success": "green", "info": "yellow", "error": "red"}


class ChatCLI:
    """Interactive chat interface for the ChatRelay gateway."""

    def __init__(self, base_url: str = DEFAULT_BASE_URL):
        """Initialize chat CLI."""
        self.base_url = base_url
        self.console = Console()
        self.gateway = GatewayClient(base_url)
        self.dispatcher = Dispatcher(self.gateway, notify=self._notify)
        self.pending: set[asyncio.Task[None]] = set()
        self._rendered = 0

    async def start(self) -> None:
        """Start the interactive chat session."""
        self.console.print(
            Panel.fit(
                "[bold blue]🤖 ChatRelay - Interactive Chat[/bold blue]\n"
                "Type a message to chat, or use /photo, /record, /upload.\n"
                "Commands: /help, /clear, /quit",
                border_style="blue",
            )
        )

        if not await self._test_connection():
            self.console.print(f"[red]❌ Cannot connect to the gateway at {self.base_url}.[/red]")
            await self.gateway.close()
            return

        try:
            while True:
                # Read input off the event loop so dispatches keep running
                user_input = await asyncio.to_thread(Prompt.ask, "\n[bold cyan]You[/bold cyan]")
                if not await self._handle(user_input.strip()):
                    break
        except (KeyboardInterrupt, EOFError):
            pass
        finally:
            if self.pending:
                self.console.print(f"[dim]Waiting for {len(self.pending)} pending request(s)...[/dim]")
                await asyncio.gather(*self.pending, return_exceptions=True)
            await self.gateway.close()
            self.console.print("\n[yellow]👋 Goodbye![/yellow]")

    async def _handle(self, user_input: str) -> bool:
        """Handle one line of input. Returns False when the user quits."""
        if not user_input:
            return True
        if not user_input.startswith("/"):
            self._spawn(self.dispatcher.send_text(user_input))
            return True

        try:
            command, *args = shlex.split(user_input)
        except ValueError as e:
            self.console.print(f"[red]Could not parse command: {e}[/red]")
            return True
        command = command.lower()

        if command in ("/quit", "/exit"):
            return False
        elif command == "/help":
            self._show_help()
        elif command == "/clear":
            self.dispatcher.clear()
            self._rendered = 0
        elif command == "/photo":
            for path in self._existing_paths(args, "/photo <image path>"):
                self._spawn(self.dispatcher.capture_photo(path))
        elif command == "/upload":
            for path in self._existing_paths(args, "/upload <path> [<path> ...]"):
                self._spawn(self.dispatcher.upload_file(path))
        elif command == "/record":
            self._toggle_recording(args)
        elif command == "/files":
            self._show_files()
        elif command == "/remove":
            self._remove_file(args)
        elif command == "/status":
            await self._show_status()
        elif command == "/test":
            await self._test_provider()
        else:
            self.console.print(f"[red]Unknown command: {command}[/red] (try /help)")

        return True

    def _spawn(self, dispatch: Coroutine[Any, Any, ConversationEntry | None]) -> None:
        async def run() -> None:
            await dispatch
            self._render_new_entries()

        task = asyncio.create_task(run())
        self.pending.add(task)
        task.add_done_callback(self.pending.discard)
        self._render_new_entries()

    def _toggle_recording(self, args: list[str]) -> None:
        if self.dispatcher.recorder.recording:
            self._spawn(self.dispatcher.finish_recording())
            return

        if not args:
            self.console.print("[red]Usage: /record <audio file> to start, /record again to stop[/red]")
            return

        try:
            self.dispatcher.start_recording(FileAudioCapture(Path(args[0]).expanduser()))
        except RecorderError as e:
            self._notify(str(e), "error")

    def _existing_paths(self, args: list[str], usage: str) -> list[Path]:
        if not args:
            self.console.print(f"[red]Usage: {usage}[/red]")
            return []

        paths = []
        for arg in args:
            path = Path(arg).expanduser()
            if path.is_file():
                paths.append(path)
            else:
                self._notify(f"File not found: {arg}", "error")
        return paths

    async def _test_connection(self) -> bool:
        """Test connection to the gateway."""
        try:
            health = await self.gateway.health()
        except GatewayRequestError:
            return False

        if health.get("openai") == "connected":
            self.console.print("[green]✅ Connected to gateway, OpenAI available[/green]")
        else:
            self.console.print(f"[yellow]⚠️ Connected to gateway, OpenAI status: {health.get('openai')}[/yellow]")
        return True

    async def _show_status(self) -> None:
        try:
            health = await self.gateway.health()
        except GatewayRequestError as e:
            self._notify(f"Cannot connect to backend server: {e.message}", "error")
            return

        self.console.print(
            f"Gateway: [bold]{health.get('status')}[/bold], OpenAI: [bold]{health.get('openai')}[/bold], "
            f"key configured: {health.get('api_key_configured')}, pending requests: {len(self.pending)}"
        )

    async def _test_provider(self) -> None:
        try:
            result = await self.gateway.test_provider()
        except GatewayRequestError as e:
            self._notify(f"Provider test failed: {e.message}", "error")
            return

        severity = "success" if result.get("success") else "error"
        detail = result.get("response") or result.get("error") or ""
        self._notify(f"{result.get('message')} {detail}".strip(), severity)

    def _render_new_entries(self) -> None:
        entries = self.dispatcher.log.entries
        for entry in entries[self._rendered :]:
            self._display_entry(entry)
        self._rendered = len(entries)

    def _display_entry(self, entry: ConversationEntry) -> None:
        """Display a conversation entry with nice formatting."""
        if entry.sender == "user":
            self.console.print(f"[dim]You: {entry.text}[/dim]")
        elif entry.sender == "error":
            self.console.print(f"[red]{entry.text}[/red]")
        else:
            self.console.print(
                Panel(
                    Markdown(entry.text),
                    title="[bold green]🤖 Assistant[/bold green]",
                    border_style="green",
                    padding=(1, 2),
                )
            )

    def _show_files(self) -> None:
        if not len(self.dispatcher.shelf):
            self.console.print("[dim]No files uploaded yet[/dim]")
            return

        table = Table(title="Uploaded Files")
        table.add_column("ID", style="dim")
        table.add_column("Name")
        table.add_column("Type")
        table.add_column("Size", justify="right")
        table.add_column("Summary")
        for artifact in self.dispatcher.shelf:
            table.add_row(
                artifact.id,
                artifact.name,
                artifact.mime_type,
                f"{artifact.size_bytes / 1024:.1f} KB",
                artifact.result_summary[:40],
            )
        self.console.print(table)

    def _remove_file(self, args: list[str]) -> None:
        if not args:
            self.console.print("[red]Usage: /remove <file id>[/red]")
            return
        if self.dispatcher.shelf.remove(args[0]):
            self._notify("File removed", "info")
        else:
            self._notify(f"No uploaded file with id {args[0]}", "error")

    def _notify(self, message: str, severity: str) -> None:
        style = SEVERITY_STYLES.get(severity, "white")
        self.console.print(f"[{style}]{message}[/{style}]")

    def _show_help(self) -> None:
        """Show help information."""
        help_text = """
[bold]Available Commands:[/bold]
• /photo <path> - Send an image snapshot for description
• /record <path> - Start a recording from an audio file; /record again to stop and transcribe
• /upload <path> [<path> ...] - Upload and analyze files (PDF, images, docs, text)
• /files - List uploaded files
• /remove <id> - Forget an uploaded file
• /status - Show gateway and provider status
• /test - Run a live provider check
• /clear - Clear the conversation
• /quit or /exit - Exit the chat

[bold]Tips:[/bold]
• Requests run in the background; keep typing while a reply is pending
• Replies appear in the order they complete
        """

        self.console.print(Panel(help_text.strip(), title="[cyan]❓ Help[/cyan]", border_style="cyan"))


def main() -> None:
    """Main entry point for the chat CLI."""
    base_url = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_BASE_URL

    chat = ChatCLI(base_url)
    try:
        asyncio.run(chat.start())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

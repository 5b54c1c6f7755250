"""Shell Chat - terminal client for the Workers AI chat gateway.

Streams assistant replies into a live Markdown view and can request images,
saving them as PNG files.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import random
import re
import signal
import sys
import time
from pathlib import Path
from typing import Optional

import httpx
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Prompt
from rich.spinner import Spinner
from rich.style import Style

from ..services.image_normalizer import ImageNormalizationError
from .api import ChatClient, ChatClientError
from .session import ChatSession

# Styles
ASSISTANT_STYLE = Style(color="bright_green")
ERROR_STYLE = Style(color="red", bold=True)
INFO_STYLE = Style(color="cyan")

THINKING_WORDS = (
    "Thinking",
    "Processing",
    "Analyzing",
    "Synthesizing",
    "Calculating",
    "Contemplating",
    "Formulating",
    "Reasoning",
)

DEFAULT_OUTPUT_DIR = Path.cwd() / "images"


def _image_filename(prompt: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", prompt.lower()).strip("-")[:40] or "image"
    return f"{slug}-{time.strftime('%Y%m%d-%H%M%S')}.png"


class ShellChat:
    """Terminal chat client for the gateway."""

    def __init__(
        self,
        server_url: str,
        output_dir: Path = DEFAULT_OUTPUT_DIR,
        *,
        console: Optional[Console] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.output_dir = output_dir
        self.console = console or Console()
        self.running = True
        self._http_client = http_client
        self.client = self._new_client()

    def _new_client(self) -> ChatClient:
        return ChatClient(
            self.server_url,
            ChatSession.start(),
            http_client=self._http_client,
        )

    def _show_greeting(self) -> None:
        greeting = self.client.session.greeting
        if greeting:
            self.console.print(Markdown(greeting), style=ASSISTANT_STYLE)

    async def _clear_session(self) -> None:
        """Start a fresh conversation."""
        await self.client.aclose()
        self.client = self._new_client()
        self.console.print("Session cleared. Starting fresh.", style=INFO_STYLE)
        self._show_greeting()

    def _show_help(self) -> None:
        """Show available commands."""
        help_text = """
[bold]Commands:[/bold]
  /help              Show this help message
  /clear             Clear session (new conversation)
  /image <prompt>    Generate an image and save it as PNG
  /quit              Exit shell-chat

[bold]Shortcuts:[/bold]
  Ctrl+D             Exit shell-chat
"""
        self.console.print(
            Panel(help_text.strip(), title="Shell Chat Help", border_style="blue")
        )

    async def _generate_image(self, prompt: str) -> None:
        """Request an image for ``prompt`` and write it to the output directory."""
        with self.console.status("Generating image..."):
            try:
                result = await self.client.generate_image(prompt)
                data = result.to_bytes()
            except ChatClientError as e:
                self.console.print(
                    f"Image request failed: {e.detail}", style=ERROR_STYLE, markup=False
                )
                return
            except (httpx.HTTPError, ImageNormalizationError) as e:
                self.console.print(
                    f"Image request failed: {e}", style=ERROR_STYLE, markup=False
                )
                return

        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / _image_filename(prompt)
        path.write_bytes(data)
        self.console.print(f"Saved image to {path}", style=INFO_STYLE)

    async def _handle_command(self, cmd: str) -> bool:
        """Handle slash commands. Returns True if handled."""
        parts = cmd.strip().split(maxsplit=1)
        if not parts:
            return False

        command = parts[0].lower()

        if command == "/help":
            self._show_help()
            return True
        elif command == "/clear":
            await self._clear_session()
            return True
        elif command == "/quit":
            self.running = False
            return True
        elif command == "/image":
            if len(parts) > 1 and parts[1].strip():
                await self._generate_image(parts[1].strip())
            else:
                self.console.print("[dim]Usage: /image <prompt>[/dim]")
            return True

        return False

    async def _stream_chat(self, message: str) -> None:
        """Send ``message`` and repaint the reply as deltas arrive."""
        thinking = Spinner(
            "dots",
            text=f"{random.choice(THINKING_WORDS)}...",
            style=INFO_STYLE,
        )

        with Live(thinking, console=self.console, refresh_per_second=10) as live:

            def repaint(text: str) -> None:
                live.update(Markdown(text))

            reply = await self.client.send_message(message, on_update=repaint)
            live.update(Markdown(reply), refresh=True)

        if self.client.last_error is not None:
            self.console.print(
                f"Request failed: {self.client.last_error}",
                style=ERROR_STYLE,
                markup=False,
            )

    async def run(self) -> None:
        """Main chat loop."""
        self.console.print()
        self.console.print(
            "[bold]Shell Chat[/bold] - Type /help for commands, Ctrl+D to exit",
            style=INFO_STYLE,
        )
        self.console.print()
        self._show_greeting()

        try:
            while self.running:
                try:
                    user_input = Prompt.ask("[bold blue]You[/bold blue]")
                    if not user_input.strip():
                        continue

                    if user_input.startswith("/"):
                        if await self._handle_command(user_input):
                            continue

                    self.console.print()
                    await self._stream_chat(user_input)
                    self.console.print()

                except EOFError:
                    # Ctrl+D
                    self.console.print("\n[dim]Goodbye![/dim]")
                    break
        finally:
            await self.client.aclose()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Shell Chat - terminal client for the Workers AI chat gateway",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  workers-chat-shell                           Connect to localhost:8000
  workers-chat-shell --server http://pi:8000   Connect to remote server
  workers-chat-shell --output-dir ~/Pictures   Save generated images there

Environment Variables:
  WORKERS_CHAT_SERVER    Default server URL
""",
    )
    parser.add_argument(
        "--server",
        "-s",
        default=os.environ.get("WORKERS_CHAT_SERVER", "http://localhost:8000"),
        help="Gateway server URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--output-dir",
        "-o",
        type=Path,
        default=DEFAULT_OUTPUT_DIR,
        help="Directory for images generated with /image (default: ./images)",
    )

    args = parser.parse_args()

    # Handle signals
    def signal_handler(sig, frame):
        print("\nExiting...")
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    chat = ShellChat(server_url=args.server, output_dir=args.output_dir.expanduser())
    try:
        asyncio.run(chat.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

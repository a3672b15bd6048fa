"""
CLI Progress Monitor for Scene Video Generation

Renders controller job events on the terminal with colours and prints
kind-specific guidance when a job fails.
"""

import json
import sys
from typing import Optional, TextIO

from services.video_generation.events import EventType, JobEvent
from services.video_generation.models import FailureInfo, FailureKind


# ANSI color codes
class Colors:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"

    # Clear line
    CLEAR_LINE = "\033[2K\r"


def colored(text: str, color: str) -> str:
    """Apply color to text."""
    return f"{color}{text}{Colors.RESET}"


def format_duration(seconds: float) -> str:
    """Format duration as HH:MM:SS or MM:SS."""
    if seconds < 0:
        return "--:--"

    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_event(event: JobEvent) -> str:
    """Format event for display."""
    type_config = {
        EventType.STATUS: ("▶️", Colors.CYAN),
        EventType.POLL: ("⏳", Colors.DIM),
        EventType.COMPLETED: ("✅", Colors.GREEN),
        EventType.FAILED: ("❌", Colors.RED),
        EventType.CANCELLED: ("⏹️", Colors.YELLOW),
    }
    icon, color = type_config.get(event.event_type, ("•", Colors.WHITE))
    elapsed = colored(format_duration(event.elapsed_seconds), Colors.DIM)

    if event.event_type == EventType.POLL:
        return (
            f"{Colors.CLEAR_LINE}{icon} "
            f"{colored(f'poll #{event.poll_count}', Colors.DIM)} "
            f"{colored(event.message[:40], Colors.WHITE)} {elapsed}"
        )

    if event.event_type == EventType.FAILED and event.failure:
        return "\n".join([
            f"{icon} {colored(event.failure.kind.value.upper(), color)} {elapsed}",
            colored(f"    {guidance_for(event.failure)}", Colors.DIM),
        ])

    status = colored(event.status.value.upper(), color)
    return f"{icon} {status} {event.message} {elapsed}"


def guidance_for(failure: FailureInfo) -> str:
    """Guidance line shown under a failure."""
    if failure.kind == FailureKind.CREDENTIAL_INVALID:
        return f"{failure.guidance} ({failure.message})"
    return failure.guidance


class ProgressMonitor:
    """Prints job events as they arrive, coloured or as JSON lines."""

    def __init__(self, stream: Optional[TextIO] = None, json_lines: bool = False):
        self.stream = stream or sys.stdout
        self.json_lines = json_lines
        self._polling_line = False

    def __call__(self, event: JobEvent):
        self.handle_event(event)

    def handle_event(self, event: JobEvent):
        """Handle incoming event."""
        if self.json_lines:
            print(json.dumps(event.to_dict()), file=self.stream, flush=True)
            return

        line = format_event(event)

        # Poll events update in place
        if event.event_type == EventType.POLL:
            self._polling_line = True
            print(line, end="", flush=True, file=self.stream)
            return

        if self._polling_line:
            print(file=self.stream)
            self._polling_line = False
        print(line, file=self.stream)

    def banner(self, prompt: str):
        if self.json_lines:
            return
        print(colored("\n╔═══════════════════════════════════════════╗", Colors.CYAN), file=self.stream)
        print(colored("║  SceneReel - AI Video Scene Generator     ║", Colors.CYAN), file=self.stream)
        print(colored("╚═══════════════════════════════════════════╝", Colors.CYAN), file=self.stream)
        print(f"Prompt: {colored(prompt[:70], Colors.BOLD)}", file=self.stream)
        print(colored("─" * 45, Colors.DIM), file=self.stream)

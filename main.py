#!/usr/bin/env python3
"""
SceneReel - Main Entry Point

Turns a scene description into a video with Google Veo.

Usage:
    # Generate a video from a prompt
    python main.py generate "A robot holding a red skateboard"

    # Generate from a prompt file in portrait format
    python main.py generate --prompt-file scene.txt --aspect-ratio 9:16

    # Check whether an API key is available
    python main.py check-key
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Optional

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("scenereel")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CREDENTIAL = 2


async def ensure_credential(gate) -> bool:
    """Check for a key and run the selection flow once if none is selected."""
    from services.credentials import CredentialState

    state = await gate.check_initial()
    if state == CredentialState.SELECTED:
        return True

    print("API key required. It is used for your generation requests.", file=sys.stderr)
    state = await gate.request_selection()
    if state != CredentialState.SELECTED:
        logger.error(f"No API key selected: {gate.last_error}")
        return False
    return True


async def reselect_after_rejection(gate, confirm: Callable[[str], str] = input) -> bool:
    """
    Ask for a new key after the service rejected the current one.

    Returns True when a new key was selected and the user wants the
    scene resubmitted with it.
    """
    from services.credentials import CredentialState

    print("Your API key was rejected. Enter a new key to continue.", file=sys.stderr)
    state = await gate.request_selection()
    if state != CredentialState.SELECTED:
        logger.error(f"No API key selected: {gate.last_error}")
        return False

    try:
        answer = await asyncio.to_thread(confirm, "Resubmit the scene with the new key? [Y/n] ")
    except (EOFError, KeyboardInterrupt):
        answer = "n"

    if answer.strip().lower() in ("", "y", "yes"):
        return True

    print(
        "New key accepted for this session. Set GOOGLE_API_KEY to keep it for later runs.",
        file=sys.stderr,
    )
    return False


async def generate_video(
    prompt: str,
    resolution: Optional[str] = None,
    aspect_ratio: Optional[str] = None,
    output_dir: Optional[str] = None,
    poll_interval: Optional[float] = None,
    json_events: bool = False,
    selector=None,
    client_factory: Optional[Callable[[str], Any]] = None,
    artifact_store=None,
    confirm: Callable[[str], str] = input,
) -> int:
    """
    Generate a single scene video.

    A rejected API key opens the key prompt again; with a new key the
    scene is resubmitted if the user agrees.

    Args:
        prompt: Scene description
        resolution: "720p" or "1080p" (config default if None)
        aspect_ratio: "16:9" or "9:16" (config default if None)
        output_dir: Directory for the downloaded video
        poll_interval: Seconds between status checks (config default if None)
        json_events: Print job events as JSON lines instead of coloured text
        selector: Credential selector (terminal ApiKeySelector if None)
        client_factory: Builds a genai client from a key (override for tests)
        artifact_store: Artifact store (HttpArtifactStore if None)
        confirm: Asks whether to resubmit after a new key is selected

    Returns:
        Process exit code
    """
    from pydantic import ValidationError

    from cli.progress_monitor import ProgressMonitor
    from core.config import get_config
    from services.credentials import ApiKeySelector, CredentialGate
    from services.video_generation import (
        FailureKind,
        GenerationJobController,
        GenerationRequest,
        HttpArtifactStore,
        JobStatus,
        LocalArtifactWriter,
        VeoOperationService,
    )

    config = get_config()
    for issue in config.validate():
        logger.warning(issue)

    try:
        request = GenerationRequest(
            prompt=prompt,
            resolution=resolution or config.generation.default_resolution,
            aspect_ratio=aspect_ratio or config.generation.default_aspect_ratio,
            model=config.generation.model,
        )
    except ValidationError as e:
        logger.error(f"Invalid request: {e}")
        return EXIT_FAILED

    gate = CredentialGate(selector or ApiKeySelector(env_vars=config.api.credential_env_vars))
    if not await ensure_credential(gate):
        return EXIT_CREDENTIAL

    owns_store = artifact_store is None
    store = artifact_store or HttpArtifactStore(timeout=config.generation.download_timeout_seconds)
    controller = GenerationJobController(
        gate=gate,
        operation_service=VeoOperationService(
            credential_provider=lambda: gate.credential,
            client_factory=client_factory,
        ),
        artifact_store=store,
        artifact_writer=LocalArtifactWriter(output_dir or config.storage.output_dir),
        poll_interval_seconds=poll_interval,
        config=config,
    )

    monitor = ProgressMonitor(json_lines=json_events)
    monitor.banner(request.prompt)
    controller.subscribe(monitor)

    try:
        while True:
            await controller.submit(request)

            failure = controller.current_failure()
            if failure is None or failure.kind != FailureKind.CREDENTIAL_INVALID:
                break
            if not await reselect_after_rejection(gate, confirm):
                return EXIT_CREDENTIAL
            controller.acknowledge()
    finally:
        if owns_store:
            await store.close()

    if controller.current_status() == JobStatus.READY:
        print(f"\nVideo ready: {controller.current_result().path}")
        return EXIT_OK
    return EXIT_FAILED


async def check_key() -> int:
    """Report whether an API key is currently selected."""
    from core.config import get_config
    from services.credentials import ApiKeySelector, CredentialGate, CredentialState

    config = get_config()
    gate = CredentialGate(ApiKeySelector(env_vars=config.api.credential_env_vars))
    state = await gate.check_initial()
    print(f"Credential state: {state.value}")
    return EXIT_OK if state == CredentialState.SELECTED else EXIT_CREDENTIAL


def read_prompt(args: argparse.Namespace) -> Optional[str]:
    if args.prompt_file:
        return Path(args.prompt_file).read_text(encoding="utf-8")
    return args.prompt


def main():
    from core.config import ASPECT_RATIOS, RESOLUTIONS, get_config

    defaults = get_config().generation

    parser = argparse.ArgumentParser(
        description="SceneReel - AI Video Scene Generator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Generate a video
    python main.py generate "A golden retriever running through a field"

    # Portrait, full HD, custom output directory
    python main.py generate --prompt-file scene.txt -a 9:16 -r 1080p -o ./videos

    # Check API key
    python main.py check-key
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Generate command
    gen_parser = subparsers.add_parser("generate", help="Generate a video")
    gen_parser.add_argument("prompt", nargs="?", help="Scene description")
    gen_parser.add_argument("--prompt-file", "-f", help="Read the scene description from a file")
    gen_parser.add_argument(
        "--resolution",
        "-r",
        choices=RESOLUTIONS,
        default=defaults.default_resolution,
        help="Output resolution",
    )
    gen_parser.add_argument(
        "--aspect-ratio",
        "-a",
        choices=ASPECT_RATIOS,
        default=defaults.default_aspect_ratio,
        help="Output aspect ratio",
    )
    gen_parser.add_argument("--output", "-o", help="Output directory")
    gen_parser.add_argument(
        "--poll-interval",
        type=float,
        help=f"Seconds between status checks (default: {defaults.poll_interval_seconds:g})",
    )
    gen_parser.add_argument("--json", action="store_true", help="Print job events as JSON lines")

    # Check key command
    subparsers.add_parser("check-key", help="Check whether an API key is selected")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "generate":
        prompt = read_prompt(args)
        if not prompt or not prompt.strip():
            gen_parser.error("a prompt or --prompt-file is required")

        sys.exit(asyncio.run(
            generate_video(
                prompt=prompt,
                resolution=args.resolution,
                aspect_ratio=args.aspect_ratio,
                output_dir=args.output,
                poll_interval=args.poll_interval,
                json_events=args.json,
            )
        ))

    elif args.command == "check-key":
        sys.exit(asyncio.run(check_key()))


if __name__ == "__main__":
    main()

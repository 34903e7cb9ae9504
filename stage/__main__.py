"""Typer CLI for the terminal stage: `python -m stage`."""

import asyncio
import json
import random
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv

from core.logging_config import setup_logging
from stage.client import DEFAULT_BASE_URL, APIRequestError, RoastAPIClient
from stage.fillers import load_fillers
from stage.flow import DEFAULT_STEPS, FlowStep
from stage.items import item_to_dict, to_items
from stage.sequencer import PlaybackTiming
from stage.terminal import build_show

app = typer.Typer(help="The Git Roast Show, live in your terminal")

FILLERS_FILE = "fillerswithsfx.json"


def _configure(debug: bool) -> None:
    load_dotenv()
    setup_logging(log_level="DEBUG" if debug else "WARNING")


@app.command()
def show(
    username: Optional[str] = typer.Argument(
        None, help="GitHub username or profile URL (asked for when omitted)"
    ),
    api_url: str = typer.Option(
        DEFAULT_BASE_URL, "--api-url", envvar="ROAST_API_URL", help="Backend base URL"
    ),
    media: Path = typer.Option(
        Path("media"), "--media", envvar="ROAST_MEDIA_DIR", help="Directory with sounds/ and roasts/"
    ),
    language: str = typer.Option("en", "-l", "--language", help="Roast language"),
    quick: bool = typer.Option(False, "--quick", help="Use the quick roast endpoint"),
    no_sound: bool = typer.Option(False, "--no-sound", help="Disable sound effects and speech"),
    no_tts: bool = typer.Option(False, "--no-tts", help="Disable speech only"),
    skip_intro: bool = typer.Option(False, "--skip-intro", help="Leave out the enter screen"),
    no_fillers: bool = typer.Option(False, "--no-fillers", help="Leave out the filler segments"),
    speed: float = typer.Option(1.0, "--speed", min=0.1, help="Playback speed multiplier"),
    voice: Optional[str] = typer.Option(None, "-v", "--voice", help="ElevenLabs voice ID"),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging"),
) -> None:
    """Run the full show: enter, username, fillers, roast, outro."""
    _configure(debug)

    steps: List[FlowStep] = list(DEFAULT_STEPS)
    if skip_intro:
        steps.remove(FlowStep.ENTER_BUTTON)

    fillers = None
    fillers_path = media / FILLERS_FILE
    if not no_fillers and fillers_path.is_file():
        fillers = load_fillers(fillers_path)

    async def _run() -> None:
        async with RoastAPIClient(api_url) as client:
            flow = build_show(
                client,
                media,
                fillers=fillers,
                username=username,
                steps=steps,
                sound=not no_sound,
                tts=not no_tts,
                language=language,
                quick=quick,
                timing=PlaybackTiming(time_scale=1.0 / speed),
                voice_id=voice,
            )
            await flow.run()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        typer.echo("\nShow stopped")
        raise typer.Exit(130)


@app.command()
def script(
    username: str = typer.Argument(..., help="GitHub username"),
    text: Optional[str] = typer.Option(
        None, "--text", help="Convert this roast text instead of asking the backend"
    ),
    api_url: str = typer.Option(DEFAULT_BASE_URL, "--api-url", envvar="ROAST_API_URL"),
    language: str = typer.Option("en", "-l", "--language"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for sound effect placement"),
    debug: bool = typer.Option(False, "--debug"),
) -> None:
    """Print the playback script for a roast as JSON."""
    _configure(debug)
    rng = random.Random(seed)

    if text is not None:
        items = to_items(text, username, rng)
    else:

        async def _fetch():
            async with RoastAPIClient(api_url) as client:
                return await client.get_roast_items(username, language=language, rng=rng)

        items = asyncio.run(_fetch())

    typer.echo(json.dumps([item_to_dict(item) for item in items], indent=2, ensure_ascii=False))


@app.command()
def health(
    api_url: str = typer.Option(DEFAULT_BASE_URL, "--api-url", envvar="ROAST_API_URL"),
) -> None:
    """Check that the backend is up."""
    _configure(False)

    async def _check():
        async with RoastAPIClient(api_url) as client:
            return await client.check_health()

    try:
        status = asyncio.run(_check())
    except APIRequestError as e:
        typer.echo(f"✗ Backend unavailable: {e.message} (status {e.status})", err=True)
        raise typer.Exit(1) from None

    services = status.get("services", {})
    typer.echo(f"✓ Backend {status.get('status', 'unknown')} (version {status.get('version')})")
    for name, state in services.items():
        typer.echo(f"  {name}: {state}")


if __name__ == "__main__":
    app()

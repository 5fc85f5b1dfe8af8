from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console, Group
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .cache import Cache
from .game import Action, Game, InvalidAction, Phase
from .maps import destination_map, guess_map, open_map
from .model_client import DEFAULT_PROVIDER, PROVIDERS, InferenceGateway, ModelClient
from .prompts import HOST_WELCOME
from .types import FlightDestination, GuessAnalysis, RevealResult, SessionArtifact, TranscriptEntry
from .utils import decode_data_url, extension_for, get_cache_dir

app = typer.Typer(add_completion=False, help="Play 'Where Is This?' with Captain Atlas in your terminal")
console = Console()
logger = logging.getLogger(__name__)

HOST_NAME = "🧑‍✈️ Captain Atlas"

HELP_TEXT = """[bold]Commands[/bold]
  /photo PATH    show Captain Atlas a photo
  /fly COORDS    fly to coordinates, e.g. /fly 32.65, 51.67
  /map           open a map of the latest guess or destination
  /new           start a new game
  /quit          leave
Anything else is your answer to "where is this?" (or coordinates when idle)."""


@dataclass
class Settings:
    provider: str = DEFAULT_PROVIDER
    model: Optional[str] = None
    use_cache: bool = True
    images: bool = True
    geocode: bool = True


def build_gateway(settings: Settings) -> InferenceGateway:
    return ModelClient(
        provider=settings.provider,
        model_name=settings.model,
        use_cache=settings.use_cache,
        synthesize_images=settings.images,
        geocode_hints=settings.geocode,
    )


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _guess_card(analysis: GuessAnalysis) -> Panel:
    table = Table(show_header=True, header_style="bold", box=None)
    table.add_column("Possibility")
    table.add_column("Confidence", justify="right")
    for p in analysis.possibilities:
        table.add_row(p.country, f"{p.confidence:.0f}%")

    parts = [
        Text("Visual clues: ", style="bold cyan") + Text(" · ".join(analysis.clues) or "none"),
        table,
        Text.assemble(
            ("My final guess: ", "bold"),
            (analysis.final_guess, "bold yellow"),
            f"  ({analysis.confidence_score:.0f}% confident)",
        ),
    ]
    if analysis.coordinates is not None:
        parts.append(Text(f"{analysis.coordinates.lat:.4f}, {analysis.coordinates.lng:.4f}", style="dim"))
    return Panel(Group(*parts), title="Analysis", border_style="cyan", expand=False)


def _result_card(result: RevealResult) -> Panel:
    verdict = Text("Nailed it! 🎯", style="bold green") if result.is_correct else Text(
        "Plot twist! 🤯", style="bold magenta"
    )
    parts = [verdict, Text(result.location_name, style="bold")]
    for fact in result.fun_facts:
        parts.append(Text(f"• {fact}"))
    if result.learning_note:
        parts.append(Text(f"💡 {result.learning_note}", style="italic"))
    return Panel(Group(*parts), title="Reveal", border_style="green" if result.is_correct else "magenta", expand=False)


def _save_picture(entry: TranscriptEntry, data_url: str) -> Optional[Path]:
    try:
        mime_type, data = decode_data_url(data_url)
        path = get_cache_dir("destinations") / f"{entry.id}{extension_for(mime_type)}"
        path.write_bytes(data)
    except (ValueError, OSError) as e:
        logger.warning("Could not save destination picture: %s", e)
        return None
    return path


def _destination_card(entry: TranscriptEntry, destination: FlightDestination) -> Panel:
    parts = [
        Text(destination.location_name, style="bold"),
        Text(f"{destination.city}, {destination.country}", style="dim"),
        Text(destination.description),
    ]
    if destination.coordinates is not None:
        parts.append(Text(f"{destination.coordinates.lat:.4f}, {destination.coordinates.lng:.4f}", style="dim"))
    if destination.image:
        path = _save_picture(entry, destination.image)
        if path:
            parts.append(Text(f"📸 {path}", style="blue"))
    return Panel(Group(*parts), title="Destination", border_style="blue", expand=False)


def render_entry(entry: TranscriptEntry, game: Game) -> None:
    if entry.kind == "text":
        if entry.role == "host":
            console.print(Text.assemble((f"{HOST_NAME}: ", "bold sky_blue3"), entry.text or ""))
        else:
            console.print(Text(f"{entry.text or ''} 👤", style="bold"), justify="right")
    elif entry.kind == "image":
        name = game.artifact.name if game.artifact and game.artifact.name else "photo"
        console.print(Text(f"[📷 {name}] 👤", style="bold"), justify="right")
    elif entry.kind == "guess":
        console.print(_guess_card(entry.payload))
    elif entry.kind == "result":
        console.print(_result_card(entry.payload))
    elif entry.kind == "flight_destination":
        console.print(_destination_card(entry, entry.payload))


class TranscriptPrinter:
    """Prints the entries the player has not seen yet."""

    def __init__(self, game: Game) -> None:
        self.game = game
        self.shown = 0

    def flush(self) -> None:
        if len(self.game.log) < self.shown:
            # the log was cleared by a new game
            self.shown = 0
        for entry in self.game.log.since(self.shown):
            render_entry(entry, self.game)
        self.shown = len(self.game.log)


async def _settle(game: Game, printer: TranscriptPrinter, task: asyncio.Task) -> None:
    printer.flush()
    label = "Flying..." if game.phase == Phase.FLYING else "Captain Atlas is thinking..."
    with console.status(label, spinner="earth"):
        await task
    printer.flush()


def _show_latest_map(game: Game, browse: bool = True) -> Optional[Path]:
    for entry in reversed(game.log.entries()):
        m = None
        if entry.kind == "guess":
            m = guess_map(entry.payload)
        elif entry.kind == "flight_destination":
            m = destination_map(entry.payload)
        if m is not None:
            path = open_map(m, browse=browse)
            console.print(f"🗺️  Map written to {path}")
            return path
    console.print("[yellow]No coordinates to map yet.[/yellow]")
    return None


async def _play(game: Game) -> None:
    printer = TranscriptPrinter(game)
    console.print(Panel(HOST_WELCOME, title="Where Is This? 🌍", border_style="sky_blue3"))
    console.print(HELP_TEXT)
    while True:
        try:
            line = (await asyncio.to_thread(console.input, f"[dim]({game.phase.value})[/dim] > ")).strip()
        except EOFError:
            break
        if not line:
            continue
        cmd, _, arg = line.partition(" ")
        task: Optional[asyncio.Task] = None
        try:
            if cmd in ("/quit", "/exit"):
                break
            elif cmd == "/help":
                console.print(HELP_TEXT)
            elif cmd == "/new":
                game.reset()
                printer.flush()
                console.print(Panel(HOST_WELCOME, border_style="sky_blue3"))
            elif cmd == "/map":
                _show_latest_map(game)
            elif cmd == "/photo":
                task = game.submit_image(SessionArtifact.from_path(arg.strip()))
            elif cmd == "/fly":
                task = game.submit_flight(arg)
            elif cmd.startswith("/"):
                console.print(f"[yellow]Unknown command {cmd}. Try /help.[/yellow]")
            elif game.accepts(Action.SUBMIT_REVEAL):
                task = game.submit_reveal(line)
            elif game.accepts(Action.SUBMIT_FLIGHT):
                task = game.submit_flight(line)
            else:
                console.print("[yellow]This round is over. Type /new for another destination.[/yellow]")
        except InvalidAction as e:
            console.print(f"[yellow]Not now: {e}. Try /new to start over.[/yellow]")
        except (FileNotFoundError, ValueError) as e:
            console.print(f"[red]{e}[/red]")
        if task is not None:
            await _settle(game, printer, task)


@app.callback()
def main(
    ctx: typer.Context,
    provider: str = typer.Option(DEFAULT_PROVIDER, help="Model provider: gemini or openai"),
    model: Optional[str] = typer.Option(None, help="Model name (defaults per provider)"),
    no_cache: bool = typer.Option(False, help="Do not reuse cached answers"),
    no_images: bool = typer.Option(False, help="Skip generating destination pictures"),
    no_geocode: bool = typer.Option(False, help="Skip the OpenStreetMap lookup for flights"),
    clear_cache: bool = typer.Option(False, help="Clear local cache before running"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    load_dotenv()  # allow .env
    if provider.lower() not in PROVIDERS:
        raise typer.BadParameter(f"choose one of {', '.join(PROVIDERS)}", param_hint="--provider")
    _setup_logging(verbose)
    if clear_cache:
        removed = Cache().clear()
        console.print(f"[dim]Cleared {removed} cached answers.[/dim]")
    ctx.obj = Settings(
        provider=provider,
        model=model,
        use_cache=not no_cache,
        images=not no_images,
        geocode=not no_geocode,
    )


@app.command()
def play(ctx: typer.Context):
    """Interactive game: send photos, reveal answers, fly around."""
    game = Game(build_gateway(ctx.obj))
    asyncio.run(_play(game))


@app.command()
def guess(
    ctx: typer.Context,
    image: Path = typer.Argument(..., exists=True, readable=True, dir_okay=False, help="Photo to guess"),
    answer: Optional[str] = typer.Option(None, "--answer", "-a", help="Reveal where the photo really is"),
    show_map: bool = typer.Option(False, "--map", help="Open a map of the guess"),
):
    """Let Captain Atlas guess where IMAGE was taken."""
    try:
        artifact = SessionArtifact.from_path(image)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=2)
    game = Game(build_gateway(ctx.obj))

    async def run() -> None:
        printer = TranscriptPrinter(game)
        await _settle(game, printer, game.submit_image(artifact))
        if answer and game.phase == Phase.AWAITING_REVEAL:
            await _settle(game, printer, game.submit_reveal(answer))

    asyncio.run(run())
    if show_map:
        _show_latest_map(game)
    if game.phase == Phase.FAILED:
        raise typer.Exit(code=1)


@app.command()
def fly(
    ctx: typer.Context,
    coordinates: str = typer.Argument(..., help='Where to go, e.g. "32.65, 51.67"'),
    show_map: bool = typer.Option(False, "--map", help="Open a map of the destination"),
):
    """Fly to COORDINATES and hear what is there."""
    game = Game(build_gateway(ctx.obj))

    async def run() -> None:
        printer = TranscriptPrinter(game)
        try:
            task = game.submit_flight(coordinates)
        except InvalidAction as e:
            console.print(f"[red]{e}[/red]")
            return
        await _settle(game, printer, task)

    asyncio.run(run())
    if show_map and game.phase == Phase.ARRIVED:
        _show_latest_map(game)
    if game.phase != Phase.ARRIVED:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()

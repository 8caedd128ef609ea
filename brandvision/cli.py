"""
BrandVision — command-line front end.

Usage:
  python -m brandvision analyze example.com --goal "Affiliate Sales" -p Instagram -p Website
  python -m brandvision archive list
  python -m brandvision archive show <session-id>
  python -m brandvision archive delete <session-id>
  python -m brandvision archive clear --yes
  python -m brandvision keywords <session-id> --add "#vegan snacks" --remove "cheap"
  python -m brandvision export <session-id> <concept-id> --output exports/
  python -m brandvision bundle <session-id> --output exports/
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.rule import Rule
from rich.table import Table

from .archive import ArchiveStore, FileSlot
from .config import Settings, load_settings
from .controller import SessionController
from .exporter import create_session_zip, export_image, save_session_md
from .models import DEFAULT_GOAL, GOALS, PLATFORMS, Session

console = Console()

DEFAULT_PLATFORMS = ["Instagram", "Facebook Ads"]


# ── CLI ───────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="brandvision",
        description="BrandVision — brand research and platform creatives with Gemini",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--env-file", default=None, help="Path to a .env file")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze a website and generate creatives")
    analyze.add_argument("url", help="Website to research")
    analyze.add_argument("--goal", choices=GOALS, default=DEFAULT_GOAL, help="Campaign goal")
    analyze.add_argument(
        "-p", "--platform",
        dest="platforms",
        action="append",
        choices=PLATFORMS,
        help="Target platform (repeatable, default: Instagram + Facebook Ads)",
    )

    archive = sub.add_parser("archive", help="Browse the local archive")
    archive_sub = archive.add_subparsers(dest="archive_command", required=True)
    archive_sub.add_parser("list", help="List archived sessions")
    show = archive_sub.add_parser("show", help="Show one archived session")
    show.add_argument("session_id")
    delete = archive_sub.add_parser("delete", help="Delete one archived session")
    delete.add_argument("session_id")
    clear = archive_sub.add_parser("clear", help="Delete every archived session")
    clear.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    keywords = sub.add_parser("keywords", help="Edit a session's SEO keywords")
    keywords.add_argument("session_id")
    keywords.add_argument("--add", action="append", default=[], help="Keyword to add (repeatable)")
    keywords.add_argument("--remove", action="append", default=[], help="Keyword to remove (repeatable)")

    export = sub.add_parser("export", help="Save one generated image as PNG")
    export.add_argument("session_id")
    export.add_argument("concept_id")
    export.add_argument("--output", default=".", help="Output directory")

    bundle = sub.add_parser("bundle", help="ZIP a session's images and report")
    bundle.add_argument("session_id")
    bundle.add_argument("--output", default=".", help="Output directory")

    return parser


# ── Display helpers ───────────────────────────────────────────────────────────

def _when(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp / 1000).strftime("%Y-%m-%d %H:%M")


def display_session(session: Session) -> None:
    a = session.data.analysis
    console.print(
        Panel(
            f"[bold]Identity:[/bold] {a.identity}\n"
            f"[bold]Audience:[/bold] {a.audience}\n"
            f"[bold]Tone:[/bold] {a.tone}\n"
            f"[bold]Value Proposition:[/bold] {a.value_proposition}\n"
            f"[bold]Market Position:[/bold] {a.market_position}\n\n"
            f"[bold]Benefits:[/bold] {'; '.join(a.benefits)}\n"
            f"[bold]Pain Points:[/bold] {'; '.join(a.pain_points)}\n"
            f"[bold]Emotional Triggers:[/bold] {', '.join(a.emotional_triggers)}",
            title=f"[bold]{a.name or session.url}[/bold] [dim]({session.id})[/dim]",
            border_style="blue",
        )
    )

    if a.keywords:
        console.print(
            Panel(" ".join(f"#{kw}" for kw in a.keywords), title="[bold]SEO Keywords[/bold]", border_style="cyan")
        )
    if a.hooks:
        console.print(
            Panel("\n".join(f"• {h}" for h in a.hooks), title="[bold]Hooks[/bold]", border_style="magenta")
        )

    for c in session.data.concepts:
        has_image = c.id in session.images
        status = "[green]✓ image ready[/green]" if has_image else "[yellow]no image[/yellow]"
        console.print(
            Panel(
                f"[bold]{c.headline}[/bold]\n{c.supporting_text}\n\n"
                f"[bold]CTA:[/bold] {c.cta}\n"
                f"[dim]{c.visual_prompt}[/dim]\n\n{status}",
                title=f"[bold]{c.platform}[/bold] · {c.aspect_ratio} · [dim]{c.id}[/dim]",
                border_style="green" if has_image else "yellow",
            )
        )

    if session.data.sources:
        console.print("[bold]Sources:[/bold]")
        for s in session.data.sources:
            console.print(f"  [dim]{s.title}[/dim] {s.uri}")


def display_archive(sessions: List[Session]) -> None:
    if not sessions:
        console.print("[dim]Archive is empty.[/dim]")
        return

    table = Table(title="Archive")
    table.add_column("ID", style="cyan")
    table.add_column("Updated")
    table.add_column("Brand")
    table.add_column("URL")
    table.add_column("Images", justify="right")
    for s in sessions:
        table.add_row(
            s.id,
            _when(s.timestamp),
            s.data.analysis.name,
            s.url,
            f"{len(s.images)}/{len(s.data.concepts)}",
        )
    console.print(table)


# ── Commands ──────────────────────────────────────────────────────────────────

def _open_store(settings: Settings) -> ArchiveStore:
    store = ArchiveStore(FileSlot(settings.archive_path, settings.archive_quota_bytes))
    store.load_all()
    return store


def _require_session(store: ArchiveStore, session_id: str) -> Optional[Session]:
    session = store.get(session_id)
    if session is None:
        console.print(f"[bold red]Error:[/bold red] session {session_id} not found in archive.")
    return session


def cmd_analyze(args: argparse.Namespace, settings: Settings) -> int:
    if not settings.has_api_key():
        console.print("[bold red]Error:[/bold red] GEMINI_API_KEY not set.")
        console.print("Create a .env file and add your key.")
        return 1

    from .analyzer import BrandAnalyzer
    from .imager import ImageGenerator

    platforms = args.platforms or list(DEFAULT_PLATFORMS)
    platforms = list(dict.fromkeys(platforms))
    store = _open_store(settings)
    controller = SessionController(
        analyzer=BrandAnalyzer(settings.api_key, settings.analysis_model, settings.timeout_seconds),
        image_generator=ImageGenerator(settings.api_key, settings.image_model, settings.timeout_seconds),
        store=store,
        on_progress=lambda msg: console.print(f"[bold cyan]→ {msg}[/bold cyan]"),
    )

    console.print(Rule("[bold magenta]BrandVision[/bold magenta]"))
    console.print(
        f"  URL: [bold]{args.url}[/bold]  |  Goal: [bold]{args.goal}[/bold]  |  "
        f"Platforms: [bold]{', '.join(platforms)}[/bold]"
    )

    t0 = time.time()
    session = controller.submit(args.url, args.goal, platforms)
    if session is None:
        console.print(f"[bold red]Analysis failed:[/bold red] {controller.error}")
        return 1

    display_session(session)
    console.print(
        Panel(
            f"{len(session.images)}/{len(session.data.concepts)} image(s) generated in "
            f"[bold]{time.time() - t0:.0f}s[/bold]\n"
            f"Saved to archive as [bold]{session.id}[/bold]",
            title="[bold green]Done[/bold green]",
            border_style="green",
        )
    )
    return 0


def cmd_archive(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(settings)

    if args.archive_command == "list":
        display_archive(store.sessions)
        return 0

    if args.archive_command == "show":
        session = _require_session(store, args.session_id)
        if session is None:
            return 1
        display_session(session)
        return 0

    if args.archive_command == "delete":
        if _require_session(store, args.session_id) is None:
            return 1
        store.remove_one(args.session_id)
        console.print(f"  [green]✓[/green] Deleted {args.session_id}")
        return 0

    if args.archive_command == "clear":
        if not args.yes and not Confirm.ask("Delete every archived research session?"):
            console.print("[dim]Nothing deleted.[/dim]")
            return 0
        store.clear_all()
        console.print("  [green]✓[/green] Archive cleared")
        return 0

    return 1


def cmd_keywords(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(settings)
    session = _require_session(store, args.session_id)
    if session is None:
        return 1

    controller = SessionController(analyzer=None, image_generator=None, store=store)
    controller.activate(session)

    for kw in args.add:
        if controller.add_keyword(kw):
            console.print(f"  [green]+[/green] {kw}")
        else:
            console.print(f"  [dim]skipped {kw!r} (empty or already present)[/dim]")
    for kw in args.remove:
        if controller.remove_keyword(kw):
            console.print(f"  [red]-[/red] {kw}")
        else:
            console.print(f"  [dim]skipped {kw!r} (not present)[/dim]")

    console.print(" ".join(f"#{kw}" for kw in controller.keywords) or "[dim]no keywords[/dim]")
    return 0


def cmd_export(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(settings)
    session = _require_session(store, args.session_id)
    if session is None:
        return 1
    try:
        path = export_image(session, args.concept_id, Path(args.output))
    except KeyError as e:
        console.print(f"[bold red]Error:[/bold red] {e.args[0]}")
        return 1
    except (ValueError, OSError) as e:
        console.print(f"[bold red]Error:[/bold red] Could not export image {args.concept_id}: {e}")
        return 1
    console.print(f"  [green]✓[/green] Saved → {path}")
    return 0


def cmd_bundle(args: argparse.Namespace, settings: Settings) -> int:
    store = _open_store(settings)
    session = _require_session(store, args.session_id)
    if session is None:
        return 1
    output_dir = Path(args.output)
    md_path = save_session_md(session, output_dir)
    zip_path = create_session_zip(session, output_dir)
    if zip_path is None:
        console.print("[bold red]Error:[/bold red] could not create ZIP bundle.")
        return 1
    console.print(f"  [green]✓[/green] Saved → {zip_path}  |  {md_path}")
    return 0


COMMANDS = {
    "analyze": cmd_analyze,
    "archive": cmd_archive,
    "keywords": cmd_keywords,
    "export": cmd_export,
    "bundle": cmd_bundle,
}


# ── Main ──────────────────────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s — %(name)s — %(levelname)s — %(message)s",
        level=logging.DEBUG if args.verbose else logging.WARNING,
    )

    settings = load_settings(args.env_file)
    return COMMANDS[args.command](args, settings)


if __name__ == "__main__":
    sys.exit(main())

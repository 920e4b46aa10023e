"""Swaptitude session lifecycle simulator - terminal entry point"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from swaptitude.simulator import SCENARIOS, run_scenario
from swaptitude.utils.config import Settings, config_manager
from swaptitude.utils.exceptions import ConfigError
from swaptitude.utils.logger import setup_logger

console = Console()


def _load_settings() -> Settings:
    try:
        return config_manager.load_settings()
    except ConfigError as e:
        console.print(f"[yellow]Using default settings ({e})[/yellow]")
        return Settings()


def _render(result) -> None:
    start = result.transitions[0].timestamp if result.transitions else None

    table = Table(title=f"Scenario: {result.name}", box=box.ROUNDED, show_header=True)
    table.add_column("#", style="dim", width=3)
    table.add_column("t+", style="cyan", width=7)
    table.add_column("From", style="magenta")
    table.add_column("To", style="green")
    table.add_column("Trigger", style="white")
    table.add_column("Epoch", style="dim", width=5)

    for i, t in enumerate(result.transitions, start=1):
        offset = (t.timestamp - start).total_seconds() if start else 0.0
        table.add_row(str(i), f"{offset:.1f}s", t.from_phase.value, t.to_phase.value, t.trigger, str(t.epoch))

    console.print(table)
    for note in result.notes:
        console.print(f"  [dim]- {note}[/dim]")
    console.print(
        Panel(
            f"Final phase: [bold]{result.final_phase.value}[/bold]\n"
            f"Sign-out commands issued: {result.sign_out_calls}",
            border_style="cyan",
        )
    )


def main(argv=None) -> int:
    env_path = Path(__file__).resolve().parent / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    parser = argparse.ArgumentParser(description="Replay Swaptitude session lifecycle scenarios")
    parser.add_argument("scenario", nargs="?", choices=sorted(SCENARIOS), help="Scenario to replay (default: all)")
    parser.add_argument("--verbose", action="store_true", help="Print controller log events")
    args = parser.parse_args(argv)

    settings = _load_settings()
    setup_logger(
        log_level="DEBUG" if args.verbose else "WARNING",
        log_format="console",
        file_path=settings.logging.file_path,
        max_bytes=settings.logging.max_bytes,
        backup_count=settings.logging.backup_count,
    )

    names = [args.scenario] if args.scenario else sorted(SCENARIOS)
    for name in names:
        _render(run_scenario(name, settings))
    return 0


if __name__ == "__main__":
    sys.exit(main())

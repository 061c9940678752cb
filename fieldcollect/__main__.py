"""Entry point for fieldcollect.

Loads a task aggregate from the local store and prints it:
    python -m fieldcollect TASK_ID
    python -m fieldcollect --job JOB_ID --json

Exit codes: 0 success, 1 storage failure, 2 task not found.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from fieldcollect.logging_config import setup_logging, get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_STORAGE_ERROR = 1
EXIT_NOT_FOUND = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fieldcollect",
        description="Load survey tasks with their multiple choices and options",
    )
    parser.add_argument("task_id", nargs="?", help="Task to load")
    parser.add_argument("--job", dest="job_id", help="Load every task of this job instead")
    parser.add_argument("--database-url", help="SQLAlchemy URL (overrides configuration)")
    parser.add_argument("--config", type=Path, help="Path to config.ini")
    parser.add_argument("--timeout", type=float, help="Seconds before the load is aborted")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    return parser


def render_aggregate(console: Console, aggregate) -> None:
    """Print one aggregate as a Rich table."""
    task = aggregate.task
    table = Table(title=escape(f"{task.label} ({task.id})"))
    table.add_column("Kind")
    table.add_column("Id")
    table.add_column("Details")

    table.add_row("task", escape(task.id), f"{task.task_type.value}, index={task.index}, required={task.is_required}")
    for mc in aggregate.multiple_choices:
        table.add_row("multiple choice", escape(mc.id), f"{mc.type.value}, other={mc.has_other_option}")
    for option in aggregate.options:
        table.add_row("option", escape(option.id), escape(f"{option.index}: [{option.code}] {option.label}"))

    console.print(table)


async def _run(options: argparse.Namespace) -> int:
    # Import here to keep startup fast
    from fieldcollect.config import Config
    from fieldcollect.database import DatabaseManager
    from fieldcollect.exceptions import NotFound, StorageError
    from fieldcollect.services.task_loader import TaskAggregateLoader

    config = Config(options.config)
    db_config = config.get_database_config()
    loader_config = config.get_loader_config()

    db_manager = DatabaseManager(
        options.database_url or db_config['url'],
        echo=db_config['echo'],
        busy_timeout=db_config['busy_timeout'],
    )
    try:
        await db_manager.initialize()
        loader = TaskAggregateLoader(db_manager, default_timeout=loader_config['timeout'])

        if options.job_id:
            aggregates = await loader.load_for_job(options.job_id, timeout=options.timeout)
        else:
            aggregates = [await loader.load(options.task_id, timeout=options.timeout)]
    except NotFound as e:
        logger.info(f"Nothing to show: {e}")
        Console(stderr=True).print(f"[yellow]{escape(str(e))}[/yellow]")
        return EXIT_NOT_FOUND
    except StorageError as e:
        logger.error(f"Load failed: {e}", exc_info=True)
        Console(stderr=True).print(f"[red]Storage error:[/red] {escape(str(e))}")
        return EXIT_STORAGE_ERROR
    finally:
        await db_manager.close()

    if options.json:
        payload = [aggregate.model_dump(mode="json") for aggregate in aggregates]
        if not options.job_id:
            payload = payload[0]
        sys.stdout.write(json.dumps(payload, indent=2) + "\n")
    else:
        console = Console()
        if not aggregates:
            console.print(escape(f"No tasks in job {options.job_id}"))
        for aggregate in aggregates:
            render_aggregate(console, aggregate)
    return EXIT_OK


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for fieldcollect.

    Args:
        args: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code
    """
    if args is None:
        args = sys.argv[1:]

    parser = build_parser()
    options = parser.parse_args(args)
    if (options.task_id is None) == (options.job_id is None):
        parser.error("give exactly one of TASK_ID or --job")
    target = options.task_id if options.task_id is not None else options.job_id
    if not target.strip():
        parser.error("TASK_ID and --job must not be blank")

    setup_logging(options.log_level)

    try:
        return asyncio.run(_run(options))
    except KeyboardInterrupt:
        logger.info("Interrupted by user (Ctrl+C)")
        return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

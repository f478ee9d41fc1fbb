"""wantarr command line entry point."""
import logging
import os
import signal
import threading
from typing import Annotated, Optional

import typer

from wantarr.config import Config, init_config
from wantarr.core.models import MISSING, CUTOFF
from wantarr.core.searcher import search_wanted
from wantarr.db.cache import MediaCache
from wantarr.db.database import close_db, init_db
from wantarr.errors import WantarrError
from wantarr.logging_config import configure_logging
from wantarr.services.pvr import get_pvr

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="wantarr",
    help="Search PVR wanted lists (missing / cutoff unmet) in batches",
    no_args_is_help=True,
)

# Options globales, remplies par le callback
state = {"config": None, "database": None, "log_level": None}


def find_config(config_path: Optional[str]) -> str:
    """Return the first existing config file among the known locations."""
    possible_paths = [
        config_path,
        os.getenv("CONFIG_PATH"),
        "./config.yaml",
        "./config/config.yaml",
        os.path.expanduser("~/.config/wantarr/config.yaml"),
    ]
    for path in possible_paths:
        if path and os.path.exists(path):
            return path
    # Let the loader report the first candidate as missing
    return next(p for p in possible_paths if p)


@app.callback()
def main_callback(
    config: Annotated[
        Optional[str], typer.Option("--config", "-c", help="Configuration file")
    ] = None,
    database: Annotated[
        Optional[str], typer.Option("--database", "-d", help="Cache database file")
    ] = None,
    log_level: Annotated[
        Optional[str], typer.Option("--log-level", "-l", help="DEBUG, INFO, WARNING, ERROR")
    ] = None,
) -> None:
    """wantarr - search missing and cutoff unmet media."""
    state["config"] = config
    state["database"] = database
    state["log_level"] = log_level


def run(
    pvr_name: str,
    list_kind: str,
    refresh_cache: bool,
    queue_size: Optional[int],
    flush_partial_batch: Optional[bool],
    skip_searched_within: Optional[float],
) -> None:
    """Load config, open the cache and run one search for ``pvr_name``."""
    cfg: Config = init_config(find_config(state["config"]))
    configure_logging(state["log_level"] or cfg.app.log_level)

    search = cfg.search.model_copy(update={
        k: v for k, v in {
            "max_queue_size": queue_size,
            "flush_partial_batch": flush_partial_batch,
            "skip_searched_within_hours": skip_searched_within,
        }.items() if v is not None
    })

    cancel_event = threading.Event()
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, lambda *_: cancel_event.set())

    pvr = get_pvr(pvr_name, cfg.get_pvr(pvr_name), cfg.client, cancel_event=cancel_event)
    with pvr:
        pvr.initialize()
        session_factory = init_db(state["database"] or cfg.app.database)
        try:
            with MediaCache(session_factory) as cache:
                search_wanted(pvr, cache, list_kind, settings=search, refresh=refresh_cache)
        finally:
            close_db()


def _command(list_kind: str):
    def command(
        pvr: Annotated[str, typer.Argument(help="PVR name from the configuration")],
        refresh_cache: Annotated[
            bool, typer.Option("--refresh-cache", "-r", help="Refresh the locally stored cache.")
        ] = False,
        queue_size: Annotated[
            Optional[int], typer.Option("--queue-size", "-q", help="Stop when the PVR queue reaches this size.")
        ] = None,
        flush_partial_batch: Annotated[
            Optional[bool],
            typer.Option(
                "--flush-partial-batch/--no-flush-partial-batch",
                help="Also search the last, incomplete batch (default from the configuration).",
            ),
        ] = None,
        skip_searched_within: Annotated[
            Optional[float],
            typer.Option("--skip-searched-within", help="Skip items searched in the last N hours."),
        ] = None,
    ) -> None:
        try:
            run(pvr, list_kind, refresh_cache, queue_size, flush_partial_batch, skip_searched_within)
        except WantarrError as e:
            logger.error(f"Failed {list_kind} search for {pvr}: {e}")
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=1)

    return command


app.command(name="missing", help="Search for missing media files.")(_command(MISSING))
app.command(name="cutoff", help="Search for media files that do not meet the quality cutoff.")(_command(CUTOFF))


if __name__ == "__main__":
    app()

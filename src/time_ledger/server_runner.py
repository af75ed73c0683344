"""Helpers to launch the local time-ledger API."""

from __future__ import annotations

import logging
import threading
import time
import webbrowser
from pathlib import Path
from typing import Optional

import uvicorn

from .config import DayBoundaryConfig, TrackerSettings
from .paths import get_db_path, get_state_path
from .service import TimeAccounting
from .webapp import create_app

logger = logging.getLogger(__name__)


def run_server(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    db_path: Optional[Path] = None,
    state_path: Optional[Path] = None,
    settings: Optional[TrackerSettings] = None,
    day_config: Optional[DayBoundaryConfig] = None,
    tz_offset_minutes: int = 0,
    open_browser: bool = False,
    log_level: str = "info",
) -> None:
    """Serve the API until interrupted.

    ``day_config`` and ``tz_offset_minutes`` are the defaults used when a
    request leaves out ``startHour``, ``endHour`` or ``tz``.
    """
    db_path = db_path or get_db_path()
    state_path = state_path or get_state_path()
    accounting = TimeAccounting.open(
        db_path,
        state_path,
        settings=settings or TrackerSettings(),
        day_config=day_config,
        tz_offset_minutes=tz_offset_minutes,
    )
    logger.info("Records in %s, timer state in %s", db_path, state_path)
    app = create_app(accounting=accounting)

    if open_browser:
        docs_url = f"http://{host}:{port}/docs"
        threading.Thread(
            target=_open_docs_later, args=(docs_url,), name="docs-browser", daemon=True
        ).start()

    logging.getLogger("uvicorn.error").setLevel(log_level.upper())
    uvicorn.run(app, host=host, port=port, log_level=log_level)


def _open_docs_later(url: str, delay: float = 1.0) -> None:
    # Give uvicorn a moment to bind before the browser asks for the page.
    time.sleep(delay)
    try:
        webbrowser.open(url)
    except Exception:
        logger.exception("Could not open a browser at %s", url)

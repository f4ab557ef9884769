"""
Logging setup and the event-log middleware.

Console output goes through rich, everything at DEBUG and above lands in
`courier_YYYYMMDD.log`, and bus events are appended to
`events_YYYYMMDD.jsonl` in the same directory.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.logging import RichHandler

from courier.core.bus import MiddlewareNext
from courier.core.events import Event

if TYPE_CHECKING:
    from courier.core.config import LoggingConfig

# Chatty libraries stay at WARNING unless running verbose
_QUIET_LOGGERS = ("httpx", "httpcore", "websockets", "aiosqlite")


def _dated(log_dir: Path, prefix: str, suffix: str, when: datetime | None = None) -> Path:
    return log_dir / f"{prefix}_{(when or datetime.now()).strftime('%Y%m%d')}.{suffix}"


def setup_logging(
    config: "LoggingConfig",
    verbose: bool = False,
    console: Console | None = None,
) -> logging.Logger:
    """
    Configure the "courier" logger from the [logging] config section.

    `verbose` drops the console threshold to DEBUG and lets the HTTP and
    websocket libraries log too. Calling it again replaces the handlers.
    """
    log_dir = Path(config.dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    console_level = (
        logging.DEBUG if verbose
        else logging.getLevelName(config.console_level.upper())
    )
    if not isinstance(console_level, int):
        console_level = logging.WARNING

    logger = logging.getLogger("courier")
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        markup=False,
    )
    console_handler.setLevel(console_level)
    logger.addHandler(console_handler)

    log_file = _dated(log_dir, "courier", "log")
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    logger.debug(f"Logging to {log_file}")
    return logger


class EventLogger:
    """
    Bus middleware appending one JSON line per event.

    The file is chosen from the event's own timestamp, so a pipeline
    running past midnight rolls over to the next day's file.

    Usage:
        bus.use(EventLogger(Path("~/.courier/logs")).middleware)
    """

    def __init__(self, log_dir: Path, log_events: bool = True) -> None:
        self._log_dir = Path(log_dir).expanduser()
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._log_events = log_events
        self._logger = logging.getLogger("courier.events")

    @property
    def events_file(self) -> Path:
        """Today's event log."""
        return _dated(self._log_dir, "events", "jsonl")

    async def middleware(self, event: Event, next_handler: MiddlewareNext) -> Event:
        self._logger.debug(f"{event.type} from {event.source or '?'}")
        if self._log_events:
            self._write_event(event)
        return await next_handler(event)

    def _write_event(self, event: Event) -> None:
        when = datetime.fromtimestamp(event.timestamp)
        record = {
            "timestamp": when.isoformat(),
            "id": event.id,
            "type": event.type,
            "source": event.source,
            "data": {key: _jsonable(value) for key, value in event.data.items()},
        }
        try:
            with open(_dated(self._log_dir, "events", "jsonl", when), "a", encoding="utf-8") as f:
                f.write(json.dumps(record) + "\n")
        except OSError as e:
            self._logger.warning(f"Failed to write event log: {e}")


def _jsonable(value: object) -> object:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value

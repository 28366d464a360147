from datetime import datetime
from pytz import timezone
import logging.config
import logging
import os
from logging import Logger


_ANSI_RESET = "\033[0m"
_COLOR_MAP: dict[str, str] = {
    "cyan":    "\033[36m",
    "green":   "\033[32m",
    "yellow":  "\033[33m",
    "red":     "\033[31m",
    "magenta": "\033[35m",
}

# first matching threshold wins
_LEVEL_PREFIXES: tuple[tuple[int, str], ...] = (
    (logging.ERROR, "⛔ "),
    (logging.WARNING, "⚠️ "),
)


def _resolve_level(level: str | None = None) -> int:
    """Map a LOG_LEVEL name to a logging level, defaulting to INFO."""
    name = (level or os.getenv("LOG_LEVEL", "info")).upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


class TrackerFormatter(logging.Formatter):
    """Formats timestamps in the configured timezone and marks warnings and errors."""

    def __init__(self, tz_name, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record):
        # console and file handler share the record, only a copy is rewritten
        record = logging.makeLogRecord(record.__dict__)
        prefix = next((p for threshold, p in _LEVEL_PREFIXES if record.levelno >= threshold), "")
        record.msg = prefix + record.getMessage()
        record.args = ()
        return super().format(record)


class ColoredFormatter(TrackerFormatter):
    """Console formatter, wraps a line in ANSI color when the record carries a ``color`` attribute."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _COLOR_MAP.get(getattr(record, "color", None) or "", "")
        return f"{ansi}{line}{_ANSI_RESET}" if ansi else line


class ColorLogger:
    """Logger wrapper whose log methods take an optional ``color=`` keyword.

    Usage::

        logger.info("Forwarded %d record(s) to the sink.", n, color="green")
        logger.warning("The server is no longer offering deltas.", color="yellow")

    The color only shows on the console, the log file stays plain text.
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    def _with_color(self, kwargs: dict, color: str | None) -> dict:
        if color is None:
            return kwargs
        extra = dict(kwargs.get("extra") or {})
        extra["color"] = color
        return {**kwargs, "extra": extra}

    def debug(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.debug(msg, *args, **self._with_color(kwargs, color))

    def info(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.info(msg, *args, **self._with_color(kwargs, color))

    def warning(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.warning(msg, *args, **self._with_color(kwargs, color))

    def error(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.error(msg, *args, **self._with_color(kwargs, color))

    def critical(self, msg, *args, color: str | None = None, **kwargs):
        self._logger.critical(msg, *args, **self._with_color(kwargs, color))

    def __getattr__(self, name):
        return getattr(self._logger, name)


def setup_logging(name: str = "tracker", log_dir: str | None = None, level: str | None = None) -> ColorLogger:
    """Configure console and file logging and return the component logger.

    Args:
        name (str): Component name, "tracker" or "sink". Also names the log file.
        log_dir (str | None): Directory of the log file. Defaults to "$ROOT_DIR/logs" (ROOT_DIR defaults to the working directory).
        level (str | None): Level name. Defaults to the LOG_LEVEL environment variable, then "info".

    Returns:
        ColorLogger: The configured logger.
    """
    loglevel = _resolve_level(level)
    if log_dir is None:
        log_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
    os.makedirs(log_dir, exist_ok=True)
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")
    datefmt = "%Y-%m-%d %H:%M:%S"

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "file": {
                "()": TrackerFormatter,
                "format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                "datefmt": datefmt,
                "tz_name": tz_name,
            },
            "console": {
                "()": ColoredFormatter,
                "format": f"%(asctime)s - %(levelname)s - {name} - %(message)s",
                "datefmt": datefmt,
                "tz_name": tz_name,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "console",
                "level": loglevel,
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.FileHandler",
                "formatter": "file",
                "level": loglevel,
                "filename": os.path.join(log_dir, f"{name}.log"),
                "encoding": "utf-8",
            },
        },
        "root": {
            "handlers": ["console", "file"],
            "level": loglevel,
        },
    })

    # the clients log their own requests, httpx only speaks up in debug mode
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.DEBUG if loglevel <= logging.DEBUG else logging.WARNING)

    return ColorLogger(logging.getLogger(name))

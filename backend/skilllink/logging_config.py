import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Per-request chatter from the HTTP client; backend failures are logged by our own modules.
QUIET_LOGGERS = ("httpx", "httpcore")


def resolve_level(level: Optional[str]) -> int:
    name = (level or "").strip().upper()
    resolved = logging.getLevelName(name) if name else None
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    level: Optional[str] = "INFO",
    logfile: Optional[str] = None,
    root: Optional[logging.Logger] = None,
) -> bool:
    """Send application logs to stderr and, optionally, a file.

    Runs once per process; returns False when the root logger already has
    handlers (uvicorn reloads, repeated imports in tests).
    """
    root = root or logging.getLogger()
    if root.handlers:
        return False

    resolved = resolve_level(level)
    root.setLevel(resolved)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if logfile:
        path = Path(logfile).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
    return True

"""Runtime settings and diagnostic logging for sysmon."""

import logging
from pathlib import Path

from pydantic_settings import BaseSettings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class Settings(BaseSettings):
    # --- session ---
    refresh_interval: float = 3.0  # seconds, clamped to [1, 10]
    cpu_sample_window: float = 1.0  # seconds the CPU reading blocks for
    top_limit: int = 10

    # --- output ---
    log_dir: str = "logs"
    export_dir: str = "exports"

    # --- diagnostics ---
    diagnostics_file: str = "logs/sysmon_diagnostics.log"
    log_level: str = "WARNING"

    model_config = {"env_prefix": "SYSMON_"}


def configure_logging(settings: Settings) -> logging.Logger:
    """
    Send the ``sysmon`` logger to the diagnostics file.

    The terminal belongs to the dashboard, so nothing goes to the console.
    Calling this more than once keeps the first handler.
    """
    logger = logging.getLogger("sysmon")
    logger.setLevel(settings.log_level.upper())
    logger.propagate = False

    if not logger.handlers:
        path = Path(settings.diagnostics_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger

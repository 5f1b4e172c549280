"""JSON log sink and exporter."""

import json
import logging
from dataclasses import asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import IO, Any

from sysmon.models import StatsBundle
from sysmon.session import View

logger = logging.getLogger(__name__)

FILE_STAMP = "%Y%m%d_%H%M%S"


class SinkError(OSError):
    """A log or export file could not be opened or written."""


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.name.lower()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def bundle_to_dict(bundle: StatsBundle) -> dict[str, Any]:
    """Plain-dict form of a bundle, ``None`` for missing categories."""
    return {
        "timestamp": bundle.timestamp.isoformat(),
        "system": asdict(bundle.system) if bundle.system else None,
        "processes": asdict(bundle.processes) if bundle.processes else None,
        "network": asdict(bundle.network) if bundle.network else None,
    }


class StatsLog:
    """Appends one JSON object per line to a timestamped file."""

    def __init__(self, directory: str | Path = "logs") -> None:
        self._directory = Path(directory)
        self._file: IO[str] | None = None
        self._path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    @property
    def path(self) -> Path | None:
        return self._path

    def open(self) -> Path:
        """Open a new log file, closing any previous one."""
        self.close()
        path = self._directory / f"sysmon_{datetime.now().strftime(FILE_STAMP)}.log"
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            self._file = path.open("a", encoding="utf-8")
        except OSError as exc:
            raise SinkError(f"cannot open log file {path}: {exc}") from exc
        self._path = path
        logger.info("logging stats to %s", path)
        return path

    def write(self, bundle: StatsBundle) -> None:
        if self._file is None:
            return
        try:
            self._file.write(json.dumps(bundle_to_dict(bundle), default=_json_default) + "\n")
            self._file.flush()
        except OSError as exc:
            raise SinkError(f"cannot write log file {self._path}: {exc}") from exc

    def close(self) -> None:
        if self._file is None:
            return
        try:
            self._file.close()
        except OSError:
            logger.exception("error closing log file %s", self._path)
        finally:
            self._file = None


class Exporter:
    """Writes a single pretty-printed JSON snapshot per export."""

    def __init__(self, directory: str | Path = "exports") -> None:
        self._directory = Path(directory)

    def export(self, bundle: StatsBundle, view: View, refresh_interval: float) -> Path:
        data = bundle_to_dict(bundle)
        data["export_timestamp"] = data.pop("timestamp")
        data["view"] = view.name.lower()
        data["refresh_interval"] = refresh_interval

        path = self._directory / f"sysmon_export_{bundle.timestamp.strftime(FILE_STAMP)}.json"
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, default=_json_default)
        except OSError as exc:
            raise SinkError(f"cannot write export {path}: {exc}") from exc

        logger.info("stats exported to %s", path)
        return path

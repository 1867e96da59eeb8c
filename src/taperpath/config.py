import logging
import os
from dataclasses import dataclass
from pathlib import Path

_LOG_FORMATS = ("text", "json")


@dataclass(frozen=True)
class Config:
    data_dir: Path
    log_format: str = "text"
    log_level: int = logging.WARNING

    @classmethod
    def from_env(cls) -> "Config":
        log_format = os.environ.get("TAPERPATH_LOG_FORMAT", "text").strip().lower()
        if log_format not in _LOG_FORMATS:
            raise RuntimeError(f"TAPERPATH_LOG_FORMAT must be one of {', '.join(_LOG_FORMATS)}")

        level_name = os.environ.get("TAPERPATH_LOG_LEVEL", "WARNING").strip().upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            raise RuntimeError(f"TAPERPATH_LOG_LEVEL is not a logging level: {level_name}")

        data_dir = os.environ.get("TAPERPATH_DATA_DIR") or "~/.taperpath"
        return cls(
            data_dir=Path(data_dir).expanduser(),
            log_format=log_format,
            log_level=level,
        )

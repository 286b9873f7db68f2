from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


@dataclass
class Config:
    timezone: str = "UTC"
    cycling_above_kmh: float = 20.0
    transition_below_kmh: float = 3.0  # below this mean speed a segment is guessed as transition
    auto_splits: int = 2
    output_suffix: str = "_split"
    flask_port: int = 5000
    flask_debug: bool = False
    max_upload_mb: int = 50
    log_level: str = "INFO"

    def output_path_for(self, fit_path: Path) -> Path:
        return fit_path.with_name(f"{fit_path.stem}{self.output_suffix}.fit")

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> Config:
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()  # loads .env from cwd

        return cls(
            timezone=os.environ.get("FITSPLIT_TIMEZONE", "UTC"),
            cycling_above_kmh=float(os.environ.get("FITSPLIT_CYCLING_KMH", "20")),
            transition_below_kmh=float(os.environ.get("FITSPLIT_TRANSITION_KMH", "3")),
            auto_splits=int(os.environ.get("FITSPLIT_AUTO_SPLITS", "2")),
            output_suffix=os.environ.get("FITSPLIT_OUTPUT_SUFFIX", "_split"),
            flask_port=int(os.environ.get("FLASK_PORT", "5000")),
            flask_debug=_env_bool("FLASK_DEBUG", "false"),
            max_upload_mb=int(os.environ.get("MAX_UPLOAD_MB", "50")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )

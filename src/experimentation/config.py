"""
Engine settings.

Defaults for significance testing, lifecycle and artifact locations.
Every value can be overridden through EXPERIMENT_* environment variables.
"""

import logging
import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "EXPERIMENT_"
DEFAULT_DATA_DIR = "data/experiments"
DEFAULT_ARTIFACTS_DIR = "artifacts/experiments"


@dataclass
class EngineSettings:
    """Engine-wide defaults; per-experiment alpha/min_sample_size win over these."""
    alpha: float = 0.05
    min_sample_size: int = 30
    high_confidence_p: float = 0.01
    planned_duration_days: int = 30
    power: float = 0.8
    srm_alpha: float = 0.01
    fallback_variant: Optional[str] = None
    query_batch_size: int = 1000
    data_dir: str = DEFAULT_DATA_DIR
    artifacts_dir: str = DEFAULT_ARTIFACTS_DIR

    def __post_init__(self):
        if not 0 < self.alpha < 1:
            raise ValueError(f"alpha must be in (0, 1), got {self.alpha}")
        if self.min_sample_size < 1:
            raise ValueError(f"min_sample_size must be >= 1, got {self.min_sample_size}")
        if self.query_batch_size < 1:
            raise ValueError(f"query_batch_size must be >= 1, got {self.query_batch_size}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineSettings":
        """
        Build settings from environment variables.

        EXPERIMENT_ALPHA=0.01 overrides alpha, EXPERIMENT_MIN_SAMPLE_SIZE=100
        overrides min_sample_size, and so on for every field.
        """
        environ = os.environ if environ is None else environ
        kwargs = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            if f.name in ("alpha", "high_confidence_p", "power", "srm_alpha"):
                kwargs[f.name] = float(raw)
            elif f.name in ("min_sample_size", "planned_duration_days", "query_batch_size"):
                kwargs[f.name] = int(raw)
            else:
                kwargs[f.name] = raw
        if kwargs:
            logger.info(f"Engine settings overridden from environment: {sorted(kwargs)}")
        return cls(**kwargs)

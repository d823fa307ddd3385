"""Engine configuration, stored as YAML.

Example engine.yml:

    data_path: data/trainData.json
    recent_cache_size: 10
    smart_train_pass_threshold: 0.8
    debug_log: true
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional, Union

import yaml

from gesture_arbiter.errors import ConfigError
from gesture_arbiter.modes import (
    COMMON_MISTOUCH_THRESHOLD,
    COMMON_PASS_SCORE,
    DEFAULT_USER_GESTURE_TARGET,
    MAX_TRAIN_FAIL_COUNT,
    RECENT_CACHE_SIZE,
    SMART_TRAIN_MIN_CANDIDATES,
    SMART_TRAIN_PASS_THRESHOLD,
    TRAIN_DATA_THRESHOLD_RATIO,
)

logger = logging.getLogger("gesture_arbiter.config")


@dataclass
class EngineConfig:
    data_path: Optional[str] = None
    recent_cache_size: int = RECENT_CACHE_SIZE
    mistouch_threshold: int = COMMON_MISTOUCH_THRESHOLD
    train_size_ratio: float = TRAIN_DATA_THRESHOLD_RATIO
    max_train_fail_count: int = MAX_TRAIN_FAIL_COUNT
    common_pass_score: float = COMMON_PASS_SCORE
    smart_train_pass_threshold: float = SMART_TRAIN_PASS_THRESHOLD
    smart_train_min_candidates: int = SMART_TRAIN_MIN_CANDIDATES
    default_user_target: int = DEFAULT_USER_GESTURE_TARGET
    min_sample_interval_ms: float = 12.0
    debug_log: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> EngineConfig:
        known = {f.name: f for f in fields(cls)}
        defaults = cls()
        values = {}
        for key, value in (data or {}).items():
            if key not in known:
                logger.debug("Ignoring unknown config key %s", key)
                continue
            default = getattr(defaults, key)
            if default is None:
                if value is not None and not isinstance(value, str):
                    raise ConfigError(f"{key} must be a string")
            elif isinstance(default, bool):
                if not isinstance(value, bool):
                    raise ConfigError(f"{key} must be a boolean")
            elif isinstance(default, int):
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ConfigError(f"{key} must be an integer")
            elif isinstance(default, float):
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ConfigError(f"{key} must be a number")
                value = float(value)
            values[key] = value
        return cls(**values)

    def to_dict(self) -> dict:
        return asdict(self)


def load_config(path: Union[str, Path]) -> EngineConfig:
    """Load configuration from YAML; a missing file yields defaults."""
    path = Path(path)
    if not path.exists():
        return EngineConfig()
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")
    return EngineConfig.from_dict(data)


def save_config(config: EngineConfig, path: Union[str, Path]):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name, str(default)).strip().lower()
    return v in ("1", "true", "yes", "y", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer value {raw!r} for {name}; using {default}")
        return default


@dataclass(frozen=True)
class OptimizationSettings:
    low_load_threshold: int = 30
    default_bus_capacity: int = 60
    full_transfer_savings: int = 2500
    partial_transfer_savings: int = 500
    use_possible_stops: bool = True
    stop_aliases_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "OptimizationSettings":
        return cls(
            low_load_threshold=_env_int("LOW_LOAD_THRESHOLD", cls.low_load_threshold),
            default_bus_capacity=_env_int(
                "DEFAULT_BUS_CAPACITY", cls.default_bus_capacity
            ),
            full_transfer_savings=_env_int(
                "FULL_TRANSFER_SAVINGS", cls.full_transfer_savings
            ),
            partial_transfer_savings=_env_int(
                "PARTIAL_TRANSFER_SAVINGS", cls.partial_transfer_savings
            ),
            use_possible_stops=_env_bool("USE_POSSIBLE_STOPS", cls.use_possible_stops),
            stop_aliases_file=os.getenv("STOP_ALIASES_FILE") or None,
        )


def get_settings() -> OptimizationSettings:
    return OptimizationSettings.from_env()

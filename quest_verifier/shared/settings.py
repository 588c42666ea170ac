"""
Engine settings.

Tuning knobs for the verification engine, read once from the environment
(QV_* variables, .env supported) and passed to the engine as a frozen
dataclass so tests can build their own without touching the environment.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv(override=False)

BLOCK_STRATEGIES = ("arithmetic", "binary_search")


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, str(default))
    return str(raw).strip().lower() in {"1", "true", "yes", "y", "on"}


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        return float(raw) if raw is not None else float(default)
    except ValueError:
        return float(default)


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw is not None else int(default)
    except ValueError:
        return int(default)


@dataclass(frozen=True)
class EngineSettings:
    # Cache
    cache_ttl: int = 86400
    cache_sweep_interval: int = 600
    # Deadlines and retries
    verification_deadline: float = 8.0
    query_timeout: float = 4.0
    max_retries: int = 2
    retry_base_delay: float = 0.25
    # Scanning
    block_range: int = 1000
    recent_blocks: int = 1800
    large_range_threshold: int = 50000
    sample_points: int = 20
    mid_sample_points: int = 10
    sample_radius: int = 250
    final_sweep_radius: int = 2500
    scan_concurrency: int = 4
    max_probe_span: int = 10000
    # Block-date approximation
    block_strategy: str = "arithmetic"
    binary_search_max_iterations: int = 40
    default_block_time: float = 12.0
    # Policy
    count_delta_is_conclusive: bool = True
    # Reporting
    stats_interval: int = 10800

    def __post_init__(self):
        if self.block_strategy not in BLOCK_STRATEGIES:
            raise ValueError(
                f"Invalid block_strategy: {self.block_strategy}. "
                f"Must be one of {BLOCK_STRATEGIES}"
            )
        if self.block_range <= 0:
            raise ValueError("block_range must be positive")

    @classmethod
    def from_env(cls) -> "EngineSettings":
        """Build settings from QV_* environment variables."""
        defaults = cls()
        return cls(
            cache_ttl=_get_int("QV_CACHE_TTL", defaults.cache_ttl),
            cache_sweep_interval=_get_int(
                "QV_CACHE_SWEEP_INTERVAL", defaults.cache_sweep_interval
            ),
            verification_deadline=_get_float(
                "QV_VERIFICATION_DEADLINE", defaults.verification_deadline
            ),
            query_timeout=_get_float("QV_QUERY_TIMEOUT", defaults.query_timeout),
            max_retries=_get_int("QV_MAX_RETRIES", defaults.max_retries),
            retry_base_delay=_get_float(
                "QV_RETRY_BASE_DELAY", defaults.retry_base_delay
            ),
            block_range=_get_int("QV_BLOCK_RANGE", defaults.block_range),
            recent_blocks=_get_int("QV_RECENT_BLOCKS", defaults.recent_blocks),
            large_range_threshold=_get_int(
                "QV_LARGE_RANGE_THRESHOLD", defaults.large_range_threshold
            ),
            sample_points=_get_int("QV_SAMPLE_POINTS", defaults.sample_points),
            mid_sample_points=_get_int(
                "QV_MID_SAMPLE_POINTS", defaults.mid_sample_points
            ),
            sample_radius=_get_int("QV_SAMPLE_RADIUS", defaults.sample_radius),
            final_sweep_radius=_get_int(
                "QV_FINAL_SWEEP_RADIUS", defaults.final_sweep_radius
            ),
            scan_concurrency=_get_int(
                "QV_SCAN_CONCURRENCY", defaults.scan_concurrency
            ),
            max_probe_span=_get_int("QV_MAX_PROBE_SPAN", defaults.max_probe_span),
            block_strategy=os.getenv(
                "QV_BLOCK_STRATEGY", defaults.block_strategy
            ).strip().lower(),
            binary_search_max_iterations=_get_int(
                "QV_BINARY_SEARCH_MAX_ITERATIONS",
                defaults.binary_search_max_iterations,
            ),
            default_block_time=_get_float(
                "QV_DEFAULT_BLOCK_TIME", defaults.default_block_time
            ),
            count_delta_is_conclusive=_get_bool(
                "QV_COUNT_DELTA_IS_CONCLUSIVE", defaults.count_delta_is_conclusive
            ),
            stats_interval=_get_int("QV_STATS_INTERVAL", defaults.stats_interval),
        )

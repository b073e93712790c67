"""Device clocks: metronome and wall-clock timestamps with injected drift."""

from __future__ import annotations

import logging
import time
import warnings
from typing import Callable, Protocol

import numpy as np

from src.testbed.exceptions import DriftOverflow
from src.testbed.schemas import DriftPolicy, GeneratorConfig, TimeBase

logger = logging.getLogger(__name__)

# 9999-12-31T23:59:59.999Z, the largest timestamp downstream formats accept
MAX_TIMESTAMP_MS = 253_402_300_799_999
MIN_TIMESTAMP_MS = 0


def wall_clock_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def drift_offset(
    policy: DriftPolicy,
    magnitude_ms: float,
    tick_index: int,
    limit_ms: float,
    seed: int = 0,
) -> float:
    """Return the drift offset (ms) for *tick_index* under *policy*.

    ``LINEAR`` offsets are clamped to ``±limit_ms``; a :class:`DriftOverflow`
    warning is emitted when that happens.
    """
    if magnitude_ms == 0:
        return 0.0

    if policy is DriftPolicy.CONSTANT:
        offset = float(magnitude_ms)
    elif policy is DriftPolicy.LINEAR:
        offset = float(magnitude_ms) * tick_index
    elif policy is DriftPolicy.JITTER:
        rng = np.random.default_rng([seed, tick_index])
        bound = abs(magnitude_ms)
        offset = float(rng.uniform(-bound, bound))
    else:  # pragma: no cover - exhaustive over the enum
        raise ValueError(f"Unknown drift policy {policy!r}")

    if abs(offset) > limit_ms:
        clamped = float(np.copysign(limit_ms, offset))
        warnings.warn(DriftOverflow(offset, clamped, "drift limit"), stacklevel=2)
        return clamped
    return offset


def clamp_timestamp(timestamp_ms: float) -> int:
    """Clamp a timestamp into the representable epoch-ms range."""
    if timestamp_ms < MIN_TIMESTAMP_MS:
        warnings.warn(DriftOverflow(timestamp_ms, MIN_TIMESTAMP_MS, "epoch start"), stacklevel=2)
        return MIN_TIMESTAMP_MS
    if timestamp_ms > MAX_TIMESTAMP_MS:
        warnings.warn(DriftOverflow(timestamp_ms, MAX_TIMESTAMP_MS, "max timestamp"), stacklevel=2)
        return MAX_TIMESTAMP_MS
    return int(round(timestamp_ms))


class DeviceClock(Protocol):
    """Source of per-tick device timestamps."""

    def timestamp(self, tick_index: int) -> int:
        ...


class MetronomeClock:
    """Timestamps that advance by exactly ``ms_per_sample`` per tick."""

    def __init__(self, origin_ms: int, ms_per_sample: int) -> None:
        self.origin_ms = int(origin_ms)
        self.ms_per_sample = int(ms_per_sample)

    def timestamp(self, tick_index: int) -> int:
        return self.origin_ms + tick_index * self.ms_per_sample


class WallClock:
    """Timestamps read from a wall clock at each tick, plus a drift offset.

    Args:
        time_source: callable returning the current time in epoch ms.
        drift_ms: drift magnitude; zero gives plain wall-clock sampling.
        policy: drift offset shape.
        limit_ms: bound on the absolute drift offset.
        seed: seed for the ``JITTER`` policy.
    """

    def __init__(
        self,
        time_source: Callable[[], float] = wall_clock_ms,
        drift_ms: float = 0.0,
        policy: DriftPolicy = DriftPolicy.JITTER,
        limit_ms: float = 60_000.0,
        seed: int = 0,
    ) -> None:
        self.time_source = time_source
        self.drift_ms = drift_ms
        self.policy = policy
        self.limit_ms = limit_ms
        self.seed = seed

    def offset(self, tick_index: int) -> float:
        return drift_offset(self.policy, self.drift_ms, tick_index, self.limit_ms, self.seed)

    def timestamp(self, tick_index: int) -> int:
        return clamp_timestamp(self.time_source() + self.offset(tick_index))


def metronome_origin(now_ms: float, ms_per_sample: int) -> int:
    """Floor *now_ms* onto the ``ms_per_sample`` grid."""
    now = int(now_ms)
    return now - (now % ms_per_sample)


def build_clock(
    config: GeneratorConfig,
    time_source: Callable[[], float] = wall_clock_ms,
) -> DeviceClock:
    """Create the device clock selected by ``config.time_base``."""
    if config.time_base is TimeBase.METRONOME:
        origin = config.origin_ms
        if origin is None:
            origin = metronome_origin(time_source(), config.ms_per_sample)
        logger.debug("Metronome clock origin=%d step=%dms", origin, config.ms_per_sample)
        return MetronomeClock(origin, config.ms_per_sample)

    logger.debug(
        "Wall clock drift=%sms policy=%s", config.drift_ms, config.drift_policy.value
    )
    return WallClock(
        time_source=time_source,
        drift_ms=config.drift_ms,
        policy=config.drift_policy,
        limit_ms=config.drift_limit_ms,
        seed=config.seed,
    )

"""Data classes shared by the signal synthesizers and the publication scheduler."""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

import numpy as np

from src.testbed.exceptions import ConfigurationError


# ============== Timing Disciplines ==============


class TimeBase(Enum):
    """How a tick's timestamp is derived."""

    METRONOME = "metronome"  # origin + tick * ms_per_sample, no wall clock
    REALTIME = "realtime"    # wall clock at the tick, plus drift


class DriftPolicy(Enum):
    """Shape of the drift offset applied under :attr:`TimeBase.REALTIME`.

    The configured drift magnitude ``m`` parameterizes every policy:

    * ``CONSTANT``: every timestamp is offset by ``m``.
    * ``LINEAR``: tick ``k`` is offset by ``m * k``, clamped to the drift limit.
    * ``JITTER``: tick ``k`` is offset by a value in ``[-|m|, |m|]`` drawn from
      a generator seeded by ``(seed, k)``.
    """

    CONSTANT = "constant"
    LINEAR = "linear"
    JITTER = "jitter"


# ============== Generator Configuration ==============


def _require_positive(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")


def _require_positive_int(name: str, value: object) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")


def _coerce_enum(name: str, enum_cls, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(
            f"{name} must be one of {allowed}, got {value!r}"
        ) from None


@dataclass(frozen=True)
class GeneratorConfig:
    """Immutable configuration of one simulated signal generator.

    Attributes:
        heart_rate: base heart rate in beats per minute.
        ms_per_sample: scheduler tick interval in whole milliseconds.
        time_base: timestamp discipline (``metronome`` or ``realtime``).
        drift_ms: drift magnitude in milliseconds; zero disables drift.
        respiratory_rate: breaths per minute.
        sampling_frequency: nominal waveform sampling frequency in Hz.
        drift_policy: shape of the drift offset function.
        drift_limit_ms: bound on the absolute drift offset.
        origin_ms: metronome origin in epoch ms.  ``None`` captures the wall
            clock at the first connect.
        noise_std: standard deviation of additive waveform noise.
        seed: seed for per-tick noise and jitter generators.
    """

    heart_rate: float
    ms_per_sample: int
    time_base: TimeBase
    drift_ms: float
    respiratory_rate: float = 15.0
    sampling_frequency: int = 200
    drift_policy: DriftPolicy = DriftPolicy.JITTER
    drift_limit_ms: float = 60_000.0
    origin_ms: Optional[int] = None
    noise_std: float = 0.0
    seed: int = 0

    def __post_init__(self) -> None:
        _require_positive("heart_rate", self.heart_rate)
        _require_positive_int("ms_per_sample", self.ms_per_sample)
        _require_positive("respiratory_rate", self.respiratory_rate)
        _require_positive_int("sampling_frequency", self.sampling_frequency)
        _require_positive("drift_limit_ms", self.drift_limit_ms)

        if isinstance(self.drift_ms, bool) or not isinstance(self.drift_ms, numbers.Real):
            raise ConfigurationError(f"drift_ms must be a number, got {self.drift_ms!r}")
        if not math.isfinite(self.drift_ms):
            raise ConfigurationError(f"drift_ms must be finite, got {self.drift_ms!r}")
        if isinstance(self.noise_std, bool) or not isinstance(self.noise_std, numbers.Real):
            raise ConfigurationError(f"noise_std must be a number, got {self.noise_std!r}")
        if not math.isfinite(self.noise_std) or self.noise_std < 0:
            raise ConfigurationError(f"noise_std must be >= 0, got {self.noise_std!r}")
        if self.origin_ms is not None and (
            isinstance(self.origin_ms, bool) or not isinstance(self.origin_ms, numbers.Integral)
        ):
            raise ConfigurationError(f"origin_ms must be an integer, got {self.origin_ms!r}")
        if isinstance(self.seed, bool) or not isinstance(self.seed, numbers.Integral) or self.seed < 0:
            raise ConfigurationError(f"seed must be a non-negative integer, got {self.seed!r}")

        object.__setattr__(self, "time_base", _coerce_enum("time_base", TimeBase, self.time_base))
        object.__setattr__(
            self, "drift_policy", _coerce_enum("drift_policy", DriftPolicy, self.drift_policy)
        )

    def sample_window(self, tick_index: int) -> tuple[int, int]:
        """Return the ``[start, stop)`` waveform sample indices covered by *tick_index*.

        When ``ms_per_sample * sampling_frequency`` is below 1000 a tick spans
        less than one sample period, so some windows are empty.
        """
        step = self.ms_per_sample * self.sampling_frequency
        return (tick_index * step) // 1000, ((tick_index + 1) * step) // 1000


# ============== Sample Batch ==============


@dataclass(frozen=True)
class SampleBatch:
    """One timestamped unit of synthesized waveform and derived vitals.

    Waveform arrays are made read-only and the mappings are wrapped in
    read-only proxies, so a delivered batch cannot be altered by anyone.
    A batch may hold zero samples per channel when its tick is shorter than
    one sample period; its timestamp and vitals are still valid.
    """

    timestamp: int                        # device time, epoch ms
    tick_index: int
    channels: Mapping[str, np.ndarray]    # ordered, equal length
    vitals: Mapping[str, float]
    frequency: int                        # Hz of the waveform channels

    def __post_init__(self) -> None:
        frozen: dict[str, np.ndarray] = {}
        lengths = set()
        for name, values in self.channels.items():
            arr = np.atleast_1d(np.array(values, dtype=np.float32))
            arr.setflags(write=False)
            frozen[name] = arr
            lengths.add(arr.shape[0])
        if len(lengths) > 1:
            raise ValueError(f"Waveform channels differ in length: {sorted(lengths)}")
        object.__setattr__(self, "channels", MappingProxyType(frozen))
        object.__setattr__(
            self, "vitals", MappingProxyType({k: float(v) for k, v in self.vitals.items()})
        )

    @property
    def channel_names(self) -> list[str]:
        return list(self.channels.keys())

    @property
    def num_samples(self) -> int:
        """Samples per channel in this batch."""
        for arr in self.channels.values():
            return int(arr.shape[0])
        return 0

    def as_array(self) -> np.ndarray:
        """Return the waveform as a ``[channels, samples]`` array in channel order."""
        if not self.channels:
            return np.empty((0, 0), dtype=np.float32)
        return np.stack(list(self.channels.values()))


@dataclass
class SchedulerHandle:
    """One active periodic run of a :class:`PublicationScheduler`."""

    run_id: int
    first_tick: int
    task: Optional[Any] = field(default=None, repr=False)

    def cancel(self) -> None:
        if self.task is not None:
            self.task.cancel()

"""Sample synthesizers: pure functions producing one :class:`SampleBatch` per tick."""

from __future__ import annotations

from typing import Protocol

import numpy as np

from src.simulator.morphology import (
    RSA_DEPTH,
    beat_phase,
    beat_template,
    instantaneous_heart_rate,
    pleth_pulse,
    respiration_wave,
)
from src.testbed.exceptions import ConfigurationError
from src.testbed.schemas import GeneratorConfig, SampleBatch

# Channel names in delivery order
ECG_LEADS = ["I", "II", "III"]
PLETH_CHANNEL = "pleth"

# Lead I projects less of the cardiac vector than lead II
LEAD_I_GAIN = 0.6
RESP_BASELINE_MV = 0.05


class SampleSynthesizer(Protocol):
    """Produces the batch for one tick; must be pure in its inputs."""

    config: GeneratorConfig

    def synthesize(self, tick_index: int, timestamp: int) -> SampleBatch:
        ...


def sample_times(config: GeneratorConfig, tick_index: int) -> np.ndarray:
    """Elapsed device times (s) of the waveform samples covered by *tick_index*."""
    start, stop = config.sample_window(tick_index)
    return np.arange(start, stop, dtype=np.float64) / config.sampling_frequency


def tick_time(config: GeneratorConfig, tick_index: int) -> float:
    """Elapsed device time (s) at the start of *tick_index*."""
    return tick_index * config.ms_per_sample / 1000.0


def _noise(config: GeneratorConfig, tick_index: int, shape: tuple[int, ...]) -> np.ndarray:
    if config.noise_std == 0.0:
        return np.zeros(shape)
    rng = np.random.default_rng([config.seed, tick_index])
    return rng.normal(0.0, config.noise_std, shape)


def synthesize_ecg(
    config: GeneratorConfig,
    tick_index: int,
    timestamp: int,
    rsa_depth: float = RSA_DEPTH,
) -> SampleBatch:
    """Synthesize the three-lead ECG batch for *tick_index*.

    Waveform content depends on *tick_index* only; *timestamp* is carried
    through unchanged and may be non-monotonic across ticks.

    Returns:
        Batch with channels ``I``, ``II``, ``III`` and vitals ``heart_rate``
        and ``respiratory_rate``.
    """
    if tick_index < 0:
        raise ValueError(f"tick_index must be non-negative, got {tick_index}")

    t = sample_times(config, tick_index)
    phase = beat_phase(t, config.heart_rate, config.respiratory_rate, rsa_depth)
    template = beat_template(phase, config.heart_rate)
    resp = RESP_BASELINE_MV * respiration_wave(t, config.respiratory_rate)

    noise = _noise(config, tick_index, (2, t.shape[0]))
    lead_II = template + resp + noise[1]
    lead_I = LEAD_I_GAIN * (template + resp) + noise[0]

    # Einthoven's law: III = II - I
    lead_III = lead_II - lead_I

    hr = instantaneous_heart_rate(
        tick_time(config, tick_index), config.heart_rate, config.respiratory_rate, rsa_depth
    )
    return SampleBatch(
        timestamp=timestamp,
        tick_index=tick_index,
        channels={"I": lead_I, "II": lead_II, "III": lead_III},
        vitals={"heart_rate": hr, "respiratory_rate": config.respiratory_rate},
        frequency=config.sampling_frequency,
    )


def synthesize_pulse_oximeter(
    config: GeneratorConfig,
    tick_index: int,
    timestamp: int,
    spo2: float = 98.0,
    rsa_depth: float = RSA_DEPTH,
) -> SampleBatch:
    """Synthesize the plethysmogram batch for *tick_index*.

    Returns:
        Batch with channel ``pleth`` and vitals ``spo2`` and ``pulse_rate``.
    """
    if tick_index < 0:
        raise ValueError(f"tick_index must be non-negative, got {tick_index}")

    t = sample_times(config, tick_index)
    phase = beat_phase(t, config.heart_rate, config.respiratory_rate, rsa_depth)
    # Respiration modulates the pulse amplitude by a few percent
    envelope = 1.0 + 0.05 * respiration_wave(t, config.respiratory_rate)
    pleth = pleth_pulse(phase) * envelope
    pleth = pleth + _noise(config, tick_index, (1, t.shape[0]))[0]

    pulse_rate = instantaneous_heart_rate(
        tick_time(config, tick_index), config.heart_rate, config.respiratory_rate, rsa_depth
    )
    return SampleBatch(
        timestamp=timestamp,
        tick_index=tick_index,
        channels={PLETH_CHANNEL: pleth},
        vitals={"spo2": spo2, "pulse_rate": pulse_rate},
        frequency=config.sampling_frequency,
    )


class ECGSynthesizer:
    """Three-lead ECG synthesizer bound to one :class:`GeneratorConfig`."""

    def __init__(self, config: GeneratorConfig, rsa_depth: float = RSA_DEPTH) -> None:
        if not 0.0 <= rsa_depth < 1.0:
            raise ConfigurationError(f"rsa_depth must be in [0, 1), got {rsa_depth!r}")
        self.config = config
        self.rsa_depth = rsa_depth

    def synthesize(self, tick_index: int, timestamp: int) -> SampleBatch:
        return synthesize_ecg(self.config, tick_index, timestamp, self.rsa_depth)


class PulseOximeterSynthesizer:
    """Plethysmogram + SpO2 synthesizer bound to one :class:`GeneratorConfig`."""

    def __init__(
        self,
        config: GeneratorConfig,
        spo2: float = 98.0,
        rsa_depth: float = RSA_DEPTH,
    ) -> None:
        if not 0.0 < spo2 <= 100.0:
            raise ConfigurationError(f"spo2 must be in (0, 100], got {spo2!r}")
        if not 0.0 <= rsa_depth < 1.0:
            raise ConfigurationError(f"rsa_depth must be in [0, 1), got {rsa_depth!r}")
        self.config = config
        self.spo2 = float(spo2)
        self.rsa_depth = rsa_depth

    def synthesize(self, tick_index: int, timestamp: int) -> SampleBatch:
        return synthesize_pulse_oximeter(
            self.config, tick_index, timestamp, self.spo2, self.rsa_depth
        )

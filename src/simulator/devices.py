"""Simulated device facades binding a synthesizer to a publication scheduler."""

from __future__ import annotations

from typing import Any, Callable, Optional

import numpy as np

from src.simulator.executors import PeriodicExecutor
from src.simulator.scheduler import PublicationScheduler
from src.simulator.synthesis import (
    ECG_LEADS,
    PLETH_CHANNEL,
    ECGSynthesizer,
    PulseOximeterSynthesizer,
    SampleSynthesizer,
)
from src.simulator.timebase import wall_clock_ms
from src.testbed.exceptions import ConfigurationError
from src.testbed.schemas import GeneratorConfig, SampleBatch, SchedulerHandle, TimeBase


def _require_one_consumer(
    device: str, hook: str, callback: Optional[Callable], overridden: bool
) -> None:
    """Exactly one of *callback* and an override of *hook* must be supplied."""
    if callback is None and not overridden:
        raise ConfigurationError(
            f"{device} needs a consumer: pass a callback or override {hook}()"
        )
    if callback is not None and overridden:
        raise ConfigurationError(f"{device} overrides {hook}() and was also given a callback")


class SimulatedDevice:
    """Base for simulated devices publishing through a :class:`PublicationScheduler`.

    Subclasses unpack each :class:`SampleBatch` into their device-specific
    hook in :meth:`_deliver`.
    """

    def __init__(
        self,
        synthesizer: SampleSynthesizer,
        time_source: Callable[[], float] = wall_clock_ms,
    ) -> None:
        self.synthesizer = synthesizer
        self.scheduler = PublicationScheduler(synthesizer, self._deliver, time_source)

    @property
    def config(self) -> GeneratorConfig:
        return self.synthesizer.config

    @property
    def is_connected(self) -> bool:
        return self.scheduler.is_connected

    def connect(self, executor: PeriodicExecutor) -> SchedulerHandle:
        return self.scheduler.connect(executor)

    def disconnect(self) -> None:
        self.scheduler.disconnect()

    def _deliver(self, batch: SampleBatch) -> None:
        raise NotImplementedError


class SimulatedElectrocardiogram(SimulatedDevice):
    """Simulated three-lead ECG monitor.

    Args:
        heart_rate: base heart rate in beats per minute.
        ms_per_sample: publication interval in milliseconds.
        time_base: ``metronome`` or ``realtime`` (enum or string).
        drift_ms: drift magnitude in milliseconds.
        on_ecg: consumer with the :meth:`receive_ecg` signature.  Leave it
            out when a subclass overrides :meth:`receive_ecg` instead.
        time_source: wall clock in epoch ms.
        **options: further :class:`GeneratorConfig` fields.
    """

    def __init__(
        self,
        heart_rate: float,
        ms_per_sample: int,
        time_base: TimeBase | str,
        drift_ms: float,
        on_ecg: Optional[Callable[..., None]] = None,
        time_source: Callable[[], float] = wall_clock_ms,
        **options: Any,
    ) -> None:
        config = GeneratorConfig(heart_rate, ms_per_sample, time_base, drift_ms, **options)
        self._on_ecg = on_ecg
        _require_one_consumer(
            type(self).__name__,
            "receive_ecg",
            on_ecg,
            type(self).receive_ecg is not SimulatedElectrocardiogram.receive_ecg,
        )
        super().__init__(ECGSynthesizer(config), time_source)

    def receive_ecg(
        self,
        timestamp: int,
        i: np.ndarray,
        ii: np.ndarray,
        iii: np.ndarray,
        heart_rate: float,
        respiratory_rate: float,
        frequency: int,
    ) -> None:
        """Called once per batch; override or pass ``on_ecg``."""
        self._on_ecg(timestamp, i, ii, iii, heart_rate, respiratory_rate, frequency)

    def _deliver(self, batch: SampleBatch) -> None:
        leads = [batch.channels[name] for name in ECG_LEADS]
        self.receive_ecg(
            batch.timestamp,
            *leads,
            batch.vitals["heart_rate"],
            batch.vitals["respiratory_rate"],
            batch.frequency,
        )


class SimulatedPulseOximeter(SimulatedDevice):
    """Simulated pulse oximeter: plethysmogram, SpO2 and pulse rate.

    Args:
        heart_rate: base pulse rate in beats per minute.
        ms_per_sample: publication interval in milliseconds.
        time_base: ``metronome`` or ``realtime``.
        drift_ms: drift magnitude in milliseconds.
        spo2: oxygen saturation in percent.
        on_pulse_ox: consumer with the :meth:`receive_pulse_ox` signature.
    """

    def __init__(
        self,
        heart_rate: float,
        ms_per_sample: int,
        time_base: TimeBase | str,
        drift_ms: float,
        spo2: float = 98.0,
        on_pulse_ox: Optional[Callable[..., None]] = None,
        time_source: Callable[[], float] = wall_clock_ms,
        **options: Any,
    ) -> None:
        config = GeneratorConfig(heart_rate, ms_per_sample, time_base, drift_ms, **options)
        self._on_pulse_ox = on_pulse_ox
        _require_one_consumer(
            type(self).__name__,
            "receive_pulse_ox",
            on_pulse_ox,
            type(self).receive_pulse_ox is not SimulatedPulseOximeter.receive_pulse_ox,
        )
        super().__init__(PulseOximeterSynthesizer(config, spo2=spo2), time_source)

    def receive_pulse_ox(
        self,
        timestamp: int,
        pleth: np.ndarray,
        spo2: float,
        pulse_rate: float,
        frequency: int,
    ) -> None:
        self._on_pulse_ox(timestamp, pleth, spo2, pulse_rate, frequency)

    def _deliver(self, batch: SampleBatch) -> None:
        self.receive_pulse_ox(
            batch.timestamp,
            batch.channels[PLETH_CHANNEL],
            batch.vitals["spo2"],
            batch.vitals["pulse_rate"],
            batch.frequency,
        )

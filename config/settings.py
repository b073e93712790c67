"""Configuration management for the simulated device testbed."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Callable, Optional

import yaml

from src.simulator.devices import SimulatedElectrocardiogram, SimulatedPulseOximeter
from src.simulator.timebase import wall_clock_ms
from src.testbed.schemas import GeneratorConfig


@dataclass
class GeneratorSettings:
    """Editable settings for one simulated device's signal generator."""

    heart_rate: float = 72.0
    ms_per_sample: int = 5
    time_base: str = "metronome"
    drift_ms: float = 0.0
    respiratory_rate: float = 15.0
    sampling_frequency: int = 200
    drift_policy: str = "jitter"
    drift_limit_ms: float = 60_000.0
    origin_ms: Optional[int] = None
    noise_std: float = 0.0
    seed: int = 0

    def to_config(self) -> GeneratorConfig:
        """Build a validated :class:`GeneratorConfig`.

        Raises:
            ConfigurationError: if any value is out of range.
        """
        return GeneratorConfig(
            heart_rate=self.heart_rate,
            ms_per_sample=self.ms_per_sample,
            time_base=self.time_base,
            drift_ms=self.drift_ms,
            respiratory_rate=self.respiratory_rate,
            sampling_frequency=self.sampling_frequency,
            drift_policy=self.drift_policy,
            drift_limit_ms=self.drift_limit_ms,
            origin_ms=self.origin_ms,
            noise_std=self.noise_std,
            seed=self.seed,
        )


@dataclass
class ECGSettings(GeneratorSettings):
    """Settings of the simulated electrocardiogram."""

    def to_device(
        self,
        on_ecg: Optional[Callable[..., None]] = None,
        time_source: Callable[[], float] = wall_clock_ms,
    ) -> SimulatedElectrocardiogram:
        return SimulatedElectrocardiogram(on_ecg=on_ecg, time_source=time_source, **asdict(self))


@dataclass
class PulseOximeterSettings(GeneratorSettings):
    """Generator settings plus the simulated saturation."""

    spo2: float = 98.0

    def to_device(
        self,
        on_pulse_ox: Optional[Callable[..., None]] = None,
        time_source: Callable[[], float] = wall_clock_ms,
    ) -> SimulatedPulseOximeter:
        """Build a pulse oximeter publishing with these settings, ``spo2`` included."""
        return SimulatedPulseOximeter(
            on_pulse_ox=on_pulse_ox, time_source=time_source, **asdict(self)
        )


@dataclass
class Settings:
    """Top-level application settings."""

    ecg: ECGSettings = field(default_factory=ECGSettings)
    pulse_oximeter: PulseOximeterSettings = field(default_factory=PulseOximeterSettings)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables.

        The timing variables apply to both devices; ``DEVSIM_SPO2`` sets the
        pulse oximeter's saturation.
        """
        timing = dict(
            heart_rate=float(os.getenv("DEVSIM_HEART_RATE", "72")),
            ms_per_sample=int(os.getenv("DEVSIM_MS_PER_SAMPLE", "5")),
            time_base=os.getenv("DEVSIM_TIME_BASE", "metronome"),
            drift_ms=float(os.getenv("DEVSIM_DRIFT_MS", "0")),
            drift_policy=os.getenv("DEVSIM_DRIFT_POLICY", "jitter"),
        )
        return cls(
            ecg=ECGSettings(**timing),
            pulse_oximeter=PulseOximeterSettings(
                spo2=float(os.getenv("DEVSIM_SPO2", "98")), **timing
            ),
            log_level=os.getenv("DEVSIM_LOG_LEVEL", "INFO"),
        )

    @classmethod
    def from_yaml(cls, path: str) -> Settings:
        """Load settings from YAML config file."""
        config_path = Path(path)
        if not config_path.exists():
            return cls()
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        settings = cls()
        if "ecg" in data:
            settings.ecg = ECGSettings(**data["ecg"])
        if "pulse_oximeter" in data:
            settings.pulse_oximeter = PulseOximeterSettings(**data["pulse_oximeter"])
        if "log_level" in data:
            settings.log_level = data["log_level"]
        return settings

    def configure_logging(self) -> None:
        """Apply ``log_level`` to the root logger."""
        logging.basicConfig(
            level=self.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

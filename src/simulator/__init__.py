"""Simulated device signal generation and publication scheduling."""

from src.simulator.devices import SimulatedDevice, SimulatedElectrocardiogram, SimulatedPulseOximeter
from src.simulator.executors import (
    AsyncioPeriodicExecutor,
    ManualExecutor,
    PeriodicExecutor,
    ThreadedPeriodicExecutor,
)
from src.simulator.scheduler import PublicationScheduler
from src.simulator.synthesis import ECGSynthesizer, PulseOximeterSynthesizer, SampleSynthesizer
from src.simulator.timebase import MetronomeClock, WallClock, build_clock

__all__ = [
    "SimulatedDevice",
    "SimulatedElectrocardiogram",
    "SimulatedPulseOximeter",
    "AsyncioPeriodicExecutor",
    "ManualExecutor",
    "PeriodicExecutor",
    "ThreadedPeriodicExecutor",
    "PublicationScheduler",
    "ECGSynthesizer",
    "PulseOximeterSynthesizer",
    "SampleSynthesizer",
    "MetronomeClock",
    "WallClock",
    "build_clock",
]

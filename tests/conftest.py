"""Shared pytest fixtures for simulated device tests."""

from __future__ import annotations

import threading

import pytest

from src.simulator.executors import ManualExecutor
from src.testbed.schemas import GeneratorConfig, SampleBatch, TimeBase

ORIGIN_MS = 1_704_537_600_000  # 2024-01-06T10:40:00Z


class RecordingConsumer:
    """Consumer that records every batch it receives."""

    def __init__(self, expected: int | None = None) -> None:
        self.batches: list[SampleBatch] = []
        self._expected = expected
        self.done = threading.Event()

    def __call__(self, batch: SampleBatch) -> None:
        self.batches.append(batch)
        if self._expected is not None and len(self.batches) >= self._expected:
            self.done.set()

    @property
    def tick_indices(self) -> list[int]:
        return [b.tick_index for b in self.batches]

    @property
    def timestamps(self) -> list[int]:
        return [b.timestamp for b in self.batches]


def make_config(**overrides) -> GeneratorConfig:
    """Metronome ECG config with a fixed origin; override any field."""
    values = dict(
        heart_rate=72.0,
        ms_per_sample=5,
        time_base=TimeBase.METRONOME,
        drift_ms=0.0,
        origin_ms=ORIGIN_MS,
    )
    values.update(overrides)
    return GeneratorConfig(**values)


@pytest.fixture
def config() -> GeneratorConfig:
    return make_config()


@pytest.fixture
def executor() -> ManualExecutor:
    return ManualExecutor(start_ms=ORIGIN_MS)


@pytest.fixture
def consumer() -> RecordingConsumer:
    return RecordingConsumer()


@pytest.fixture(name="make_config")
def make_config_fixture():
    return make_config


@pytest.fixture(name="recording_consumer")
def recording_consumer_fixture():
    """Factory for consumers that signal once *expected* batches arrived."""
    return RecordingConsumer

"""Tests for GeneratorConfig validation and SampleBatch immutability."""

import numpy as np
import pytest

from src.testbed.exceptions import ConfigurationError
from src.testbed.schemas import DriftPolicy, GeneratorConfig, SampleBatch, TimeBase


class TestGeneratorConfig:
    def test_required_values(self):
        cfg = GeneratorConfig(1000.0, 5, TimeBase.METRONOME, 0)
        assert cfg.heart_rate == 1000.0
        assert cfg.ms_per_sample == 5
        assert cfg.time_base is TimeBase.METRONOME
        assert cfg.drift_ms == 0

    def test_defaults(self):
        cfg = GeneratorConfig(72.0, 5, TimeBase.REALTIME, 10)
        assert cfg.respiratory_rate == 15.0
        assert cfg.sampling_frequency == 200
        assert cfg.drift_policy is DriftPolicy.JITTER
        assert cfg.origin_ms is None
        assert cfg.noise_std == 0.0

    def test_strings_coerced_to_enums(self):
        cfg = GeneratorConfig(72.0, 5, "Realtime", 10, drift_policy="linear")
        assert cfg.time_base is TimeBase.REALTIME
        assert cfg.drift_policy is DriftPolicy.LINEAR

    @pytest.mark.parametrize("hr", [0, -1, -72.5, float("nan"), float("inf")])
    def test_rejects_bad_heart_rate(self, hr):
        with pytest.raises(ConfigurationError, match="heart_rate"):
            GeneratorConfig(hr, 5, TimeBase.METRONOME, 0)

    @pytest.mark.parametrize("ms", [0, -5, 2.5, True])
    def test_rejects_bad_ms_per_sample(self, ms):
        with pytest.raises(ConfigurationError, match="ms_per_sample"):
            GeneratorConfig(72.0, ms, TimeBase.METRONOME, 0)

    def test_rejects_unknown_time_base(self):
        with pytest.raises(ConfigurationError, match="time_base"):
            GeneratorConfig(72.0, 5, "sundial", 0)

    def test_rejects_non_finite_drift(self):
        with pytest.raises(ConfigurationError, match="drift_ms"):
            GeneratorConfig(72.0, 5, TimeBase.REALTIME, float("inf"))

    def test_negative_drift_allowed(self):
        cfg = GeneratorConfig(72.0, 5, TimeBase.REALTIME, -10)
        assert cfg.drift_ms == -10

    def test_rejects_negative_noise(self):
        with pytest.raises(ConfigurationError, match="noise_std"):
            GeneratorConfig(72.0, 5, TimeBase.METRONOME, 0, noise_std=-0.1)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            GeneratorConfig(72.0, 0, TimeBase.METRONOME, 0)

    def test_frozen(self):
        cfg = GeneratorConfig(72.0, 5, TimeBase.METRONOME, 0)
        with pytest.raises(AttributeError):
            cfg.heart_rate = 60.0

    def test_sample_windows_tile_without_gaps(self):
        cfg = GeneratorConfig(72.0, 7, TimeBase.METRONOME, 0, sampling_frequency=250)
        windows = [cfg.sample_window(k) for k in range(100)]
        assert windows[0][0] == 0
        for (_, stop), (start, _) in zip(windows, windows[1:]):
            assert stop == start
        assert windows[-1][1] == 100 * 7 * 250 // 1000

    def test_sample_window_even_length(self):
        cfg = GeneratorConfig(72.0, 15, TimeBase.METRONOME, 0, sampling_frequency=200)
        assert {cfg.sample_window(k)[1] - cfg.sample_window(k)[0] for k in range(20)} == {3}

    def test_sub_sample_interval_gives_empty_windows(self):
        cfg = GeneratorConfig(72.0, 1, TimeBase.METRONOME, 0, sampling_frequency=200)
        lengths = [cfg.sample_window(k)[1] - cfg.sample_window(k)[0] for k in range(10)]
        assert lengths == [0, 0, 0, 0, 1, 0, 0, 0, 0, 1]


class TestSampleBatch:
    def _batch(self):
        return SampleBatch(
            timestamp=1000,
            tick_index=0,
            channels={"I": [0.1, 0.2], "II": np.array([0.3, 0.4])},
            vitals={"heart_rate": 72, "respiratory_rate": 15},
            frequency=200,
        )

    def test_arrays_are_float32_and_read_only(self):
        batch = self._batch()
        for arr in batch.channels.values():
            assert arr.dtype == np.float32
            with pytest.raises(ValueError):
                arr[0] = 99.0

    def test_mappings_are_read_only(self):
        batch = self._batch()
        with pytest.raises(TypeError):
            batch.channels["III"] = np.zeros(2)
        with pytest.raises(TypeError):
            batch.vitals["heart_rate"] = 0.0

    def test_copies_caller_arrays(self):
        source = np.array([1.0, 2.0], dtype=np.float32)
        batch = SampleBatch(0, 0, {"pleth": source}, {}, 100)
        source[0] = 5.0
        assert batch.channels["pleth"][0] == 1.0

    def test_channel_order_preserved(self):
        assert self._batch().channel_names == ["I", "II"]

    def test_rejects_unequal_channels(self):
        with pytest.raises(ValueError, match="differ in length"):
            SampleBatch(0, 0, {"I": [1.0], "II": [1.0, 2.0]}, {}, 200)

    def test_as_array(self):
        arr = self._batch().as_array()
        assert arr.shape == (2, 2)
        assert self._batch().num_samples == 2

    def test_empty_batch(self):
        batch = SampleBatch(5, 3, {"I": [], "II": []}, {"heart_rate": 72}, 200)
        assert batch.num_samples == 0
        assert batch.as_array().shape == (2, 0)
        assert batch.vitals["heart_rate"] == 72.0

"""Tests for YAML and environment settings loading."""

import logging

import pytest

from config.settings import ECGSettings, GeneratorSettings, PulseOximeterSettings, Settings
from src.simulator.devices import SimulatedElectrocardiogram, SimulatedPulseOximeter
from src.simulator.executors import ManualExecutor
from src.testbed.exceptions import ConfigurationError
from src.testbed.schemas import DriftPolicy, GeneratorConfig, TimeBase


class TestGeneratorSettings:
    def test_defaults_build_valid_config(self):
        cfg = GeneratorSettings().to_config()
        assert isinstance(cfg, GeneratorConfig)
        assert cfg.time_base is TimeBase.METRONOME
        assert cfg.drift_policy is DriftPolicy.JITTER

    def test_invalid_values_rejected_on_build(self):
        with pytest.raises(ConfigurationError):
            GeneratorSettings(ms_per_sample=0).to_config()


class TestSettingsFromYaml:
    def test_missing_file_gives_defaults(self, tmp_path):
        settings = Settings.from_yaml(str(tmp_path / "absent.yaml"))
        assert settings == Settings()

    def test_loads_sections(self, tmp_path):
        path = tmp_path / "devsim.yaml"
        path.write_text(
            "ecg:\n"
            "  heart_rate: 60\n"
            "  ms_per_sample: 15\n"
            "  time_base: realtime\n"
            "  drift_ms: 10\n"
            "  drift_policy: constant\n"
            "pulse_oximeter:\n"
            "  spo2: 93.5\n"
            "log_level: DEBUG\n"
        )
        settings = Settings.from_yaml(str(path))
        cfg = settings.ecg.to_config()
        assert cfg.heart_rate == 60
        assert cfg.ms_per_sample == 15
        assert cfg.time_base is TimeBase.REALTIME
        assert cfg.drift_policy is DriftPolicy.CONSTANT
        assert isinstance(settings.pulse_oximeter, PulseOximeterSettings)
        assert settings.pulse_oximeter.spo2 == 93.5
        assert settings.log_level == "DEBUG"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert Settings.from_yaml(str(path)) == Settings()


class TestSettingsToDevice:
    ORIGIN_MS = 1_704_537_600_000

    def test_yaml_spo2_reaches_delivered_vitals(self, tmp_path):
        path = tmp_path / "devsim.yaml"
        path.write_text(
            "pulse_oximeter:\n"
            "  heart_rate: 80\n"
            "  ms_per_sample: 15\n"
            f"  origin_ms: {self.ORIGIN_MS}\n"
            "  spo2: 93.5\n"
        )
        received = []
        device = Settings.from_yaml(str(path)).pulse_oximeter.to_device(
            on_pulse_ox=lambda *args: received.append(args)
        )
        assert isinstance(device, SimulatedPulseOximeter)

        executor = ManualExecutor(start_ms=self.ORIGIN_MS)
        device.connect(executor)
        executor.run_ticks(3)
        device.disconnect()

        assert [r[0] for r in received] == [self.ORIGIN_MS + 15 * k for k in range(3)]
        assert {r[2] for r in received} == {93.5}
        assert all(76.0 <= r[3] <= 84.0 for r in received)

    def test_ecg_settings_build_device(self):
        received = []
        device = ECGSettings(heart_rate=60, ms_per_sample=15, origin_ms=self.ORIGIN_MS).to_device(
            on_ecg=lambda *args: received.append(args)
        )
        assert isinstance(device, SimulatedElectrocardiogram)
        assert device.config.heart_rate == 60

        executor = ManualExecutor(start_ms=self.ORIGIN_MS)
        device.connect(executor)
        executor.run_ticks(2)
        device.disconnect()
        assert [len(r[1]) for r in received] == [3, 3]

    def test_invalid_spo2_rejected(self):
        with pytest.raises(ConfigurationError):
            PulseOximeterSettings(spo2=120.0).to_device(on_pulse_ox=lambda *args: None)


class TestSettingsFromEnv:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("DEVSIM_HEART_RATE", "90")
        monkeypatch.setenv("DEVSIM_MS_PER_SAMPLE", "15")
        monkeypatch.setenv("DEVSIM_TIME_BASE", "realtime")
        monkeypatch.setenv("DEVSIM_DRIFT_MS", "10")
        monkeypatch.setenv("DEVSIM_SPO2", "91")
        monkeypatch.setenv("DEVSIM_LOG_LEVEL", "warning")
        settings = Settings.from_env()
        cfg = settings.ecg.to_config()
        assert cfg.heart_rate == 90.0
        assert cfg.ms_per_sample == 15
        assert cfg.time_base is TimeBase.REALTIME
        assert cfg.drift_ms == 10.0
        assert settings.pulse_oximeter.spo2 == 91.0
        assert settings.pulse_oximeter.to_config() == cfg
        assert settings.log_level == "warning"

    def test_configure_logging(self, monkeypatch):
        calls = {}
        monkeypatch.setattr(logging, "basicConfig", lambda **kw: calls.update(kw))
        Settings(log_level="debug").configure_logging()
        assert calls["level"] == "DEBUG"

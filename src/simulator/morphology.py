"""Phase-continuous waveform morphology using a Gaussian basis PQRST template.

Every waveform here is a function of elapsed device time only, so a signal
evaluated in consecutive windows is identical to the signal evaluated in one
piece.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

# Depth of respiratory sinus arrhythmia as a fraction of the base heart rate
RSA_DEPTH = 0.05

# Gaussian widths are capped at this fraction of the cycle so the periodic
# wrap stays continuous even at very high heart rates.
MAX_SIGMA_FRACTION = 0.08


@dataclass(frozen=True)
class WaveComponent:
    """One Gaussian wave in the beat template.

    Attributes:
        name: wave label (P, Q, R, S, T).
        position: centre as a fraction of the cardiac cycle.
        amplitude: peak amplitude in mV.
        fwhm: full width at half maximum in seconds.
    """

    name: str
    position: float
    amplitude: float
    fwhm: float


NORMAL_BEAT: tuple[WaveComponent, ...] = (
    WaveComponent("P", 0.15, 0.10, 0.10),
    WaveComponent("Q", 0.315, -0.10, 0.02),
    WaveComponent("R", 0.35, 1.20, 0.035),
    WaveComponent("S", 0.385, -0.25, 0.025),
    WaveComponent("T", 0.62, 0.25, 0.16),
)


def beat_phase(
    t: np.ndarray,
    heart_rate: float,
    respiratory_rate: float,
    rsa_depth: float = RSA_DEPTH,
) -> np.ndarray:
    """Cumulative beat count at elapsed times *t* (seconds).

    The instantaneous rate is ``hr * (1 + rsa_depth * sin(2π f_r t))``; the
    phase is its closed-form integral, zero at ``t = 0``.
    """
    f_hr = heart_rate / 60.0
    f_resp = respiratory_rate / 60.0
    w = 2 * np.pi * f_resp
    return f_hr * (t + rsa_depth / w * (1.0 - np.cos(w * t)))


def instantaneous_heart_rate(
    t: float,
    heart_rate: float,
    respiratory_rate: float,
    rsa_depth: float = RSA_DEPTH,
) -> float:
    """Heart rate (bpm) at elapsed time *t* seconds."""
    f_resp = respiratory_rate / 60.0
    return float(heart_rate * (1.0 + rsa_depth * np.sin(2 * np.pi * f_resp * t)))


def respiration_wave(t: np.ndarray, respiratory_rate: float) -> np.ndarray:
    """Unit-amplitude respiration cycle at elapsed times *t*."""
    return np.sin(2 * np.pi * (respiratory_rate / 60.0) * t)


def _wrapped_distance(phase: np.ndarray, position: float) -> np.ndarray:
    """Signed cycle distance from *position*, wrapped into ``[-0.5, 0.5)``."""
    return np.mod(phase - position + 0.5, 1.0) - 0.5


def beat_template(
    phase: np.ndarray,
    heart_rate: float,
    components: tuple[WaveComponent, ...] = NORMAL_BEAT,
) -> np.ndarray:
    """Evaluate the periodic PQRST template at cumulative beat *phase*."""
    rr = 60.0 / heart_rate
    frac = np.mod(phase, 1.0)
    wave = np.zeros_like(frac, dtype=np.float64)
    for comp in components:
        sigma = min(comp.fwhm / 2.355 / rr, MAX_SIGMA_FRACTION)  # FWHM → σ, in cycles
        d = _wrapped_distance(frac, comp.position)
        wave += comp.amplitude * np.exp(-(d ** 2) / (2 * sigma ** 2))
    return wave


def pleth_pulse(phase: np.ndarray) -> np.ndarray:
    """Plethysmographic pulse shape on the beat phase, in ``[0, 1]``."""
    w = 2 * np.pi * np.mod(phase, 1.0)
    pulse = np.sin(w) + 0.3 * np.sin(2 * w + np.pi / 4)
    # The two-harmonic sum lies within [-1.3, 1.3]
    return (pulse + 1.3) / 2.6

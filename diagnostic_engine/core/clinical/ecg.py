"""
ECG Interpreter & Waveform Synthesizer

Interpretation: three independent rules, every matching clause is kept:
    heart rate   Severe Bradycardia <50 · Bradycardia 50–59 · Normal Sinus Rhythm 60–100
                 · Tachycardia 101–120 · Severe Tachycardia >120
    QRS          Normal 80–120 ms · Wide (bundle branch block) >120 ms
    QTc          Bazett: QT / sqrt(60 / HR); short <350 ms · prolonged >470 ms

Risk tier:
    Critical  HR <50 or HR >120 or QRS >120
    Abnormal  HR <60 or HR >100 or QTc >470
    Normal    otherwise

Waveform: a lazy, finite, restartable sample sequence built from
half-sine phase windows (P, Q, R, S, T) placed at fixed fractions of each
cardiac cycle, plus baseline noise and tier-dependent irregular spikes.
Randomness comes from an injected ``numpy.random.Generator``.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple, Union

import numpy as np

from .base import ECGRiskLevel
from .thresholds import ThresholdTable, WHO_THRESHOLDS

Number = Union[int, float]


# ── Interpretation ────────────────────────────────────────────────────────────

def corrected_qt(qt_interval: Optional[Number], heart_rate: Optional[Number]) -> Optional[float]:
    """Heart-rate corrected QT interval (Bazett approximation)."""
    if qt_interval is None or heart_rate is None or heart_rate <= 0:
        return None
    return qt_interval / math.sqrt(60 / heart_rate)


def interpret_ecg(
    heart_rate: Optional[Number],
    qrs_duration: Optional[Number] = None,
    qt_interval: Optional[Number] = None,
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[str]:
    """
    Composite interpretation string, clauses joined with ", ".

    Heart rate anchors the interpretation; QRS and QT clauses are added
    only when those values were entered.
    """
    if heart_rate is None:
        return None

    t = thresholds.ecg
    clauses = []

    if heart_rate < t.severe_bradycardia:
        clauses.append("Severe Bradycardia")
    elif heart_rate < t.bradycardia:
        clauses.append("Bradycardia")
    elif heart_rate > t.severe_tachycardia:
        clauses.append("Severe Tachycardia")
    elif heart_rate > t.tachycardia:
        clauses.append("Tachycardia")
    else:
        clauses.append("Normal Sinus Rhythm")

    if qrs_duration is not None:
        if qrs_duration > t.qrs_normal[1]:
            clauses.append("Wide QRS Complex (Bundle Branch Block)")
        elif qrs_duration >= t.qrs_normal[0]:
            clauses.append("Normal QRS Duration")

    qtc = corrected_qt(qt_interval, heart_rate)
    if qtc is not None:
        if qtc > t.qtc_prolonged:
            clauses.append("Prolonged QTc (Risk of Arrhythmia)")
        elif qtc < t.qtc_short:
            clauses.append("Short QTc")
        else:
            clauses.append("Normal QT Interval")

    return ", ".join(clauses)


def ecg_risk_level(
    heart_rate: Optional[Number],
    qrs_duration: Optional[Number] = None,
    qt_interval: Optional[Number] = None,
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[ECGRiskLevel]:
    """
    Rhythm risk tier. A wide QRS alone forces Critical even at a normal rate.
    """
    if heart_rate is None:
        return None

    t = thresholds.ecg
    if (
        heart_rate < t.severe_bradycardia
        or heart_rate > t.severe_tachycardia
        or (qrs_duration is not None and qrs_duration > t.qrs_normal[1])
    ):
        return ECGRiskLevel.CRITICAL

    qtc = corrected_qt(qt_interval, heart_rate)
    if (
        heart_rate < t.bradycardia
        or heart_rate > t.tachycardia
        or (qtc is not None and qtc > t.qtc_prolonged)
    ):
        return ECGRiskLevel.ABNORMAL

    return ECGRiskLevel.NORMAL


@dataclass(frozen=True)
class ECGAnalysis:
    """Derived ECG fields stored on the visit record."""
    qtc: Optional[float]
    interpretation: str
    risk_level: ECGRiskLevel

    def to_dict(self) -> Dict:
        return {
            "qtc": round(self.qtc, 1) if self.qtc is not None else None,
            "interpretation": self.interpretation,
            "risk_level": self.risk_level.value,
        }


def analyze_ecg(
    heart_rate: Optional[Number],
    qrs_duration: Optional[Number] = None,
    qt_interval: Optional[Number] = None,
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[ECGAnalysis]:
    """Interpretation, risk tier and QTc together, or None without a heart rate."""
    if heart_rate is None:
        return None
    return ECGAnalysis(
        qtc=corrected_qt(qt_interval, heart_rate),
        interpretation=interpret_ecg(heart_rate, qrs_duration, qt_interval, thresholds),
        risk_level=ecg_risk_level(heart_rate, qrs_duration, qt_interval, thresholds),
    )


# ── Waveform synthesis ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class WavePhase:
    """One half-sine deflection occupying [start, end] of the cardiac cycle."""
    name: str
    start: float
    end: float
    magnitude: float

    def contains(self, position: float) -> bool:
        return self.start <= position <= self.end

    def amplitude(self, position: float) -> float:
        if not self.contains(position):
            return 0.0
        return self.magnitude * math.sin((position - self.start) / (self.end - self.start) * math.pi)


ECG_PHASES: Tuple[WavePhase, ...] = (
    WavePhase("P", 0.08, 0.12, 0.2),
    WavePhase("Q", 0.15, 0.18, -0.3),
    WavePhase("R", 0.18, 0.22, 1.2),
    WavePhase("S", 0.22, 0.25, -0.4),
    WavePhase("T", 0.35, 0.55, 0.4),
)

BASELINE_NOISE = 0.02
CRITICAL_GAIN = 1.3
CRITICAL_SPIKE_PROBABILITY = 0.1
CRITICAL_SPIKE_SCALE = 0.3
ABNORMAL_SPIKE_PROBABILITY = 0.05
ABNORMAL_SPIKE_SCALE = 0.2


class ECGWaveform:
    """
    Lazily synthesized ECG trace.

    Iterating yields ``len(self)`` amplitude samples; every ``iter()``
    starts a fresh pass. With a ``seed`` each pass replays the same
    noise, with an injected ``rng`` passes continue that generator's
    stream, and with neither every pass draws fresh noise.
    """

    def __init__(
        self,
        heart_rate: Number,
        risk_level: Union[ECGRiskLevel, str, None] = ECGRiskLevel.NORMAL,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
        duration_s: float = 3.0,
        sampling_rate: int = 250,
        phases: Tuple[WavePhase, ...] = ECG_PHASES,
    ):
        self.heart_rate = heart_rate
        self.risk_level = ECGRiskLevel(risk_level) if risk_level else ECGRiskLevel.NORMAL
        self.duration_s = duration_s
        self.sampling_rate = sampling_rate
        self.phases = phases
        self._rng = rng
        self._seed = seed

    def __len__(self) -> int:
        return int(round(self.duration_s * self.sampling_rate))

    @property
    def samples_per_cycle(self) -> Optional[float]:
        if not self.heart_rate or self.heart_rate <= 0:
            return None
        return self.sampling_rate / (self.heart_rate / 60)

    def cycle_position(self, index: int) -> Optional[float]:
        spc = self.samples_per_cycle
        if spc is None:
            return None
        return (index % spc) / spc

    def phase_at(self, index: int) -> Optional[WavePhase]:
        position = self.cycle_position(index)
        if position is None:
            return None
        for phase in self.phases:
            if phase.contains(position):
                return phase
        return None

    def clean_sample(self, index: int) -> float:
        """Noise-free amplitude before tier scaling."""
        phase = self.phase_at(index)
        if phase is None:
            return 0.0
        return phase.amplitude(self.cycle_position(index))

    def skeleton(self) -> np.ndarray:
        """The deterministic phase-shape skeleton for the whole trace."""
        return np.array([self.clean_sample(i) for i in range(len(self))], dtype=float)

    def _generator(self) -> np.random.Generator:
        if self._rng is not None:
            return self._rng
        return np.random.default_rng(self._seed)

    def __iter__(self) -> Iterator[float]:
        rng = self._generator()
        for i in range(len(self)):
            amplitude = self.clean_sample(i)
            amplitude += (rng.random() - 0.5) * BASELINE_NOISE

            if self.risk_level == ECGRiskLevel.CRITICAL:
                amplitude *= CRITICAL_GAIN
                if rng.random() < CRITICAL_SPIKE_PROBABILITY:
                    amplitude += (rng.random() - 0.5) * CRITICAL_SPIKE_SCALE
            elif self.risk_level == ECGRiskLevel.ABNORMAL:
                if rng.random() < ABNORMAL_SPIKE_PROBABILITY:
                    amplitude += (rng.random() - 0.5) * ABNORMAL_SPIKE_SCALE

            yield amplitude

    def to_array(self) -> np.ndarray:
        return np.fromiter(iter(self), dtype=float, count=len(self))

    def time_axis_ms(self) -> np.ndarray:
        return np.arange(len(self)) / self.sampling_rate * 1000.0


def synthesize_waveform(
    heart_rate: Number,
    risk_level: Union[ECGRiskLevel, str, None] = ECGRiskLevel.NORMAL,
    rng: Optional[np.random.Generator] = None,
    seed: Optional[int] = None,
    duration_s: float = 3.0,
    sampling_rate: int = 250,
) -> ECGWaveform:
    """Build a lazy waveform for display; no samples are computed here."""
    return ECGWaveform(
        heart_rate=heart_rate,
        risk_level=risk_level,
        rng=rng,
        seed=seed,
        duration_s=duration_s,
        sampling_rate=sampling_rate,
    )

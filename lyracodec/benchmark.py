"""Per-stage timing of the encode/decode pipeline on random audio."""

from __future__ import annotations

import logging
import math
import os
import random
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, TypeVar

from lyracodec import config
from lyracodec.components import VectorQuantizer

logger = logging.getLogger(__name__)

NUM_QUANTIZED_BITS = 120

STAGES = ("feature_extractor", "quantizer_quantize", "quantizer_decode", "model_decode")
TOTAL = "total"

_STATS_TEMPLATE = (
    "{title:>18}:  max: {max:5.3f} ms  min: {min:5.3f} ms  "
    "mean: {mean:5.3f} ms  stdev: {stdev:5.3f} ms"
)

_T = TypeVar("_T")


class _FeatureExtractor(Protocol):
    def extract(self, audio: Sequence[int]) -> Sequence[float] | None: ...


class _GenerativeModel(Protocol):
    def add_features(self, features: Sequence[float]) -> bool: ...

    def generate_samples(self, num_samples: int) -> Sequence[int] | None: ...


class BenchmarkError(RuntimeError):
    """Raised when a benchmark run cannot be completed."""


@dataclass(frozen=True)
class TimingStats:
    """Summary of a series of timings in microseconds."""

    max_microsecs: int
    mean_microsecs: int
    min_microsecs: int
    num_calls: int
    standard_deviation: float


def timing_stats(timings_microsecs: Sequence[int]) -> TimingStats:
    """Compute max, min, integer mean and standard deviation of the timings.

    The first timing is left out of the deviation, treating it as a warm-up call.
    """
    timings = [int(t) for t in timings_microsecs]
    if not timings:
        raise ValueError("At least one timing is needed.")
    num_calls = len(timings)
    total = sum(timings)
    mean = abs(total) // num_calls * (1 if total >= 0 else -1)
    variance = sum((t - mean) ** 2 // num_calls for t in timings[1:])
    return TimingStats(
        max_microsecs=max(timings),
        mean_microsecs=mean,
        min_microsecs=min(timings),
        num_calls=num_calls,
        standard_deviation=math.sqrt(variance),
    )


def format_stats(timings: Sequence[int], title: str) -> str:
    """Return a one-line summary of the timings in milliseconds."""
    stats = timing_stats(timings)
    return _STATS_TEMPLATE.format(
        title=title,
        max=stats.max_microsecs / 1000.0,
        min=stats.min_microsecs / 1000.0,
        mean=stats.mean_microsecs / 1000.0,
        stdev=stats.standard_deviation / 1000.0,
    )


def write_csv(
    timings: Sequence[int], title: str, output_dir: str | os.PathLike
) -> Path:
    """Write the timings to <output_dir>/<title>.csv and return its path."""
    directory = Path(output_dir)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{title}.csv"
    with path.open("w", encoding="utf-8") as csv:
        csv.write("Time(us)\n")
        csv.writelines(f"{int(t)}\n" for t in timings)
    return path


def _unit_to_int16(value: float) -> int:
    return int(round(min(max(value * 32768.0, -32768.0), 32767.0)))


def _timed(action: Callable[[], _T], timings: list[int]) -> _T:
    start = time.perf_counter_ns()
    result = action()
    timings.append((time.perf_counter_ns() - start) // 1000)
    return result


def run_benchmark(
    num_cond_vectors: int,
    feature_extractor: _FeatureExtractor | None = None,
    vector_quantizer: VectorQuantizer | None = None,
    model: _GenerativeModel | None = None,
    seed: int | None = 0,
) -> dict[str, list[int]]:
    """Run each given stage once per frame of random audio and time it.

    Stages given as None are replaced by zero-filled placeholders. Returns the
    timings in microseconds for every stage and for their per-frame total.
    """
    if num_cond_vectors <= 0:
        raise BenchmarkError("The number of conditioning vectors has to be positive.")

    hop = config.num_samples_per_hop(config.INTERNAL_SAMPLE_RATE_HZ)
    rng = random.Random(seed)
    timings: dict[str, list[int]] = {stage: [] for stage in STAGES}

    def extract(audio: list[int]) -> Sequence[float] | None:
        if feature_extractor is None:
            return [0.0] * config.NUM_FEATURES
        return feature_extractor.extract(audio)

    def quantize(features: list[float]) -> str | None:
        if vector_quantizer is None:
            return "0" * NUM_QUANTIZED_BITS
        return vector_quantizer.quantize(features, NUM_QUANTIZED_BITS)

    def decode(quantized: str) -> Sequence[float] | None:
        if vector_quantizer is None:
            return [0.0] * config.NUM_FEATURES
        return vector_quantizer.decode_to_lossy_features(quantized)

    def generate(lossy: list[float]) -> Sequence[int] | None:
        if model is None:
            return [0] * hop
        model.add_features(lossy)
        return model.generate_samples(hop)

    for _ in range(num_cond_vectors):
        audio = [_unit_to_int16(rng.uniform(-1.0, 1.0)) for _ in range(hop)]

        features = _timed(lambda: extract(audio), timings["feature_extractor"])
        if features is None:
            raise BenchmarkError("Could not create random features to give model.")
        feature_list = list(features)

        quantized = _timed(lambda: quantize(feature_list), timings["quantizer_quantize"])
        if quantized is None:
            raise BenchmarkError("Could not quantize features.")

        lossy = _timed(lambda: decode(quantized), timings["quantizer_decode"])
        if lossy is None:
            raise BenchmarkError("Could not decode to lossy features.")
        lossy_list = list(lossy)

        decoded = _timed(lambda: generate(lossy_list), timings["model_decode"])
        if decoded is None:
            raise BenchmarkError("Could not generate samples.")
        if len(decoded) != hop:
            raise BenchmarkError(
                f"Model generated {len(decoded)} but should have generated {hop}"
            )

    timings[TOTAL] = [sum(parts) for parts in zip(*(timings[s] for s in STAGES))]

    logger.info("For generating %d frames of audio:", num_cond_vectors)
    for title, values in timings.items():
        logger.info("%s", format_stats(values, title))
    return timings
import math

import pytest

from lyracodec import config
from lyracodec.benchmark import (
    NUM_QUANTIZED_BITS,
    STAGES,
    TOTAL,
    BenchmarkError,
    TimingStats,
    format_stats,
    run_benchmark,
    timing_stats,
    write_csv,
)
from lyracodec.components import VectorQuantizer

HOP = config.num_samples_per_hop(config.INTERNAL_SAMPLE_RATE_HZ)


class RecordingExtractor:
    def __init__(self, result="features"):
        self.calls = []
        self.result = result

    def extract(self, audio):
        self.calls.append(list(audio))
        if self.result is None:
            return None
        return [float(len(self.calls))] * config.NUM_FEATURES


class RecordingQuantizer(VectorQuantizer):
    def __init__(self, fail_quantize=False, fail_decode=False):
        self.quantize_calls = []
        self.decode_calls = []
        self.fail_quantize = fail_quantize
        self.fail_decode = fail_decode

    def quantize(self, features, num_bits):
        self.quantize_calls.append((list(features), num_bits))
        return None if self.fail_quantize else "1" * num_bits

    def decode_to_lossy_features(self, quantized_features):
        self.decode_calls.append(quantized_features)
        return None if self.fail_decode else [0.5] * config.NUM_FEATURES


class RecordingModel:
    def __init__(self, length=HOP):
        self.features = []
        self.requests = []
        self.length = length

    def add_features(self, features):
        self.features.append(list(features))
        return True

    def generate_samples(self, num_samples):
        self.requests.append(num_samples)
        if self.length is None:
            return None
        return [0] * self.length


def test_timing_stats_single_value():
    stats = timing_stats([5])
    assert stats == TimingStats(
        max_microsecs=5,
        mean_microsecs=5,
        min_microsecs=5,
        num_calls=1,
        standard_deviation=0.0,
    )


def test_timing_stats_constant_has_zero_deviation():
    stats = timing_stats([7, 7, 7, 7])
    assert stats.standard_deviation == 0.0
    assert stats.num_calls == 4


def test_timing_stats_bounds():
    stats = timing_stats([3, 9, 1, 12, 6])
    assert stats.max_microsecs == 12
    assert stats.min_microsecs == 1
    assert stats.min_microsecs <= stats.mean_microsecs <= stats.max_microsecs
    assert stats.standard_deviation > 0


def test_timing_stats_empty_raises():
    with pytest.raises(ValueError):
        timing_stats([])


def test_format_stats_title_is_right_aligned():
    line = format_stats([1000], "total")
    assert line.startswith(" " * 13 + "total:")
    assert "max: 1.000 ms" in line
    assert "stdev: 0.000 ms" in line


def test_write_csv_round_trip(tmp_path):
    out_dir = tmp_path / "nested" / "benchmarks"
    path = write_csv([10, 20, 30], "model_decode", out_dir)
    assert path == out_dir / "model_decode.csv"
    assert path.read_text().splitlines() == ["Time(us)", "10", "20", "30"]


def test_run_benchmark_without_components():
    timings = run_benchmark(4)
    assert set(timings) == set(STAGES) | {TOTAL}
    for values in timings.values():
        assert len(values) == 4
    for i in range(4):
        assert timings[TOTAL][i] == sum(timings[s][i] for s in STAGES)


@pytest.mark.parametrize("count", [0, -3])
def test_run_benchmark_rejects_non_positive(count):
    with pytest.raises(BenchmarkError):
        run_benchmark(count)


def test_run_benchmark_feeds_random_audio():
    extractor = RecordingExtractor()
    run_benchmark(3, feature_extractor=extractor, seed=7)
    assert len(extractor.calls) == 3
    for audio in extractor.calls:
        assert len(audio) == HOP
        assert all(-32768 <= s <= 32767 for s in audio)
        assert any(s != 0 for s in audio)
    assert extractor.calls[0] != extractor.calls[1]


def test_run_benchmark_is_reproducible_with_seed():
    first = RecordingExtractor()
    second = RecordingExtractor()
    run_benchmark(2, feature_extractor=first, seed=11)
    run_benchmark(2, feature_extractor=second, seed=11)
    assert first.calls == second.calls


def test_run_benchmark_pipeline_wiring():
    extractor = RecordingExtractor()
    quantizer = RecordingQuantizer()
    model = RecordingModel()
    run_benchmark(2, extractor, quantizer, model)
    assert [bits for _, bits in quantizer.quantize_calls] == [NUM_QUANTIZED_BITS] * 2
    assert quantizer.quantize_calls[1][0] == [2.0] * config.NUM_FEATURES
    assert quantizer.decode_calls == ["1" * NUM_QUANTIZED_BITS] * 2
    assert model.features == [[0.5] * config.NUM_FEATURES] * 2
    assert model.requests == [HOP, HOP]


def test_run_benchmark_extraction_failure():
    with pytest.raises(BenchmarkError, match="features"):
        run_benchmark(1, feature_extractor=RecordingExtractor(result=None))


def test_run_benchmark_quantize_failure():
    with pytest.raises(BenchmarkError, match="quantize"):
        run_benchmark(1, vector_quantizer=RecordingQuantizer(fail_quantize=True))


def test_run_benchmark_decode_failure():
    with pytest.raises(BenchmarkError, match="lossy"):
        run_benchmark(1, vector_quantizer=RecordingQuantizer(fail_decode=True))


def test_run_benchmark_model_failure():
    with pytest.raises(BenchmarkError, match="generate"):
        run_benchmark(1, model=RecordingModel(length=None))


def test_run_benchmark_wrong_sample_count():
    with pytest.raises(BenchmarkError, match="should have generated"):
        run_benchmark(1, model=RecordingModel(length=HOP - 1))


def test_stats_of_benchmark_timings_are_consistent():
    timings = run_benchmark(5)
    stats = timing_stats(timings[TOTAL])
    assert stats.num_calls == 5
    assert stats.min_microsecs <= stats.mean_microsecs <= stats.max_microsecs
    assert not math.isnan(stats.standard_deviation)
"""Encoder that turns 20 ms frames of audio into packets."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol

from lyracodec import config
from lyracodec.components import VectorQuantizer
from lyracodec.config import UnsupportedParamsError

DEFAULT_BITRATE = config.bitrate(config.supported_quantized_bits()[0])

Packer = Callable[[str, int], "bytes | None"]


class _FeatureExtractor(Protocol):
    def extract(self, audio: Sequence[int]) -> Sequence[float] | None: ...


class _Resampler(Protocol):
    def resample(self, audio: Sequence[int]) -> Sequence[int]: ...


class _NoiseEstimator(Protocol):
    def receive_samples(self, samples: Sequence[int]) -> bool: ...

    @property
    def is_noise(self) -> bool: ...


class EncodeError(RuntimeError):
    """Raised when a frame of audio cannot be encoded."""


def _pack_quantized(quantized: str, num_quantized_bits: int) -> bytes:
    """Pack header bits and a '0'/'1' string MSB first into a padded packet."""
    if len(quantized) != num_quantized_bits or set(quantized) - {"0", "1"}:
        raise EncodeError(
            f"Quantized features must be {num_quantized_bits} characters of "
            f"'0' or '1'."
        )
    size = config.packet_size(num_quantized_bits) if num_quantized_bits else 0
    bits = "0" * config.NUM_HEADER_BITS + quantized
    bits = bits.ljust(size * config.BITS_PER_BYTE, "0")
    return int(bits, 2).to_bytes(size, "big") if size else b""


class LyraEncoder:
    """Extracts features from audio frames and packs their quantized form."""

    def __init__(
        self,
        feature_extractor: _FeatureExtractor,
        vector_quantizer: VectorQuantizer,
        packer: Packer | None = None,
        sample_rate_hz: int = config.INTERNAL_SAMPLE_RATE_HZ,
        num_channels: int = config.NUM_CHANNELS,
        bitrate: int = DEFAULT_BITRATE,
        resampler: _Resampler | None = None,
        noise_estimator: _NoiseEstimator | None = None,
    ) -> None:
        if not config.is_sample_rate_supported(sample_rate_hz):
            raise UnsupportedParamsError(
                f"Sample rate {sample_rate_hz} Hz is not supported by codec."
            )
        if num_channels != config.NUM_CHANNELS:
            raise UnsupportedParamsError(
                f"Number of channels {num_channels} is not supported by codec. "
                f"It needs to be {config.NUM_CHANNELS}."
            )
        self._num_quantized_bits = self._bits_for(bitrate)
        if sample_rate_hz != config.INTERNAL_SAMPLE_RATE_HZ and resampler is None:
            raise ValueError(
                f"A resampler is needed for sample rate {sample_rate_hz} Hz."
            )
        self._feature_extractor = feature_extractor
        self._vector_quantizer = vector_quantizer
        self._packer: Packer = packer or _pack_quantized
        self._sample_rate_hz = sample_rate_hz
        self._num_channels = num_channels
        self._resampler = resampler
        self._noise_estimator = noise_estimator

    @staticmethod
    def _bits_for(bitrate: int) -> int:
        bits = config.bitrate_to_num_quantized_bits(bitrate)
        if bits is None:
            raise UnsupportedParamsError(
                f"Bitrate {bitrate} bps is not supported by codec."
            )
        return bits

    @property
    def sample_rate_hz(self) -> int:
        return self._sample_rate_hz

    @property
    def num_channels(self) -> int:
        return self._num_channels

    @property
    def bitrate(self) -> int:
        return config.bitrate(self._num_quantized_bits)

    @property
    def num_quantized_bits(self) -> int:
        return self._num_quantized_bits

    @property
    def frame_rate(self) -> int:
        return config.FRAME_RATE

    @property
    def dtx_enabled(self) -> bool:
        return self._noise_estimator is not None

    def set_bitrate(self, bitrate: int) -> None:
        """Switch to another supported bitrate; raise UnsupportedParamsError if not."""
        self._num_quantized_bits = self._bits_for(bitrate)

    def encode(self, audio: Sequence[int]) -> bytes:
        """Encode one frame of audio.

        Returns an empty packet when discontinuous transmission is enabled and
        the frame holds only background noise.
        """
        samples = list(audio)
        if self._resampler is not None and (
            self._sample_rate_hz != config.INTERNAL_SAMPLE_RATE_HZ
        ):
            samples = list(self._resampler.resample(samples))

        expected = config.num_samples_per_hop(config.INTERNAL_SAMPLE_RATE_HZ)
        if len(samples) != expected:
            raise EncodeError(
                f"The number of audio samples has to be exactly "
                f"{config.num_samples_per_hop(self._sample_rate_hz)}, but is "
                f"{len(audio)}."
            )

        if self._noise_estimator is not None:
            if not self._noise_estimator.receive_samples(samples):
                raise EncodeError("Unable to update encoder noise estimator.")
            if self._noise_estimator.is_noise:
                return b""

        features = self._feature_extractor.extract(samples)
        if features is None:
            raise EncodeError("Unable to extract features from audio hop.")
        quantized = self._vector_quantizer.quantize(
            list(features), self._num_quantized_bits
        )
        if quantized is None:
            raise EncodeError("Unable to quantize features.")
        packet = self._packer(quantized, self._num_quantized_bits)
        if packet is None:
            raise EncodeError("Unable to pack quantized features.")
        return bytes(packet)
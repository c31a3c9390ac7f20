"""Decoder that turns packets back into audio, with loss concealment and comfort noise."""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from enum import IntEnum
from typing import Protocol

from lyracodec import config
from lyracodec.components import VectorQuantizer
from lyracodec.config import UnsupportedParamsError

_CONCEALMENT_DURATION_MS = 80
_FADE_DURATION_MS = 40

Unpacker = Callable[[bytes, int], "str | None"]


class _GenerativeModel(Protocol):
    @property
    def num_samples_available(self) -> int: ...

    def add_features(self, features: Sequence[float]) -> bool: ...

    def generate_samples(self, num_samples: int) -> Sequence[int] | None: ...


class _NoiseEstimator(Protocol):
    @property
    def noise_estimate(self) -> Sequence[float]: ...

    def receive_samples(self, samples: Sequence[int]) -> bool: ...


class _FeatureEstimator(Protocol):
    def update(self, features: Sequence[float]) -> None: ...

    def estimate(self) -> Sequence[float]: ...


class _BufferedResampler(Protocol):
    def filter_and_buffer(
        self,
        decode: Callable[[int], Sequence[int]],
        num_samples: int,
    ) -> Sequence[int] | None: ...


class DecodeError(RuntimeError):
    """Raised when a packet cannot be read or samples cannot be produced."""


class FadeDirection(IntEnum):
    """Direction in which the fade between model output and comfort noise moves."""

    TO_CNG = 1
    FROM_CNG = -1


def _duration_samples(duration_ms: int) -> int:
    samples = config.INTERNAL_SAMPLE_RATE_HZ * duration_ms // 1000
    hop = config.num_samples_per_hop(config.INTERNAL_SAMPLE_RATE_HZ)
    if samples % hop != 0:
        raise RuntimeError(f"{samples} samples is not a whole number of hops.")
    return samples


def concealment_duration_samples() -> int:
    """Return how many samples of pure packet loss concealment are played."""
    return _duration_samples(_CONCEALMENT_DURATION_MS)


def fade_duration_samples() -> int:
    """Return how many samples a fade to or from comfort noise lasts."""
    return _duration_samples(_FADE_DURATION_MS)


def _num_samples_to_generate(
    num_samples_requested: int,
    samples_generated_so_far: int,
    concealment_progress: int,
    model_samples_available: int,
    cng_samples_available: int,
) -> int:
    hop = config.num_samples_per_hop(config.INTERNAL_SAMPLE_RATE_HZ)
    if concealment_progress < 0:
        # Finish playing out the remainder of the last fake packet.
        remaining = -concealment_progress
    elif concealment_progress < concealment_duration_samples():
        remaining = model_samples_available % hop
    else:
        remaining = cng_samples_available
    if remaining == 0:
        remaining = hop
    return min(num_samples_requested - samples_generated_so_far, remaining)


def _unpack_packet(encoded: bytes, num_quantized_bits: int) -> str:
    """Read the quantized bits, MSB first, that follow the header bits."""
    if len(encoded) != config.packet_size(num_quantized_bits):
        raise DecodeError(
            f"Packet of {len(encoded)} bytes cannot hold exactly "
            f"{num_quantized_bits} quantized bits."
        )
    bits = "".join(f"{byte:08b}" for byte in encoded)
    start = config.NUM_HEADER_BITS
    return bits[start : start + num_quantized_bits]


class LyraDecoder:
    """Decodes packets with a generative model and hides lost packets.

    When more samples are requested than received packets provide, the decoder
    first conceals the loss with estimated features, then fades to comfort noise.
    """

    def __init__(
        self,
        generative_model: _GenerativeModel,
        comfort_noise_generator: _GenerativeModel,
        vector_quantizer: VectorQuantizer,
        noise_estimator: _NoiseEstimator,
        feature_estimator: _FeatureEstimator,
        resampler: _BufferedResampler | None = None,
        unpacker: Unpacker | None = None,
        sample_rate_hz: int = config.INTERNAL_SAMPLE_RATE_HZ,
        num_channels: int = config.NUM_CHANNELS,
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
        if sample_rate_hz != config.INTERNAL_SAMPLE_RATE_HZ and resampler is None:
            raise ValueError(
                f"A resampler is needed for sample rate {sample_rate_hz} Hz."
            )
        self._generative_model = generative_model
        self._comfort_noise_generator = comfort_noise_generator
        self._vector_quantizer = vector_quantizer
        self._noise_estimator = noise_estimator
        self._feature_estimator = feature_estimator
        self._resampler = resampler
        self._unpacker: Unpacker = unpacker or _unpack_packet
        self._sample_rate_hz = sample_rate_hz
        self._num_channels = num_channels
        # Below zero: samples of a fake packet still to play before a received
        # one. Otherwise: samples since a received packet was last played.
        self._concealment_progress = 0
        # 0 means only model output, the fade duration means only comfort noise.
        self._fade_progress = 0
        self._fade_direction = FadeDirection.FROM_CNG

    @property
    def sample_rate_hz(self) -> int:
        return self._sample_rate_hz

    @property
    def num_channels(self) -> int:
        return self._num_channels

    @property
    def frame_rate(self) -> int:
        return config.FRAME_RATE

    @property
    def is_comfort_noise(self) -> bool:
        """Tell whether the decoder is producing only comfort noise."""
        return self._fade_progress == fade_duration_samples()

    def set_encoded_packet(self, encoded: bytes) -> None:
        """Parse a packet and queue its features for decoding."""
        encoded = bytes(encoded)
        num_quantized_bits = config.packet_size_to_num_quantized_bits(len(encoded))
        if num_quantized_bits is None:
            raise DecodeError(
                f"The packet size ({len(encoded)} bytes) is not supported."
            )
        unpacked = self._unpacker(encoded, num_quantized_bits)
        if unpacked is None:
            raise DecodeError("Could not read packet for decoding.")

        # Finish playing out any concealment or comfort noise packet first.
        if self._concealment_progress == concealment_duration_samples():
            self._concealment_progress = (
                -self._comfort_noise_generator.num_samples_available
            )
        elif self._concealment_progress > 0:
            self._concealment_progress = -self._generative_model.num_samples_available

        features = self._vector_quantizer.decode_to_lossy_features(unpacked)
        if features is None:
            raise DecodeError("Could not decode to lossy features.")
        features = list(features)
        if not self._generative_model.add_features(features):
            raise DecodeError("Could not add received features to generative model.")
        self._feature_estimator.update(features)

    def decode_samples(self, num_samples: int) -> list[int]:
        """Decode num_samples samples at the external sample rate."""
        if num_samples < 0:
            raise ValueError("num_samples must not be negative")
        if self._resampler is None:
            return self._decode_internal(num_samples)
        samples = self._resampler.filter_and_buffer(self._decode_internal, num_samples)
        if samples is None:
            raise DecodeError("Could not decode samples.")
        return list(samples)

    def _decode_internal(self, num_samples: int) -> list[int]:
        result: list[int] = []
        concealment_samples = concealment_duration_samples()
        fade_samples = fade_duration_samples()
        while len(result) < num_samples:
            hop = _num_samples_to_generate(
                num_samples,
                len(result),
                self._concealment_progress,
                self._generative_model.num_samples_available,
                self._comfort_noise_generator.num_samples_available,
            )
            is_packet_received = (
                self._generative_model.num_samples_available > 0
                and self._concealment_progress == 0
            )
            if is_packet_received:
                self._fade_direction = FadeDirection.FROM_CNG
            elif self._concealment_progress == concealment_samples:
                self._fade_direction = FadeDirection.TO_CNG
            else:
                self._concealment_progress += hop

            cng_count = hop
            model_count = hop
            next_fade = self._fade_progress + self._fade_direction * hop
            if (
                self._fade_direction is FadeDirection.TO_CNG
                and self._fade_progress == fade_samples
            ):
                next_fade = fade_samples
                model_count = 0
            elif (
                self._fade_direction is FadeDirection.FROM_CNG
                and self._fade_progress == 0
            ):
                next_fade = 0
                cng_count = 0

            audio = self._run_generative_model(model_count)
            comfort_noise = self._run_comfort_noise_generator(cng_count)
            result.extend(
                self._overlap(
                    self._fade_direction, self._fade_progress, audio, comfort_noise
                )
            )
            self._fade_progress = next_fade

            # Only received packets update the noise estimate, never concealment.
            if is_packet_received and not self._noise_estimator.receive_samples(audio):
                raise DecodeError("Could not update noise estimator on decoder output.")
        return result

    def _run_generative_model(self, num_samples: int) -> list[int]:
        model = self._generative_model
        if num_samples > 0 and model.num_samples_available == 0:
            if not model.add_features(self._feature_estimator.estimate()):
                raise DecodeError(
                    "Could not add estimated features to generative model."
                )
        samples = model.generate_samples(num_samples)
        if samples is None:
            raise DecodeError("Model could not be run on features.")
        return list(samples)

    def _run_comfort_noise_generator(self, num_samples: int) -> list[int]:
        generator = self._comfort_noise_generator
        if num_samples > 0 and generator.num_samples_available == 0:
            if not generator.add_features(self._noise_estimator.noise_estimate):
                raise DecodeError(
                    "Could not add noise estimate features to comfort noise generator."
                )
        samples = generator.generate_samples(num_samples)
        if samples is None:
            raise DecodeError("Could not generate comfort noise.")
        return list(samples)

    @staticmethod
    def _overlap(
        direction: FadeDirection,
        fade_progress: int,
        model_hop: list[int],
        noise_hop: list[int],
    ) -> list[int]:
        """Blend the two hops with a raised-cosine weight."""
        if not noise_hop:
            return model_hop
        if not model_hop:
            return noise_hop
        if len(model_hop) != len(noise_hop):
            raise DecodeError(
                f"Overlapped hop could not be computed because hop sizes differed. "
                f"Generative model hop size was {len(model_hop)} and comfort noise "
                f"hop size was {len(noise_hop)}."
            )
        fade_samples = fade_duration_samples()
        blended = []
        for model_sample, noise_sample in zip(model_hop, noise_hop):
            weight = (1.0 + math.cos(fade_progress * math.pi / fade_samples)) / 2.0
            blended.append(int(model_sample * weight + noise_sample * (1.0 - weight)))
            fade_progress += direction
        return blended
"""Fixed codec parameters and helpers that derive sizes and rates from them."""

from __future__ import annotations

import math
import os
from pathlib import Path

VERSION_MAJOR = 1
VERSION_MINOR = 3
VERSION_MICRO = 2

NUM_FEATURES = 64
NUM_MEL_BINS = 160
NUM_CHANNELS = 1
OVERLAP_FACTOR = 2
NUM_HEADER_BITS = 0
FRAME_RATE = 50  # Frames/packets sent per second.

SUPPORTED_SAMPLE_RATES = (8000, 16000, 32000, 48000)
INTERNAL_SAMPLE_RATE_HZ = 16000

BITS_PER_BYTE = 8
CONFIG_FILE_NAME = "lyra_config.binarypb"

_SUPPORTED_QUANTIZED_BITS = (64, 120, 184)
_ASSETS = ("quantizer.tflite", "lyragan.tflite", "soundstream_encoder.tflite")

_IDENTIFIER_FIELD = 1


class UnsupportedParamsError(ValueError):
    """Raised when codec parameters or model assets cannot be used."""


def version_string() -> str:
    """Return the version as "major.minor.micro"."""
    return f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_MICRO}"


def supported_quantized_bits() -> tuple[int, ...]:
    """Return the numbers of quantized bits per packet the codec supports."""
    return _SUPPORTED_QUANTIZED_BITS


def assets() -> tuple[str, ...]:
    """Return the names of the model files that must be present."""
    return _ASSETS


def num_samples_per_hop(sample_rate_hz: int) -> int:
    """Return the number of samples in one frame at the given rate."""
    if sample_rate_hz % FRAME_RATE != 0:
        raise ValueError(
            f"Sample rate {sample_rate_hz} Hz is not a multiple of the "
            f"frame rate {FRAME_RATE}."
        )
    return sample_rate_hz // FRAME_RATE


def num_samples_per_window(sample_rate_hz: int) -> int:
    """Return the number of samples in one analysis window."""
    return OVERLAP_FACTOR * num_samples_per_hop(sample_rate_hz)


def _packet_size_of(num_quantized_bits: int) -> int:
    return math.ceil((num_quantized_bits + NUM_HEADER_BITS) / BITS_PER_BYTE)


def _bitrate_of(num_quantized_bits: int) -> int:
    return _packet_size_of(num_quantized_bits) * BITS_PER_BYTE * FRAME_RATE


def packet_size(num_quantized_bits: int) -> int:
    """Return the packet size in bytes for the given number of quantized bits."""
    return _packet_size_of(num_quantized_bits)


def bitrate_to_packet_size(bitrate: int) -> int:
    """Return the packet size in bytes needed to carry the given bitrate."""
    return math.ceil(bitrate / (FRAME_RATE * BITS_PER_BYTE))


def bitrate(num_quantized_bits: int) -> int:
    """Return the bitrate in bps for the given number of quantized bits."""
    return _bitrate_of(num_quantized_bits)


def is_sample_rate_supported(sample_rate_hz: int) -> bool:
    """Tell whether the codec accepts the given sample rate."""
    return sample_rate_hz in SUPPORTED_SAMPLE_RATES


def packet_size_to_num_quantized_bits(packet_size: int) -> int | None:
    """Return the quantized bits matching a packet size, or None if unsupported."""
    return next(
        (
            bits
            for bits in _SUPPORTED_QUANTIZED_BITS
            if _packet_size_of(bits) == packet_size
        ),
        None,
    )


def bitrate_to_num_quantized_bits(bitrate: int) -> int | None:
    """Return the quantized bits matching a bitrate, or None if unsupported."""
    return next(
        (bits for bits in _SUPPORTED_QUANTIZED_BITS if _bitrate_of(bits) == bitrate),
        None,
    )


def _read_varint(data: bytes, pos: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise ValueError("truncated varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
        if shift >= 70:
            raise ValueError("varint too long")


def _parse_identifier(data: bytes) -> int:
    """Read the identifier field from a serialized configuration message."""
    identifier = 0
    pos = 0
    while pos < len(data):
        key, pos = _read_varint(data, pos)
        field, wire_type = key >> 3, key & 7
        if field == 0:
            raise ValueError("invalid field number 0")
        if wire_type == 0:
            value, pos = _read_varint(data, pos)
            if field == _IDENTIFIER_FIELD:
                value &= (1 << 64) - 1
                if value >= 1 << 63:
                    value -= 1 << 64
                identifier = value
        elif wire_type == 1:
            pos += 8
        elif wire_type == 2:
            length, pos = _read_varint(data, pos)
            pos += length
        elif wire_type == 5:
            pos += 4
        else:
            raise ValueError(f"unsupported wire type {wire_type}")
        if pos > len(data):
            raise ValueError("truncated message")
    return identifier


def _probe(path: Path) -> bool:
    try:
        return path.exists()
    except OSError as error:
        raise UnsupportedParamsError(
            f"Error when probing for asset {path}: {error}"
        ) from error


def check_params_supported(
    sample_rate_hz: int, num_channels: int, model_path: str | os.PathLike
) -> None:
    """Raise UnsupportedParamsError unless the parameters and model files are usable."""
    if not is_sample_rate_supported(sample_rate_hz):
        raise UnsupportedParamsError(
            f"Sample rate {sample_rate_hz} Hz is not supported by codec."
        )
    if num_channels != NUM_CHANNELS:
        raise UnsupportedParamsError(
            f"Number of channels {num_channels} is not supported by codec. "
            f"It needs to be {NUM_CHANNELS}."
        )
    model_dir = Path(model_path)
    for asset in _ASSETS:
        if not _probe(model_dir / asset):
            raise UnsupportedParamsError(
                f"Asset {asset} does not exist in {model_dir}."
            )
    config_path = model_dir / CONFIG_FILE_NAME
    identifier = 0
    if _probe(config_path):
        try:
            identifier = _parse_identifier(config_path.read_bytes())
        except (OSError, ValueError) as error:
            raise UnsupportedParamsError(
                f"Error when parsing {config_path}"
            ) from error
    if identifier != VERSION_MINOR:
        raise UnsupportedParamsError(
            f"Weights identifier ({identifier}) is not compatible with code "
            f"identifier ({VERSION_MINOR})."
        )
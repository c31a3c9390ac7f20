"""Interfaces and simple implementations of codec building blocks."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence


class VectorQuantizer(ABC):
    """Turns feature vectors into bit strings and back."""

    @abstractmethod
    def quantize(self, features: Sequence[float], num_bits: int) -> str:
        """Return a string of '0'/'1' characters of length num_bits for features."""

    @abstractmethod
    def decode_to_lossy_features(self, quantized_features: str) -> list[float]:
        """Return the lossy features that a bit string stands for."""


class ZeroFeatureEstimator:
    """Feature estimator that always predicts a vector of zeros."""

    def __init__(self, num_features: int) -> None:
        if num_features < 0:
            raise ValueError("num_features must not be negative")
        self._estimated = [0.0] * num_features

    def update(self, features: Sequence[float]) -> None:
        """Accept received features; this estimator ignores them."""

    def estimate(self) -> list[float]:
        """Return a fresh list with the estimated features."""
        return list(self._estimated)
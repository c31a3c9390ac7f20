"""Framing, packet-loss concealment and comfort-noise logic for a neural speech codec."""

__version__ = "1.3.2"

__all__ = ["benchmark", "components", "config", "decoder", "encoder"]
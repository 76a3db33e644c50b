"""PoseGate: angle-based pose condition tracking with a host message bridge."""

__version__ = "0.1.0"

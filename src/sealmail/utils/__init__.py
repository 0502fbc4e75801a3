"""Utility functions for sealmail."""

from .datetime_utils import from_epoch_ms, now_ms, to_base36
from .encoding import from_base64, from_hex, to_base64, to_hex, wipe

__all__ = [
    "from_base64",
    "from_epoch_ms",
    "from_hex",
    "now_ms",
    "to_base36",
    "to_base64",
    "to_hex",
    "wipe",
]

"""Memory image backends for calibration images."""

from elfcal.images.backend import MemoryBackend, TypedAccess
from elfcal.images.flat import FlatImage

__all__ = ["FlatImage", "MemoryBackend", "TypedAccess"]

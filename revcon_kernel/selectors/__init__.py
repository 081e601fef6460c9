"""Read-only selectors over the kernel models."""

from revcon_kernel.selectors.base import BaseSelector
from revcon_kernel.selectors.record_selector import RecordSelector

__all__ = ["BaseSelector", "RecordSelector"]

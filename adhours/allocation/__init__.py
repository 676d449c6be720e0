"""Fractional allocation of daily ad hours."""

from .engine import AllocationEngine
from .models import AllocationLine, AllocationSnapshot

__all__ = ["AllocationEngine", "AllocationLine", "AllocationSnapshot"]

"""Bid admission gate."""

from .controller import AdmissionController

__all__ = ["AdmissionController"]

"""Data module - file-backed persistence."""

from .storage import Storage, DisputeFilter

__all__ = ["Storage", "DisputeFilter"]

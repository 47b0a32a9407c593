"""Spectral indices for water and turbidity."""

from waterscan.indices.spectral import add_indices, compute_index

__all__ = ["compute_index", "add_indices"]

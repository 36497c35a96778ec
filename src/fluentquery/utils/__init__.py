"""Utility helpers for fluentquery."""

from fluentquery.utils.decorators import traced

__all__ = [
    "traced",
]

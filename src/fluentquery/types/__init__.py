"""Type definitions for fluentquery."""

from .base import FluentBaseModel

__all__ = [
    'FluentBaseModel',
]

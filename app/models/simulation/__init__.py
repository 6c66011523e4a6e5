"""
Projection run models.

Key Components:
- protocols: Protocol interfaces for the engine's collaborators
- config: Immutable run input and its fingerprint
- result: Snapshots, summary and the complete projection result
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .protocols import Allocator, Amortizer, RateResolver

__all__ = [
    "RateResolver",
    "Amortizer",
    "Allocator",
]

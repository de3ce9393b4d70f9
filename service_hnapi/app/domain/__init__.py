"""
Domain layer for the HN API proxy: item models, the tree fetcher, the
formatting pass and the read-through request policy.
"""

from .models import Item, ResolvedTree, UserProfile

__all__ = ["Item", "ResolvedTree", "UserProfile"]

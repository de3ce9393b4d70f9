"""
Adapters package for the HN API proxy.

Contains the ItemSource contract and its HTTP implementation against the
Hacker News origin. Adapters encapsulate base URLs, retry policies, circuit
breakers and the mapping of transport failures onto shared errors.
"""

from .item_source import ItemSource
from .hn_client import HackerNewsClient

__all__ = ["ItemSource", "HackerNewsClient"]

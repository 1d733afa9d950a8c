"""Lazy tool loading."""
from .loader import DefaultToolLoader, LoaderConfig
from .lru import LRUCache

__all__ = ["DefaultToolLoader", "LRUCache", "LoaderConfig"]

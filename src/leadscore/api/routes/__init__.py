from . import cache, health, scoring

__all__ = ["cache", "health", "scoring"]

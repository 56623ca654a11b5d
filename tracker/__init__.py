from .linear import LinearTracker

__all__ = ["LinearTracker"]

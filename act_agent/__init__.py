from .agent import ActAgent

__all__ = ["ActAgent"]

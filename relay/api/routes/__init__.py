from . import dispatch, system

__all__ = ["dispatch", "system"]

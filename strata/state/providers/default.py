"""
Default State Store on the local file system.
"""

__all__ = ["Default"]

from .local import Local


class Default(Local):
    pass

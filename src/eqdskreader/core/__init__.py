"""
Core modules for eqdskreader.
"""

from .content import Content

__all__ = ["Content"]

"""
Database models for the link shortener.

Links and their click events live in the same database so permanent
deletion of a link can take its analytics with it.
"""

from .link import ShortLink
from .click import ClickEvent

__all__ = ["ShortLink", "ClickEvent"]

"""
Gateway-owned routes. Business route groups are mounted from outside.
"""

from . import health

__all__ = ["health"]

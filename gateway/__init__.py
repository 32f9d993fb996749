"""
EV Transition Coach API gateway.

Applies a fixed chain of request policies and dispatches to route groups
mounted by path prefix.
"""

__version__ = "1.0.0"

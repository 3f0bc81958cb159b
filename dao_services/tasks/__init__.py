"""
Background tasks.

- ticker : DaemonTicker, the optional in-process periodic trigger for scans
"""

from .ticker import DaemonTicker

__all__ = ["DaemonTicker"]

"""Recap - watch-time accrual and engagement analytics for video tutorials."""

__version__ = "0.1.0"

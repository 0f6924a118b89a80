"""Paydown - incremental lint backlog selection engine."""

__version__ = "0.4.0"

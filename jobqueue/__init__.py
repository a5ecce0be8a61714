"""Durable asynchronous job queue and scheduler."""

__version__ = "1.0.0"

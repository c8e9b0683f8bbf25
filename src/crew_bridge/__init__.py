"""Subprocess invocation engine for delegating work to crew-agents targets."""

__version__ = "0.1.0"

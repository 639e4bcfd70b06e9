"""grok-talk: push-to-talk voice assistant for Grok."""

__version__ = "0.1.0"

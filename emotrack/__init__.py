"""Emotion tracking backend with the Rusty chat companion."""

__version__ = "0.1.0"

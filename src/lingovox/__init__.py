"""Lingovox: speech transcription, translation and synthesis client with local history."""

__version__ = "0.1.0"

__all__ = [
    "api",
    "audio",
    "features",
    "history",
    "identity",
    "languages",
    "notifications",
    "settings",
    "streaming",
]

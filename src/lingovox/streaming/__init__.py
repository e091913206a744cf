"""Real-time transcription of a live microphone session."""

from .assembler import CLOSING_PUNCTUATION, TranscriptAccumulator
from .queue import ChunkQueue, ChunkQueueEntry
from .session import SessionState, StreamingSession

__all__ = [
    "CLOSING_PUNCTUATION",
    "ChunkQueue",
    "ChunkQueueEntry",
    "SessionState",
    "StreamingSession",
    "TranscriptAccumulator",
]

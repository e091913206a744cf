"""Incremental transcript assembly for streamed chunk results."""

from __future__ import annotations

CLOSING_PUNCTUATION = frozenset(".,!?;:)}]")


class TranscriptAccumulator:
    """Joins chunk transcriptions into one running transcript.

    A single space separates chunks unless the transcript is empty, already
    ends in whitespace, or the new text starts with whitespace or closing
    punctuation. Whitespace-only text is ignored.
    """

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._tail = ""

    @property
    def text(self) -> str:
        return "".join(self._parts)

    @property
    def has_content(self) -> bool:
        return bool(self._parts)

    def append(self, text: str | None) -> bool:
        """Append one chunk result. Returns True when the transcript changed."""
        if not text or not text.strip():
            return False
        if (
            self._parts
            and not self._tail[-1:].isspace()
            and not text[0].isspace()
            and text[0] not in CLOSING_PUNCTUATION
        ):
            self._parts.append(" ")
        self._parts.append(text)
        self._tail = text
        return True

    def reset(self) -> None:
        self._parts.clear()
        self._tail = ""

    def __str__(self) -> str:
        return self.text

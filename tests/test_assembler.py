"""Tests for the transcript accumulator join rules."""

from __future__ import annotations

import pytest

from lingovox.streaming import TranscriptAccumulator


@pytest.fixture
def acc() -> TranscriptAccumulator:
    return TranscriptAccumulator()


def test_words_are_space_separated(acc: TranscriptAccumulator):
    acc.append("hello")
    acc.append("world")
    assert acc.text == "hello world"


@pytest.mark.parametrize("mark", list(".,!?;:)}]"))
def test_no_space_before_closing_punctuation(acc: TranscriptAccumulator, mark: str):
    acc.append("hello")
    acc.append(mark)
    assert acc.text == f"hello{mark}"


def test_leading_whitespace_is_not_doubled(acc: TranscriptAccumulator):
    for part in ("Hello", ",", " world"):
        acc.append(part)
    assert acc.text == "Hello, world"


def test_trailing_whitespace_is_not_doubled(acc: TranscriptAccumulator):
    acc.append("Hello ")
    acc.append("world")
    assert acc.text == "Hello world"


def test_first_fragment_gets_no_space(acc: TranscriptAccumulator):
    acc.append(",")
    assert acc.text == ","


@pytest.mark.parametrize("blank", ["", "   ", "\n\t", None])
def test_blank_text_is_ignored(acc: TranscriptAccumulator, blank):
    acc.append("hello")
    assert acc.append(blank) is False
    acc.append("world")
    assert acc.text == "hello world"


def test_reset(acc: TranscriptAccumulator):
    acc.append("hello")
    assert acc.has_content
    acc.reset()
    assert acc.text == ""
    assert not acc.has_content
    acc.append("again")
    assert acc.text == "again"

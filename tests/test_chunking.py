"""Tests for splitting long replies."""

import pytest

from wargame.chunking import MAX_MESSAGE_LENGTH, chunk_text


def test_short_text_is_one_chunk():
    assert chunk_text("hello") == ["hello"]


def test_empty_text():
    assert chunk_text("") == [""]


def test_exact_limit_is_not_split():
    text = "x" * MAX_MESSAGE_LENGTH
    assert chunk_text(text) == [text]


def test_splits_at_last_newline_before_limit():
    assert chunk_text("aaa\nbbb\ncc", max_length=8) == ["aaa\nbbb", "cc"]


def test_hard_cut_without_newline():
    assert chunk_text("abcdefghij", max_length=4) == ["abcd", "efgh", "ij"]


def test_every_chunk_fits():
    text = "\n".join(f"line {i} " + "y" * (i % 50) for i in range(500))
    chunks = chunk_text(text, max_length=200)
    assert all(len(c) <= 200 for c in chunks)
    assert "\n".join(chunks) == text


def test_default_limit_splits_long_narration():
    text = ("paragraph " * 100 + "\n") * 10
    chunks = chunk_text(text)
    assert len(chunks) == 3
    assert all(len(c) <= MAX_MESSAGE_LENGTH for c in chunks)


def test_invalid_limit():
    with pytest.raises(ValueError):
        chunk_text("abc", max_length=0)

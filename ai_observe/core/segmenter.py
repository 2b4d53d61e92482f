"""
Approximate token segmentation for display.

Splits text into a requested number of ordered, non-overlapping pieces so
a provider's token count can be drawn over the original text. This is not
a tokenizer: boundaries follow whitespace where possible and fall back to
even character slices when there are more tokens than words.
"""

import math
import re
from typing import List

_RUN_PATTERN = re.compile(r"\S+|\s+")


def placeholder_label(index: int) -> str:
    """Label shown for a slot that has no text of its own."""
    return f"Token {index}"


def segment(text: str, n: int) -> List[str]:
    """Partition text into exactly n display segments.

    Text is first split into whitespace and non-whitespace runs. When there
    are at least n runs, consecutive runs are grouped into n buckets, each
    taking ceil(remaining runs / remaining buckets). Otherwise the text is
    sliced by character count, backing off to the last internal whitespace
    so slices do not end mid-word. Empty segments become placeholder labels.

    Args:
        text: Text to segment
        n: Number of segments wanted

    Returns:
        List of exactly n strings (empty when n is 0)

    Raises:
        ValueError: If n is negative
    """
    if n < 0:
        raise ValueError("segment count cannot be negative")
    if n == 0:
        return []
    if not text:
        return [placeholder_label(i) for i in range(n)]

    runs = _RUN_PATTERN.findall(text)
    if n <= len(runs):
        return _group_runs(runs, n)
    return _slice_characters(text, n)


def _group_runs(runs: List[str], n: int) -> List[str]:
    segments = []
    run_index = 0
    for i in range(n):
        remaining_slots = n - i
        remaining_runs = len(runs) - run_index
        take = max(1, math.ceil(remaining_runs / remaining_slots))

        piece = "".join(runs[run_index:run_index + take]).strip()
        segments.append(piece or placeholder_label(i))
        run_index += take
    return segments


def _slice_characters(text: str, n: int) -> List[str]:
    segments = []
    char_index = 0
    length = len(text)
    for i in range(n):
        remaining_slots = n - i
        remaining_chars = length - char_index
        take = max(1, math.ceil(remaining_chars / remaining_slots))

        piece = text[char_index:char_index + take]

        # Back off to a word boundary unless this is the final slot
        if i < n - 1 and take > 1:
            end = char_index + take
            if end < length and not text[end].isspace() and piece and not piece[-1].isspace():
                cut = _last_whitespace(piece)
                if cut > 0:
                    piece = piece[:cut + 1]

        segments.append(piece.strip() or placeholder_label(i))
        char_index += len(piece)

        while char_index < length and text[char_index].isspace():
            char_index += 1
    return segments


def _last_whitespace(piece: str) -> int:
    for index in range(len(piece) - 1, -1, -1):
        if piece[index].isspace():
            return index
    return -1

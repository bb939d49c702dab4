"""Document segmenter - deterministic overlapping word windows."""

import re
from collections.abc import Iterable
from dataclasses import dataclass, replace

from backend.app.errors import InvalidArgumentError

DEFAULT_SEGMENT_SIZE = 500
DEFAULT_OVERLAP_SIZE = 50


@dataclass(frozen=True)
class TextSegment:
    """One window of words cut from a document."""

    content: str
    segment_index: int  # 0-based
    word_count: int
    page_number: int | None = None


def split_into_segments(
    text: str,
    segment_size: int = DEFAULT_SEGMENT_SIZE,
    overlap_size: int = DEFAULT_OVERLAP_SIZE,
) -> list[TextSegment]:
    """Split text into fixed-size, overlapping word windows.

    Pure function with no I/O. Window i covers tokens
    ``[start, start + segment_size)`` clipped to the input; the next window
    starts ``overlap_size`` tokens before the previous one ended. Iteration
    stops right after the window that reaches the last token, so the final
    segment may be short and there is never a trailing empty one.

    Args:
        text: Raw text to segment
        segment_size: Words per segment (default 500)
        overlap_size: Words shared by consecutive segments (default 50)

    Returns:
        Segments with local indices 0..k-1; empty for text with no words

    Raises:
        InvalidArgumentError: If segment_size <= 0 or overlap_size is not in
            [0, segment_size)
    """
    if segment_size <= 0:
        raise InvalidArgumentError("segment_size must be greater than 0")

    if overlap_size < 0 or overlap_size >= segment_size:
        raise InvalidArgumentError("overlap_size must be >= 0 and < segment_size")

    words = text.split()
    segments: list[TextSegment] = []

    start = 0
    while start < len(words):
        end = min(start + segment_size, len(words))
        window = words[start:end]

        segments.append(
            TextSegment(
                content=" ".join(window),
                segment_index=len(segments),
                word_count=len(window),
            )
        )

        if end >= len(words):
            break

        start = end - overlap_size

    return segments


def segment_text(
    text: str,
    segment_size: int = DEFAULT_SEGMENT_SIZE,
    overlap_size: int = DEFAULT_OVERLAP_SIZE,
) -> list[TextSegment]:
    """Segment an unpaginated document; segments carry no page number."""
    return split_into_segments(text, segment_size, overlap_size)


def segment_pages(
    pages: Iterable[str],
    segment_size: int = DEFAULT_SEGMENT_SIZE,
    overlap_size: int = DEFAULT_OVERLAP_SIZE,
) -> list[TextSegment]:
    """Segment a paginated document.

    Each page is segmented on its own (windows never span pages). Indices are
    renumbered globally across the document and every segment is tagged with
    its 1-based page number.
    """
    segments: list[TextSegment] = []

    for page_number, page_text in enumerate(pages, start=1):
        for segment in split_into_segments(page_text, segment_size, overlap_size):
            segments.append(
                replace(segment, segment_index=len(segments), page_number=page_number)
            )

    return segments


_EXTENSION_RE = re.compile(r"\.[^/.\s]+$")
_NON_SLUG_RE = re.compile(r"[^\w\s-]")
_SEPARATOR_RE = re.compile(r"[\s_-]+")


def generate_slug(title: str) -> str:
    """Derive the unique document slug from a title.

    "My Book (2nd ed.).pdf" -> "my-book-2nd-ed". Idempotent: the same title
    always maps to the same slug, and titles differing only in case or
    punctuation collide.

    Raises:
        InvalidArgumentError: If nothing slug-worthy is left
    """
    slug = _EXTENSION_RE.sub("", title).lower().strip()
    slug = _NON_SLUG_RE.sub("", slug)
    slug = _SEPARATOR_RE.sub("-", slug).strip("-")

    if not slug:
        raise InvalidArgumentError(f"Title {title!r} does not produce a usable slug")

    return slug

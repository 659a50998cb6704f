from typing import Iterator, List

BREAK_CHARS = (".", "\n")


def iter_text_chunks(text: str, max_size: int) -> Iterator[str]:
    """Streaming splitter: walks text in windows of max_size and yields stripped chunks, preferring to cut just after the last '.' or newline when that break lies past the window midpoint.
    Why available: Lets the summarizer map over long transcripts without truncating sentences in the middle."""
    if max_size <= 0:
        raise ValueError("max_size must be > 0")

    start = 0
    n = len(text)
    while start < n:
        end = start + max_size

        if end < n:
            # cutting just after a break at end - 1 keeps the chunk within max_size
            break_point = max(text.rfind(ch, start, end) for ch in BREAK_CHARS)
            if break_point > start + max_size * 0.5:
                end = break_point + 1

        chunk = text[start:end].strip()
        if chunk:
            yield chunk
        # end > start: either start + max_size or a break point past the midpoint
        start = end


def split_text(text: str, max_size: int) -> List[str]:
    """Split text into near-equal chunks of at most max_size characters (see iter_text_chunks). Returns [] for empty or whitespace-only text."""
    return list(iter_text_chunks(text or "", max_size))

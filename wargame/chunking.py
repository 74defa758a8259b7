"""Split long replies to fit chat message limits."""

MAX_MESSAGE_LENGTH = 4096  # Telegram's per-message cap


def chunk_text(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split `text` into pieces of at most `max_length` characters.

    Each cut is made at the last newline before the limit, and that newline
    is dropped. A stretch with no newline is cut hard at the limit.
    """
    if max_length < 1:
        raise ValueError("max_length must be positive")
    chunks: list[str] = []
    while len(text) > max_length:
        split = text.rfind("\n", 0, max_length + 1)
        if split <= 0:
            chunks.append(text[:max_length])
            text = text[max_length:]
        else:
            chunks.append(text[:split])
            text = text[split + 1:]
    chunks.append(text)
    return chunks

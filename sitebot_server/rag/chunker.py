"""Fixed-size document chunking."""


def chunk_text(text: str, size: int = 800) -> list[str]:
    """Split text into consecutive, non-overlapping slices of at most ``size`` characters.

    The slices cover the input exactly and keep its order; only the last one
    may be shorter. No sentence or word boundaries are considered.

    Args:
        text: Normalized document text
        size: Maximum characters per chunk

    Returns:
        List of chunk strings (empty for an empty input)

    Raises:
        ValueError: If size is not positive
    """
    if size <= 0:
        raise ValueError(f"Chunk size must be positive, got {size}")
    return [text[i : i + size] for i in range(0, len(text), size)]

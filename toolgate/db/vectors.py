"""Vector helpers shared by in-memory similarity search and pgvector stores."""

import math
from collections.abc import Sequence


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]; 0.0 for empty or mismatched vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b, strict=True))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 0.0
    return dot / norm


def to_pgvector(vector: Sequence[float] | None) -> str | None:
    """Text form accepted by a ::vector cast."""
    if vector is None:
        return None
    return "[" + ",".join(repr(float(x)) for x in vector) + "]"


def from_pgvector(value: object) -> list[float] | None:
    """Parse a pgvector column returned as text."""
    if value is None:
        return None
    if isinstance(value, list | tuple):
        return [float(x) for x in value]
    text = str(value).strip().strip("[]")
    if not text:
        return []
    return [float(x) for x in text.split(",")]

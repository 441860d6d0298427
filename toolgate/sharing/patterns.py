"""Key pattern matching for key/value shares."""


def matches(pattern: str, key: str) -> bool:
    """Exact match, or prefix match when the pattern ends with ``*``."""
    if pattern == key:
        return True
    return pattern.endswith("*") and key.startswith(pattern[:-1])


def any_match(patterns: list[str], key: str) -> bool:
    return any(matches(p, key) for p in patterns)

"""Version arithmetic, export extraction and slug helpers."""

import re

ENTRY_FILES = ("index.ts", "index.tsx", "index.js", "index.jsx")
SOURCE_PREFIX = "_source_"

# Candidates checked, in order, when re-deriving exports of a stored version.
STORED_ENTRY_CANDIDATES = (
    "_source_index.ts",
    "_source_index.tsx",
    "index.ts",
    "index.tsx",
    "index.js",
)

_EXPORT_FUNCTION = re.compile(r"export\s+(?:async\s+)?function\s+(\w+)")
_EXPORT_BINDING = re.compile(r"export\s+(?:const|let|var)\s+(\w+)\s*=")
_FUNCTION_SIGNATURE = re.compile(r"export\s+(?:async\s+)?function\s+(\w+)\s*\(([^)]*)\)")
_SLUG_STRIP = re.compile(r"[^a-z0-9]+")

DEFAULT_VERSION = "1.0.0"

# One to three numeric components, then an optional pre-release or build tag.
_VERSION = re.compile(r"^(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:[-+][0-9A-Za-z.-]+)?$")


def is_valid_version(value: str) -> bool:
    return _VERSION.match(value) is not None


def bump_version(current: str | None, explicit: str | None = None) -> str:
    """Explicit version if given, else the patch increment of current.

    Missing components count as zero, so "2.5" bumps to "2.5.1" and
    "2.0.0-beta" to "2.0.1".
    """
    if explicit:
        return explicit
    match = _VERSION.match(current or DEFAULT_VERSION)
    if match is None:
        raise ValueError(f"Cannot derive a version after {current!r}")
    major, minor, patch = (int(part or 0) for part in match.groups())
    return f"{major}.{minor}.{patch + 1}"


def extract_exports(source: str) -> list[str]:
    """Exported function and binding names, functions first."""
    names = _EXPORT_FUNCTION.findall(source)
    names += _EXPORT_BINDING.findall(source)
    return names


def extract_signatures(source: str) -> list[tuple[str, list[str]]]:
    """(name, parameter names) for each exported function declaration."""
    signatures = []
    for name, params in _FUNCTION_SIGNATURE.findall(source):
        parameter_names = []
        for raw in params.split(","):
            raw = raw.strip()
            if not raw:
                continue
            parameter_names.append(re.split(r"[?:=\s]", raw.lstrip("{[ "), maxsplit=1)[0] or raw)
        signatures.append((name, parameter_names))
    return signatures


def is_entry_file(path: str) -> bool:
    return path.rsplit("/", 1)[-1] in ENTRY_FILES


def slugify(value: str) -> str:
    slug = _SLUG_STRIP.sub("-", value.lower()).strip("-")
    return slug or "app"

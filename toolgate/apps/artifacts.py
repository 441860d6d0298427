"""Per-version artifacts: stored sources, skills.md, library entry and embedding.

Layout under the blob store:

    apps/{app_id}/{version}/<entry>             bundled entry (or raw source)
    apps/{app_id}/{version}/_source_<entry>     original entry source
    apps/{app_id}/{version}/<other files>
    apps/{app_id}/{version}/skills.md
    apps/{app_id}/{version}/library.txt
    apps/{app_id}/{version}/embedding.json
"""

import json

from pydantic import BaseModel

from toolgate.apps.models import App
from toolgate.apps.versioning import (
    SOURCE_PREFIX,
    STORED_ENTRY_CANDIDATES,
    extract_exports,
    extract_signatures,
    is_entry_file,
)
from toolgate.observability.logging import get_logger
from toolgate.providers.blob.base import BlobStore
from toolgate.providers.embedding.base import EmbeddingProvider

logger = get_logger(__name__)

ARTIFACT_FILES = ("skills.md", "library.txt", "embedding.json")


def version_prefix(app_id: str, version: str) -> str:
    return f"apps/{app_id}/{version}/"


class VersionArtifacts(BaseModel):
    """Documents generated for one stored version."""

    skills_md: str | None = None
    library_entry: str | None = None
    embedding: list[float] | None = None


def render_skills_md(name: str, description: str | None, source: str) -> str:
    lines = [f"# {name}", ""]
    if description:
        lines += [description, ""]
    lines += ["## Functions", ""]
    signatures = extract_signatures(source)
    known = {fn for fn, _ in signatures}
    for fn, params in signatures:
        lines.append(f"- `{fn}({', '.join(params)})`")
    for fn in extract_exports(source):
        if fn not in known:
            lines.append(f"- `{fn}`")
    return "\n".join(lines) + "\n"


def render_library_entry(app: App, source: str) -> str:
    lines = [f"## {app.name or app.slug}"]
    if app.description:
        lines.append(app.description)
    lines += ["", "Functions:"]
    for fn, params in extract_signatures(source):
        lines.append(f"- {fn}({', '.join(params)})")
    lines += ["", f"MCP: /mcp/{app.id}"]
    return "\n".join(lines)


def fallback_library_entry(app: App) -> str:
    return f"## {app.name or app.slug}\n{app.description or 'No description'}\nMCP: /mcp/{app.id}"


def embedding_text(app: App, source: str) -> str:
    functions = ", ".join(extract_exports(source))
    return f"{app.name}\n{app.description or ''}\nFunctions: {functions}".strip()


class ArtifactStore:
    """Reads and writes version artifacts in the blob store."""

    def __init__(self, blob: BlobStore, embedder: EmbeddingProvider | None) -> None:
        self._blob = blob
        self._embedder = embedder

    async def store_sources(
        self,
        app_id: str,
        version: str,
        entry_path: str,
        entry_code: str,
        files: dict[str, str],
    ) -> None:
        prefix = version_prefix(app_id, version)
        await self._blob.put_text(f"{prefix}{entry_path}", entry_code, "text/typescript")
        await self._blob.put_text(
            f"{prefix}{SOURCE_PREFIX}{entry_path}", files[entry_path], "text/typescript"
        )
        for path, content in files.items():
            if path != entry_path:
                await self._blob.put_text(f"{prefix}{path}", content)

    async def read_entry_source(self, app_id: str, version: str) -> str | None:
        """Source of a stored version, preferring the unbundled copy."""
        prefix = version_prefix(app_id, version)
        for name in (*STORED_ENTRY_CANDIDATES, "index.jsx"):
            code = await self._blob.get_text(f"{prefix}{name}")
            if code is not None:
                return code
        # Entry uploaded inside a folder
        for key in await self._blob.list_keys(prefix):
            relative = key[len(prefix):]
            if relative.startswith(SOURCE_PREFIX) and is_entry_file(relative):
                return await self._blob.get_text(key)
        return None

    async def read_sources(self, app_id: str, version: str) -> list[dict[str, str]]:
        """Source files of a version with internal artifacts and bundles removed."""
        prefix = version_prefix(app_id, version)
        keys = await self._blob.list_keys(prefix)
        relative = [k[len(prefix):] for k in keys]
        originals = {r[len(SOURCE_PREFIX):] for r in relative if r.startswith(SOURCE_PREFIX)}

        files = []
        for key, path in zip(keys, relative, strict=True):
            clean = path[len(SOURCE_PREFIX):] if path.startswith(SOURCE_PREFIX) else path
            if clean in ARTIFACT_FILES:
                continue
            if not path.startswith(SOURCE_PREFIX) and path in originals:
                continue
            content = await self._blob.get_text(key)
            if content is not None:
                files.append({"path": clean, "content": content})
        return files

    async def generate(self, app: App, version: str) -> VersionArtifacts:
        """Build and store skills.md, library.txt and embedding.json.

        Each step is best effort; a missing source yields empty artifacts.
        """
        source = await self.read_entry_source(app.id, version)
        if source is None:
            return VersionArtifacts()

        prefix = version_prefix(app.id, version)
        artifacts = VersionArtifacts(
            skills_md=render_skills_md(app.name or app.slug, app.description, source),
            library_entry=render_library_entry(app, source),
        )

        if self._embedder is not None:
            try:
                artifacts.embedding = await self._embedder.embed_single(
                    embedding_text(app, source)
                )
            except Exception as e:
                logger.warning("artifact_embedding_failed", app_id=app.id, error=str(e))

        try:
            await self._blob.put_text(f"{prefix}skills.md", artifacts.skills_md, "text/markdown")
            await self._blob.put_text(f"{prefix}library.txt", artifacts.library_entry)
            if artifacts.embedding is not None:
                await self._blob.put_text(
                    f"{prefix}embedding.json",
                    json.dumps(artifacts.embedding),
                    "application/json",
                )
        except Exception as e:
            logger.warning("artifact_store_failed", app_id=app.id, version=version, error=str(e))
        return artifacts

    async def load(self, app_id: str, version: str) -> VersionArtifacts:
        """Read previously generated artifacts; missing pieces stay None."""
        prefix = version_prefix(app_id, version)
        artifacts = VersionArtifacts()
        try:
            artifacts.skills_md = await self._blob.get_text(f"{prefix}skills.md")
            artifacts.library_entry = await self._blob.get_text(f"{prefix}library.txt")
            raw = await self._blob.get_text(f"{prefix}embedding.json")
            if raw:
                vector = json.loads(raw)
                if isinstance(vector, list):
                    artifacts.embedding = [float(x) for x in vector]
        except Exception as e:
            logger.warning("artifact_load_failed", app_id=app_id, version=version, error=str(e))
        return artifacts

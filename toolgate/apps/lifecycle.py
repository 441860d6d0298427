"""Version and visibility state machine for apps.

A publish against an existing app appends a version without moving the live
pointer; set_live moves it. Follow-up work (artifacts, library rebuild) is
best effort and never undoes the primary write.
"""

import base64
import binascii
import uuid
from typing import Any

from toolgate.apps.artifacts import ArtifactStore
from toolgate.apps.models import App, PricingSettings, RateLimitSettings, Visibility
from toolgate.apps.store import AppStore
from toolgate.apps.versioning import (
    DEFAULT_VERSION,
    bump_version,
    extract_exports,
    is_entry_file,
    is_valid_version,
    slugify,
)
from toolgate.content.library import LibraryBuilder
from toolgate.gateway.errors import forbidden, invalid_params, not_found, validation_error
from toolgate.gateway.sink import BestEffortSink
from toolgate.observability.logging import get_logger
from toolgate.providers.bundler.base import Bundler, SourceFile
from toolgate.users.store import UserStore

logger = get_logger(__name__)


def normalize_visibility(value: str | None) -> Visibility:
    """Parse a visibility argument; 'published' is an alias of public."""
    if value == "published":
        value = "public"
    try:
        return Visibility(value)
    except ValueError:
        raise invalid_params(
            'visibility must be one of "private", "unlisted", "public"'
        ) from None


def decode_files(files: Any) -> dict[str, str]:
    """Validate an uploaded file list into {path: text}."""
    if not files or not isinstance(files, list):
        raise invalid_params("files array is required and must not be empty")
    decoded: dict[str, str] = {}
    for item in files:
        if not isinstance(item, dict) or not item.get("path"):
            raise invalid_params("each file needs a path and content")
        content = item.get("content") or ""
        if item.get("encoding") == "base64":
            try:
                content = base64.b64decode(content, validate=True).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError) as e:
                raise invalid_params(f"Invalid base64 content for {item['path']}") from e
        decoded[item["path"]] = content
    return decoded


class BillingGate:
    """Economic precondition for making an app visible to others.

    Lookup failures let the owner through.
    """

    def __init__(self, users: UserStore, min_balance_cents: int = 0) -> None:
        self._users = users
        self._min_balance_cents = min_balance_cents

    async def can_publish(self, user_id: str) -> tuple[bool, str | None]:
        if self._min_balance_cents <= 0:
            return True, None
        try:
            user = await self._users.get(user_id)
        except Exception as e:
            logger.warning("billing_gate_lookup_failed", user_id=user_id, error=str(e))
            return True, None
        if user is None:
            return True, None
        if user.hosting_balance_cents >= self._min_balance_cents:
            return True, None
        return False, (
            f"Publishing requires a hosting balance of at least "
            f"{self._min_balance_cents} cents (current balance: "
            f"{user.hosting_balance_cents}). Add funds and try again."
        )


class AppLifecycle:
    """Publish, version pointer and per-app settings."""

    def __init__(
        self,
        apps: AppStore,
        artifacts: ArtifactStore,
        library: LibraryBuilder,
        billing: BillingGate,
        sink: BestEffortSink,
        bundler: Bundler | None = None,
    ) -> None:
        self._apps = apps
        self._artifacts = artifacts
        self._library = library
        self._billing = billing
        self._sink = sink
        self._bundler = bundler

    async def resolve_app(self, user_id: str, app_ref: str | None) -> App:
        """Find an app by id, then by the caller's slug, and require ownership."""
        if not app_ref:
            raise invalid_params("app_id is required")
        app = await self._apps.get(app_ref)
        if app is None:
            app = await self._apps.get_by_slug(app_ref, owner_id=user_id)
        if app is None:
            raise not_found(f"App not found: {app_ref}")
        if app.owner_id != user_id:
            raise forbidden("You do not own this app")
        return app

    async def find_app(self, app_ref: str | None) -> App:
        """Find any app by id or slug without an ownership check."""
        if not app_ref:
            raise invalid_params("app_id is required")
        app = await self._apps.get(app_ref) or await self._apps.get_by_slug(app_ref)
        if app is None:
            raise not_found(f"App not found: {app_ref}")
        return app

    async def publish(
        self,
        owner_id: str,
        files: Any,
        app_id: str | None = None,
        version: str | None = None,
        name: str | None = None,
        description: str | None = None,
        visibility: str | None = None,
    ) -> dict[str, Any]:
        sources = decode_files(files)
        requested = normalize_visibility(visibility or "private")

        entry_path = next((p for p in sources if is_entry_file(p)), None)
        if entry_path is None:
            raise validation_error("Must include an entry file (index.ts/tsx/js/jsx)")
        entry_source = sources[entry_path]
        exports = extract_exports(entry_source)
        bundled = await self._bundle(sources, entry_path)

        if app_id:
            return await self._publish_version(
                owner_id, app_id, version, sources, entry_path, bundled, exports
            )

        if requested != Visibility.PRIVATE:
            await self._require_publishable(owner_id)

        new_id = str(uuid.uuid4())
        display_name = name or _name_from_entry(entry_path) or f"app-{new_id[:8]}"
        slug = await self._unique_slug(owner_id, slugify(display_name))

        await self._artifacts.store_sources(new_id, DEFAULT_VERSION, entry_path, bundled, sources)
        app = await self._apps.create(
            App(
                id=new_id,
                slug=slug,
                name=display_name,
                description=description,
                owner_id=owner_id,
                visibility=requested,
                versions=[DEFAULT_VERSION],
                current_version=DEFAULT_VERSION,
                exports=exports,
            )
        )
        logger.info("app_created", app_id=app.id, owner_id=owner_id, exports=len(exports))

        skills_generated = await self._refresh_live_artifacts(app, DEFAULT_VERSION)
        self._sink.submit("library_rebuild", self._library.rebuild(owner_id))

        return {
            "app_id": app.id,
            "slug": app.slug,
            "version": DEFAULT_VERSION,
            "live_version": DEFAULT_VERSION,
            "is_live": True,
            "exports": exports,
            "skills_generated": skills_generated,
            "mcp_endpoint": f"/mcp/{app.id}",
        }

    async def _publish_version(
        self,
        owner_id: str,
        app_ref: str,
        explicit_version: str | None,
        sources: dict[str, str],
        entry_path: str,
        bundled: str,
        exports: list[str],
    ) -> dict[str, Any]:
        if explicit_version and not is_valid_version(explicit_version):
            raise invalid_params(
                f"Invalid version \"{explicit_version}\". Use MAJOR.MINOR.PATCH, e.g. 1.2.0."
            )
        app = await self.resolve_app(owner_id, app_ref)
        try:
            next_version = bump_version(app.current_version, explicit_version)
        except ValueError as e:
            raise validation_error(f"{e}. Pass an explicit version.") from e
        if next_version in app.versions:
            raise validation_error(
                f"Version {next_version} already exists. Use a different version."
            )

        await self._artifacts.store_sources(app.id, next_version, entry_path, bundled, sources)
        updated = await self._apps.append_version(app.id, next_version)
        if updated is None:
            raise validation_error(
                f"Version {next_version} already exists. Use a different version."
            )
        logger.info("app_version_added", app_id=app.id, version=next_version)

        skills_generated = False
        try:
            generated = await self._artifacts.generate(updated, next_version)
            skills_generated = generated.skills_md is not None
        except Exception as e:
            logger.warning("artifact_generation_failed", app_id=app.id, error=str(e))

        return {
            "app_id": app.id,
            "slug": app.slug,
            "version": next_version,
            "live_version": updated.current_version,
            "is_live": False,
            "exports": exports,
            "skills_generated": skills_generated,
            "message": f"Version {next_version} uploaded. Use set.version to make it live.",
        }

    async def set_live(
        self, owner_id: str, app_ref: str | None, version: str | None
    ) -> dict[str, Any]:
        app = await self.resolve_app(owner_id, app_ref)
        if not version:
            raise invalid_params("version is required")
        if version not in app.versions:
            raise validation_error(
                f"Version {version} does not exist. Available: {', '.join(app.versions)}"
            )

        exports = app.exports
        try:
            source = await self._artifacts.read_entry_source(app.id, version)
            if source is not None:
                exports = extract_exports(source) or app.exports
        except Exception as e:
            logger.warning("export_rederive_failed", app_id=app.id, version=version, error=str(e))

        updated = await self._apps.set_live_version(app.id, version, exports)
        if updated is None:
            raise validation_error(
                f"Version {version} does not exist. Available: {', '.join(app.versions)}"
            )
        logger.info(
            "app_live_version_changed",
            app_id=app.id,
            previous_version=app.current_version,
            live_version=version,
        )

        await self._reload_artifacts(updated, version)
        self._sink.submit("library_rebuild", self._library.rebuild(owner_id))

        return {
            "app_id": app.id,
            "previous_version": app.current_version,
            "live_version": version,
            "exports": exports,
        }

    async def set_visibility(
        self,
        owner_id: str,
        app_ref: str | None,
        visibility: str | None,
    ) -> dict[str, Any]:
        if not visibility:
            raise invalid_params("visibility is required")
        target = normalize_visibility(visibility)
        app = await self.resolve_app(owner_id, app_ref)
        previous = app.visibility

        if target != Visibility.PRIVATE:
            await self._require_publishable(owner_id)

        await self._apps.update_fields(app.id, {"visibility": target})

        if target == Visibility.PUBLIC and previous != Visibility.PUBLIC:
            try:
                loaded = await self._artifacts.load(app.id, app.current_version)
                if loaded.embedding is not None:
                    await self._apps.update_fields(app.id, {"embedding": loaded.embedding})
            except Exception as e:
                logger.warning("discovery_index_add_failed", app_id=app.id, error=str(e))
        elif target != Visibility.PUBLIC and previous == Visibility.PUBLIC:
            try:
                await self._apps.update_fields(app.id, {"embedding": None})
            except Exception as e:
                logger.warning("discovery_index_remove_failed", app_id=app.id, error=str(e))

        logger.info(
            "app_visibility_changed",
            app_id=app.id,
            previous_visibility=previous.value,
            visibility=target.value,
        )
        return {
            "app_id": app.id,
            "previous_visibility": previous.value,
            "visibility": target.value,
        }

    async def set_download(
        self, owner_id: str, app_ref: str | None, access: str | None
    ) -> dict[str, Any]:
        if access not in ("owner", "public"):
            raise invalid_params('access must be "owner" or "public"')
        app = await self.resolve_app(owner_id, app_ref)
        await self._apps.update_fields(app.id, {"download_access": access})
        return {"app_id": app.id, "download_access": access}

    async def set_binding(
        self,
        owner_id: str,
        app_ref: str | None,
        server_name: str | None,
    ) -> dict[str, Any]:
        app = await self.resolve_app(owner_id, app_ref)
        if server_name is None:
            await self._apps.update_fields(app.id, {"external_binding": None})
            return {
                "app_id": app.id,
                "external_binding": None,
                "message": "External service binding removed",
            }
        if not isinstance(server_name, str) or not server_name.strip():
            raise invalid_params("server_name must be a non-empty string or null")
        await self._apps.update_fields(app.id, {"external_binding": server_name.strip()})
        return {
            "app_id": app.id,
            "external_binding": server_name.strip(),
            "message": f'Bound to external service "{server_name.strip()}"',
        }

    async def set_ratelimit(
        self,
        owner_id: str,
        app_ref: str | None,
        calls_per_minute: int | None = None,
        calls_per_day: int | None = None,
    ) -> dict[str, Any]:
        app = await self.resolve_app(owner_id, app_ref)
        if calls_per_minute is not None and not 1 <= calls_per_minute <= 10_000:
            raise validation_error("calls_per_minute must be between 1 and 10000")
        if calls_per_day is not None and not 1 <= calls_per_day <= 1_000_000:
            raise validation_error("calls_per_day must be between 1 and 1000000")

        config = None
        if calls_per_minute is not None or calls_per_day is not None:
            config = RateLimitSettings(
                calls_per_minute=calls_per_minute, calls_per_day=calls_per_day
            )
        await self._apps.update_fields(app.id, {"rate_limit_config": config})

        if config is None:
            message = "Rate limits removed. Using platform defaults."
        else:
            per_minute = f"{calls_per_minute}/min" if calls_per_minute else "default"
            per_day = f"{calls_per_day}/day" if calls_per_day else "unlimited/day"
            message = f"Rate limit set: {per_minute}, {per_day}"
        return {
            "app_id": app.id,
            "rate_limit_config": config.model_dump(exclude_none=True) if config else None,
            "message": message,
        }

    async def set_pricing(
        self,
        owner_id: str,
        app_ref: str | None,
        default_price_cents: int | None = None,
        functions: dict[str, int] | None = None,
    ) -> dict[str, Any]:
        app = await self.resolve_app(owner_id, app_ref)
        if default_price_cents is not None and default_price_cents < 0:
            raise validation_error("default_price_cents must be a non-negative integer")
        for fn, price in (functions or {}).items():
            if not isinstance(price, int) or price < 0:
                raise validation_error(f"Price for {fn} must be a non-negative integer")
            if app.exports and fn not in app.exports:
                raise validation_error(f"Unknown function: {fn}")

        config = None
        if default_price_cents is not None or functions:
            config = PricingSettings(
                default_price_cents=default_price_cents or 0,
                functions=dict(functions or {}),
            )
        await self._apps.update_fields(app.id, {"pricing_config": config})
        return {
            "app_id": app.id,
            "pricing_config": config.model_dump() if config else None,
            "message": "Pricing updated" if config else "Pricing removed. Calls are free.",
        }

    async def fetch_source(
        self,
        user_id: str,
        app_ref: str | None,
        version: str | None = None,
    ) -> dict[str, Any]:
        app = await self.find_app(app_ref)
        if app.owner_id != user_id and app.download_access != "public":
            raise forbidden("Source code download not allowed for this app")
        selected = version or app.current_version
        if selected not in app.versions:
            raise validation_error(
                f"Version {selected} does not exist. Available: {', '.join(app.versions)}"
            )
        files = await self._artifacts.read_sources(app.id, selected)
        return {
            "app_id": app.id,
            "name": app.name,
            "version": selected,
            "files": files,
            "file_count": len(files),
        }

    async def _bundle(self, sources: dict[str, str], entry_path: str) -> str:
        """Bundled entry code, or the raw entry source if bundling fails."""
        raw = sources[entry_path]
        if self._bundler is None:
            return raw
        try:
            result = await self._bundler.bundle(
                [SourceFile(path=p, content=c) for p, c in sources.items()], entry_path
            )
        except Exception as e:
            logger.warning("bundle_failed", entry_point=entry_path, error=str(e))
            return raw
        if result.success and result.code:
            return result.code
        logger.warning("bundle_unsuccessful", entry_point=entry_path, errors=result.errors[:3])
        return raw

    async def _require_publishable(self, owner_id: str) -> None:
        allowed, reason = await self._billing.can_publish(owner_id)
        if not allowed:
            raise forbidden(reason or "Publishing is not available for this account")

    async def _unique_slug(self, owner_id: str, base: str) -> str:
        slug = base
        suffix = 2
        while await self._apps.get_by_slug(slug, owner_id=owner_id) is not None:
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    async def _refresh_live_artifacts(self, app: App, version: str) -> bool:
        """Generate artifacts for the live version and copy them onto the app."""
        try:
            generated = await self._artifacts.generate(app, version)
        except Exception as e:
            logger.warning("artifact_generation_failed", app_id=app.id, error=str(e))
            return False
        fields: dict[str, Any] = {}
        if generated.skills_md is not None:
            fields["skills_md"] = generated.skills_md
        if generated.embedding is not None:
            fields["embedding"] = generated.embedding
        if fields:
            try:
                await self._apps.update_fields(app.id, fields)
            except Exception as e:
                logger.warning("artifact_attach_failed", app_id=app.id, error=str(e))
        return generated.skills_md is not None

    async def _reload_artifacts(self, app: App, version: str) -> None:
        loaded = await self._artifacts.load(app.id, version)
        fields: dict[str, Any] = {}
        if loaded.skills_md is not None:
            fields["skills_md"] = loaded.skills_md
        if loaded.embedding is not None:
            fields["embedding"] = loaded.embedding
        if not fields:
            return
        try:
            await self._apps.update_fields(app.id, fields)
        except Exception as e:
            logger.warning("artifact_reload_failed", app_id=app.id, version=version, error=str(e))


def _name_from_entry(entry_path: str) -> str | None:
    parts = entry_path.split("/")
    return parts[-2] if len(parts) > 1 else None

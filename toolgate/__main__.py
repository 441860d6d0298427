"""``python -m toolgate``: serve the gateway with uvicorn using [api] settings."""

import uvicorn

from toolgate.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "toolgate.api.app:app",
        host=settings.api.host,
        port=settings.api.port,
        workers=1 if settings.debug else settings.api.workers,
        reload=settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    main()

"""Run the migrun API server: python -m migrun."""

import uvicorn

from migrun.config import get_settings


def main() -> None:
    """Start uvicorn with the configured host, port and workers."""
    settings = get_settings()
    uvicorn.run(
        "migrun.api.app:create_app",
        factory=True,
        host=settings.api.host,
        port=settings.api.port,
        workers=settings.api.workers,
    )


if __name__ == "__main__":
    main()

"""Entrypoint: python -m communication_service"""
from __future__ import annotations

import uvicorn

from communication_service.config import settings


def main() -> None:
    uvicorn.run(
        "communication_service.app:create_app",
        factory=True,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()

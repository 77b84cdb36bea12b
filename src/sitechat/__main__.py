"""Launch the SiteChat API with uvicorn (``python -m src.sitechat``)."""

from __future__ import annotations

import logging

import uvicorn

from .core.settings import get_settings

logger = logging.getLogger("sitechat")


def main() -> None:
    settings = get_settings()
    kwargs = {}
    if settings.tls_enabled:
        kwargs["ssl_keyfile"] = settings.tls_key
        kwargs["ssl_certfile"] = settings.tls_cert
    elif settings.tls_key or settings.tls_cert:
        logger.warning("tls_incomplete_serving_plain_http")
    logger.info(
        "server_starting",
        extra={"host": settings.host, "port": settings.port, "tls": settings.tls_enabled},
    )
    uvicorn.run("src.sitechat.api.main:app", host=settings.host, port=settings.port, **kwargs)


if __name__ == "__main__":
    main()

"""Startup script for the stock and orders services with graceful shutdown."""

import uvicorn

from privgate_proxy.dependencies import get_settings

APP_FACTORIES = {
    "stock": "privgate_proxy.main:create_stock_app",
    "orders": "privgate_proxy.orders_main:create_orders_app",
}


def main() -> None:
    """Start the service named by PRIVGATE_SERVICE."""
    settings = get_settings()

    # Configure uvicorn with graceful shutdown
    config = uvicorn.Config(
        APP_FACTORIES[settings.service],
        factory=True,
        host=settings.host,
        port=settings.port,
        timeout_graceful_shutdown=settings.shutdown_timeout_seconds,
        log_level=settings.log_level.lower(),
    )

    server = uvicorn.Server(config)
    server.run()


if __name__ == "__main__":
    main()

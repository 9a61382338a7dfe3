"""
autoflow API entry point
"""
import uvicorn

from autoflow.config import Settings, configure_logging


if __name__ == "__main__":
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    uvicorn.run(
        "autoflow.api:build_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower()
    )

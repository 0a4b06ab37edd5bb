"""Run the form submissions back office API with uvicorn."""
import uvicorn

from backoffice.config import Settings, settings


def banner(config: Settings) -> list[str]:
    """Startup lines describing the import and normalization setup."""
    return [
        f"Starting {config.app_name} v{config.version}",
        f"Import source: {config.imports.source}",
        f"Normalization: concurrency={config.normalization.concurrency}, "
        f"upsert batch={config.normalization.upsert_batch_size}",
        "-" * 50,
    ]


if __name__ == "__main__":
    for line in banner(settings):
        print(line)

    uvicorn.run(
        "backoffice.api:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        reload_dirs=["backoffice", "config"] if settings.debug else None,
        log_level=settings.logging.level.lower(),
    )

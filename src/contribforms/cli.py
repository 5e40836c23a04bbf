from __future__ import annotations

import typer

from contribforms.config import Settings, configure_logging

cli = typer.Typer(add_completion=False, help="Registration forms for the contribution program.")


@cli.command()
def serve(
    host: str | None = typer.Option(None, help="Address to bind (default: HOST)"),
    port: int | None = typer.Option(None, help="Port to bind (default: PORT)"),
    reload: bool = typer.Option(False, help="Restart on code changes"),
) -> None:
    """Run the web application."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "contribforms.app:create_app",
        factory=True,
        host=host or settings.host,
        port=port if port is not None else settings.port,
        log_level=settings.log_level.lower(),
        reload=reload,
    )


@cli.command("init-store")
def init_store() -> None:
    """Create the data directories and the configured store."""
    from contribforms.storage import init_storage

    settings = Settings()
    configure_logging(settings)
    init_storage(settings)
    location = settings.json_path if settings.storage_backend == "json" else settings.sqlite_path
    typer.echo(f"{settings.storage_backend} store ready at {location}")


if __name__ == "__main__":
    cli()

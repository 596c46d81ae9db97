"""Top-level CLI entrypoint for Warden."""
import click
from aiohttp import web

from .conf import WARDEN_HOST, WARDEN_PORT


@click.group()
def cli():
    """Warden command-line interface."""
    pass


@cli.command()
@click.option("--host", default=WARDEN_HOST, show_default=True, help="Host to bind to.")
@click.option("--port", default=WARDEN_PORT, type=int, show_default=True, help="Port to bind to.")
def serve(host: str, port: int) -> None:
    """Run the Warden API server.

    Example:

        warden serve --host 127.0.0.1 --port 8080
    """
    from .app import create_app

    click.echo(f"Starting Warden API server on {host}:{port}")
    web.run_app(create_app(), host=host, port=port)


@cli.command()
def routes() -> None:
    """List the HTTP routes served by the API."""
    from .app import create_app

    app = create_app()
    for route in app.router.routes():
        info = route.resource.get_info() if route.resource else {}
        path = info.get("path") or info.get("formatter", "")
        click.echo(f"{route.method:<6} {path}")


if __name__ == "__main__":
    cli()

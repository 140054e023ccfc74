"""Command line interface for the guestbook."""
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from .auth import create_user as create_user_account
from .config.configuration import GuestbookConfiguration, load_config
from .error.exceptions import GuestbookError
from .services import Services, build_services
from .utils.logging import configure_logging

logger = logging.getLogger(__name__)

# Initialize Typer app
app = typer.Typer(help="Guestbook CLI")

# Initialize Rich console
console = Console()


def _load(config_path: Optional[Path]) -> GuestbookConfiguration:
    try:
        config = load_config(str(config_path) if config_path else None)
    except GuestbookError as e:
        console.print(f"[bold red]{e.message}[/bold red]")
        raise typer.Exit(code=1)
    configure_logging(config)
    return config


def _services(config: GuestbookConfiguration) -> Services:
    try:
        return build_services(config)
    except GuestbookError as e:
        console.print(f"[bold red]{e.message}[/bold red]")
        raise typer.Exit(code=1)


@app.command("init-db")
def init_db(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file")
):
    """Create the database tables."""
    services = _services(_load(config_path))
    try:
        services.database.initialize()
        console.print(f"[bold green]Initialized database {services.config.database_url}[/bold green]")
    except GuestbookError as e:
        console.print(f"[bold red]{e.message}[/bold red]")
        raise typer.Exit(code=1)
    finally:
        services.close()


@app.command("create-user")
def create_user(
    username: str = typer.Argument(..., help="Username of the new account"),
    password: Optional[str] = typer.Option(None, "--password", "-p", help="Password; prompted for when omitted"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file")
):
    """Create a user account."""
    services = _services(_load(config_path))
    if password is None:
        password = Prompt.ask("Password", password=True)

    try:
        services.database.initialize()
        db_session = services.database.checkout()
        try:
            user = create_user_account(services.database.collection(db_session, "users"), username, password)
        finally:
            db_session.close()
        console.print(f"[bold green]Created user {user.username} (id {user.id})[/bold green]")
    except GuestbookError as e:
        console.print(f"[bold red]{e.message}[/bold red]")
        raise typer.Exit(code=1)
    finally:
        services.close()


@app.command("check-templates")
def check_templates(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file")
):
    """Compile every page template and report the names each one defines."""
    services = _services(_load(config_path))
    templates = services.templates

    table = Table(title=f"Templates in {templates.template_dir}")
    table.add_column("Page", style="cyan")
    table.add_column("Defined templates")
    table.add_column("Status")

    failed = False
    for page in templates.pages():
        try:
            compiled = templates.get(page)
            table.add_row(page, ", ".join(compiled.defined_templates()), "[green]ok[/green]")
        except GuestbookError as e:
            failed = True
            table.add_row(page, "", f"[red]{e.message}[/red]")

    console.print(table)
    services.close()
    if failed:
        raise typer.Exit(code=1)


@app.command("serve")
def serve(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
    host: Optional[str] = typer.Option(None, "--host", help="Interface to listen on"),
    port: Optional[int] = typer.Option(None, "--port", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Restart when source files change")
):
    """Run the development server."""
    from werkzeug.serving import run_simple

    from .app import GuestbookApp

    config = _load(config_path)
    services = _services(config)
    services.database.initialize()
    services.templates.check()

    application = GuestbookApp(services=services)
    host = host or config.host
    port = port or config.port
    console.print(f"[bold blue]Serving guestbook on http://{host}:{port}[/bold blue]")
    try:
        run_simple(host, port, application, use_reloader=reload, threaded=True)
    finally:
        services.close()


if __name__ == "__main__":
    app()

"""Pointboard CLI - operator entry point."""

from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager

import typer
from rich.console import Console
from rich.table import Table

from .config import settings

app = typer.Typer(
    name="pointboard",
    help="Pointboard - task submission and point rewards",
    no_args_is_help=True,
)
console = Console()

db_app = typer.Typer(help="Database schema commands")
app.add_typer(db_app, name="db")


@asynccontextmanager
async def _session():
    """A session on a private engine, disposed when the command ends."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

    engine = create_async_engine(settings.database_url, echo=settings.echo_sql)
    try:
        factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with factory() as session:
            yield session
    finally:
        await engine.dispose()


def _alembic_config():
    from alembic.config import Config

    return Config(str(settings.base_dir / "alembic.ini"))


@app.command("serve")
def serve(
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
    host: str = typer.Option("127.0.0.1", "--host", help="Host to bind to"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the Pointboard API server."""
    import uvicorn

    console.print(f"[bold cyan]Starting Pointboard at http://{host}:{port}[/bold cyan]")
    uvicorn.run("pointboard.app:app", host=host, port=port, reload=reload)


@db_app.command("upgrade")
def db_upgrade(revision: str = typer.Argument("head", help="Target revision")):
    """Apply migrations up to REVISION."""
    from alembic import command

    command.upgrade(_alembic_config(), revision)
    console.print(f"[green]Database upgraded to {revision}[/green]")


@db_app.command("downgrade")
def db_downgrade(revision: str = typer.Argument(..., help="Target revision, e.g. base")):
    """Revert migrations down to REVISION."""
    from alembic import command

    command.downgrade(_alembic_config(), revision)
    console.print(f"[yellow]Database downgraded to {revision}[/yellow]")


@app.command("create-admin")
def create_admin(
    username: str = typer.Argument(..., help="Admin username"),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, confirmation_prompt=True,
        help="Admin password (prompted when omitted)",
    ),
):
    """Create an admin account."""
    from .errors import ValidationError
    from .models.user import Role
    from .services import auth_svc

    async def _create():
        async with _session() as db:
            return await auth_svc.register_user(db, username, password, role=Role.ADMIN)

    try:
        user = asyncio.run(_create())
    except ValidationError as exc:
        console.print(f"[red]{exc.detail}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Created admin {user.username}[/green] [dim]({user.id})[/dim]")


@app.command("leaderboard")
def leaderboard(
    limit: int = typer.Option(10, "--limit", "-n", help="Number of entries"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
):
    """Show the top users by points."""
    from .services import stats_svc

    async def _load():
        async with _session() as db:
            return await stats_svc.get_leaderboard(db, limit=limit)

    entries = asyncio.run(_load())
    if json_output:
        rows = [
            {"rank": e.rank, "username": e.username, "total_points": e.total_points}
            for e in entries
        ]
        console.print_json(json.dumps(rows))
        return

    if not entries:
        console.print("[dim]No users yet.[/dim]")
        return

    table = Table(title="Leaderboard")
    table.add_column("Rank", justify="right")
    table.add_column("Username", style="cyan")
    table.add_column("Points", justify="right", style="green")
    for e in entries:
        table.add_row(str(e.rank), e.username, str(e.total_points))
    console.print(table)


if __name__ == "__main__":
    app()

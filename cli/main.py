import asyncio
import uuid

import typer
import uvicorn

from backend.app.config import settings

app = typer.Typer(help="FeatureBoard - feature request voting and triage")


@app.command()
def start(reload: bool = typer.Option(False, help="Reload on code changes")) -> None:
    """Start the FeatureBoard API server."""
    typer.echo("Starting FeatureBoard...")
    uvicorn.run(
        "backend.app.main:app",
        host=settings.host,
        port=settings.port,
        reload=reload,
    )


@app.command("init-db")
def init_db_command() -> None:
    """Create the database schema."""
    from backend.app.db import init_db

    asyncio.run(init_db())
    typer.echo(f"Database ready at {settings.db_path}")


@app.command("add-user")
def add_user(
    name: str,
    email: str | None = typer.Option(None, help="Unique e-mail address"),
    admin: bool = typer.Option(False, "--admin", help="Grant admin rights"),
) -> None:
    """Register a user and print the id the gateway should forward."""
    from backend.app.db import async_session, init_db
    from backend.app.models.enums import Role
    from backend.app.models.user import User
    from backend.app.services.request_store import utcnow

    async def _add() -> str:
        await init_db()
        async with async_session() as session:
            user = User(
                id=str(uuid.uuid4()),
                name=name,
                email=email,
                role=Role.ADMIN if admin else Role.EMPLOYEE,
                created_at=utcnow(),
            )
            session.add(user)
            await session.commit()
            return user.id

    user_id = asyncio.run(_add())
    typer.echo(user_id)


@app.command("reconcile-votes")
def reconcile_votes() -> None:
    """Recompute cached vote counters from the votes table."""
    from backend.app.db import async_session
    from backend.app.services.vote_ledger import reconcile_vote_counts

    async def _reconcile() -> int:
        async with async_session() as session:
            return await reconcile_vote_counts(session)

    repaired = asyncio.run(_reconcile())
    typer.echo(f"Repaired {repaired} request(s)")


if __name__ == "__main__":
    app()

"""CLI utilities for bootstrapping a portal database."""

# purpose: give operators idempotent seeding of departments, council seats, and the first Archmagos
# status: active
# depends_on: ouroboros.database, ouroboros.services

from __future__ import annotations

import logging

import typer
from sqlalchemy.orm import Session

from .. import models
from ..database import SessionLocal, atomic
from ..services import covenant, directory

app = typer.Typer(help="Portal bootstrap commands")

_logger = logging.getLogger(__name__)


def _session() -> Session:
    return SessionLocal()


@app.command()
def departments() -> None:
    """Seed the founding departments and their rank ladders."""

    db = _session()
    try:
        with atomic(db, "seed_departments"):
            created = directory.seed_departments(db)
    finally:
        db.close()
    typer.echo(f"Seeded {created} departments")


@app.command()
def seats() -> None:
    """Seed the Serpentius council roster."""

    db = _session()
    try:
        with atomic(db, "seed_seats"):
            created = covenant.seed_seats(db)
    finally:
        db.close()
    typer.echo(f"Seeded {created} seats")


@app.command()
def admin(
    username: str = typer.Option(..., help="Login name for the account"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    display_name: str = typer.Option("Archmagos", help="Name shown in the directory"),
) -> None:
    """Provision a clearance-5 account if the username is free."""

    if len(password) < 8:
        raise typer.BadParameter("password must be at least 8 characters")
    db = _session()
    try:
        existing = db.query(models.User).filter(models.User.username == username.lower()).first()
        if existing:
            typer.echo(f"Account {existing.username} already exists")
            return
        with atomic(db, "seed_admin"):
            user = directory.create_user(
                db,
                username=username,
                password=password,
                display_name=display_name,
                title="Archmagos",
                clearance_level=5,
                is_verified=True,
            )
        _logger.info("Seeded administrator %s", user.username)
        typer.echo(f"Created Archmagos account {username.lower()}")
    finally:
        db.close()


if __name__ == "__main__":
    app()

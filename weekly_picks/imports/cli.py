"""Operator CLI for report imports."""
import secrets
import uuid
from pathlib import Path
from typing import Optional

import click

from weekly_picks.database.connection import Base, get_db, get_db_session, get_engine
from weekly_picks.database.models import Profile
from weekly_picks.imports.engine import ImportEngine, ImportResult
from weekly_picks.imports.read_view import ReadViewRefresher
from weekly_picks.imports.validation import is_valid_filename, load_json_document
from weekly_picks.security.auth import hash_token


def _load_json(path: Path):
    try:
        return load_json_document(path.read_bytes())
    except ValueError as e:
        raise click.ClickException(f"{path.name} is not valid JSON: {e}")


def _echo_result(name: str, result: ImportResult):
    if result.succeeded:
        click.echo(f"  ✓ {name}: {result.permalink} (attempt {result.attempt_id})")
    else:
        click.echo(f"  ✗ {name}: {result.category}: {result.error} (attempt {result.attempt_id})")


def _parse_actor(actor: Optional[str]) -> Optional[uuid.UUID]:
    if not actor:
        return None
    try:
        actor_id = uuid.UUID(actor)
    except ValueError:
        raise click.BadParameter(f"{actor!r} is not a UUID", param_hint="--actor")

    with get_db_session() as db:
        if db.get(Profile, actor_id) is None:
            raise click.BadParameter(f"no profile with id {actor_id}", param_hint="--actor")
    return actor_id


@click.group()
def cli():
    """Weekly picks report import tools."""
    pass


@cli.command("import-file")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--actor", default=None, help="Profile UUID recorded as the uploader")
def import_file(path: Path, actor: Optional[str]):
    """Import a single YYYY-MM-DDreport.json file."""
    actor_id = _parse_actor(actor)
    payload = _load_json(path)

    db = next(get_db())
    try:
        result = ImportEngine(db).run(path.name, payload, actor_id=actor_id)
    finally:
        db.close()

    _echo_result(path.name, result)
    if not result.succeeded:
        raise SystemExit(1)


@cli.command("import-dir")
@click.argument("directory", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--actor", default=None, help="Profile UUID recorded as the uploader")
@click.option("--dry-run", is_flag=True, help="Show files that would be imported")
def import_dir(directory: Path, actor: Optional[str], dry_run: bool):
    """Import every report file in a directory, oldest first.

    Duplicates are reported and skipped; the run continues.
    """
    actor_id = _parse_actor(actor)
    files = sorted(p for p in directory.iterdir() if p.is_file() and is_valid_filename(p.name))
    click.echo(f"Found {len(files)} report files in {directory}")

    if dry_run:
        for path in files:
            click.echo(f"  Would import: {path.name}")
        return

    counts = {"success": 0, "duplicate": 0, "failed": 0}
    db = next(get_db())
    try:
        engine = ImportEngine(db)
        for path in files:
            try:
                payload = _load_json(path)
            except click.ClickException as e:
                click.echo(f"  ✗ {e.message}")
                counts["failed"] += 1
                continue

            result = engine.run(path.name, payload, actor_id=actor_id)
            _echo_result(path.name, result)
            if result.succeeded:
                counts["success"] += 1
            elif result.category == "duplicate":
                counts["duplicate"] += 1
            else:
                counts["failed"] += 1
    finally:
        db.close()

    click.echo(
        f"Imported {counts['success']}, skipped {counts['duplicate']} duplicates, "
        f"{counts['failed']} failed"
    )
    if counts["failed"]:
        raise SystemExit(1)


@cli.command("refresh-view")
def refresh_view():
    """Rebuild the picks_history read view."""
    db = next(get_db())
    try:
        rows = ReadViewRefresher(db).refresh()
    finally:
        db.close()
    click.echo(f"picks_history refreshed: {rows} rows")


@cli.command("create-admin")
@click.option("--name", "display_name", required=True, help="Display name for the profile")
def create_admin(display_name: str):
    """Create an admin profile and print its API token once."""
    token = secrets.token_urlsafe(32)
    with get_db_session() as db:
        profile = Profile(display_name=display_name, is_admin=True, api_token_hash=hash_token(token))
        db.add(profile)
        db.flush()
        user_id = profile.user_id
    click.echo(f"Created admin {user_id} ({display_name})")
    click.echo(f"API token (store it now, it is not shown again): {token}")


@cli.command("init-db")
def init_db():
    """Create all tables on the configured database."""
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    click.echo(f"Schema created on {engine.url.render_as_string(hide_password=True)}")


def main():
    cli(prog_name="weekly-picks")


if __name__ == "__main__":
    main()

"""Main CLI entry point for fission-upgrade.

This module provides a command-line interface using Typer to move a Fission
installation from the v1 API to the v2 API:

1.  `dump`: read all v1 state from a v1 server, compute the name changes
    required by Kubernetes naming rules and save a JSON snapshot.
2.  `restore`: load the snapshot, rewrite every entity under the new names
    and create the resources on a v2 server.
3.  `names`: print the name-change table recorded in a snapshot.
"""
from __future__ import annotations

import json
import logging
from typing import Optional

import typer
from dotenv import find_dotenv, load_dotenv

from .client import V1Client, V2Client
from .config import get_settings
from .errors import UpgradeError
from .snapshot import load_snapshot
from .upgrade import dump_state, plan_documents, restore_state

# Load .env file if present (before any config access)
_env_file = find_dotenv(usecwd=True)
if _env_file:
    load_dotenv(_env_file)

logger = logging.getLogger(__name__)

app = typer.Typer(help="Upgrade Fission v1 state to v2 resources")


def _fail(e: Exception) -> None:
    typer.echo(f"Error: {e}", err=True)
    raise typer.Exit(code=1)


@app.callback()
def main() -> None:  # pragma: no cover - simple callback
    """fission-upgrade CLI.

    Run 'dump' against the old server, then 'restore' against the new one.
    """
    pass


@app.command(help="Save the state of a v1 Fission server to a snapshot file.")
def dump(
    server: Optional[str] = typer.Option(
        None, help="v1 Fission server URL (defaults to FISSION_URL)"
    ),
    file: Optional[str] = typer.Option(
        None, "--file", "-f", help="Snapshot file to write (defaults to UPGRADE_STATE_FILE)"
    ),
) -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)
    path = file or settings.UPGRADE_STATE_FILE
    try:
        with V1Client(
            server or settings.FISSION_URL,
            timeout=settings.HTTP_TIMEOUT,
            max_attempts=settings.FETCH_MAX_ATTEMPTS,
        ) as client:
            if not client.is_v1_server():
                _fail(
                    UpgradeError(
                        f"Server {client.base_url} isn't a v1 Fission server. "
                        "Use --server to point at a pre-0.2.x Fission server."
                    )
                )
            state = dump_state(client, path)
    except UpgradeError as e:
        _fail(e)
        return
    typer.echo(
        f"Done: Saved {len(state.functions)} functions, {len(state.httptriggers)} HTTP triggers, "
        f"{len(state.watches)} watches, {len(state.mqtriggers)} message queue triggers, "
        f"{len(state.timetriggers)} time triggers to {path}."
    )


@app.command(help="Create v2 resources from a snapshot file.")
def restore(
    server: Optional[str] = typer.Option(
        None, help="v2 Fission server URL (defaults to FISSION_URL)"
    ),
    file: Optional[str] = typer.Option(
        None, "--file", "-f", help="Snapshot file to read (defaults to UPGRADE_STATE_FILE)"
    ),
    dry_run: Optional[bool] = typer.Option(
        None,
        "--dry-run/--no-dry-run",
        help="Print the rewritten resources instead of creating them. If not specified, uses DRY_RUN from config/env.",
    ),
) -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.LOG_LEVEL)
    path = file or settings.UPGRADE_STATE_FILE
    effective_dry_run = settings.DRY_RUN if dry_run is None else dry_run

    try:
        state = load_snapshot(path)
    except FileNotFoundError:
        _fail(UpgradeError(f"snapshot file {path} not found"))
        return
    except UpgradeError as e:
        _fail(e)
        return

    try:
        if effective_dry_run:
            result = restore_state(
                state, None, namespace=settings.TARGET_NAMESPACE, dry_run=True
            )
            for kind, old_name, doc in plan_documents(result.plan):
                typer.echo(f"# {kind} (was {old_name})")
                typer.echo(json.dumps(doc, indent=2))
        else:
            with V2Client(
                server or settings.FISSION_URL,
                timeout=settings.HTTP_TIMEOUT,
                archive_literal_size_limit=settings.ARCHIVE_LITERAL_SIZE_LIMIT,
            ) as client:
                result = restore_state(state, client, namespace=settings.TARGET_NAMESPACE)
    except UpgradeError as e:
        _fail(e)
        return

    plan = result.plan
    typer.echo(
        f"{'Planned' if result.dry_run else 'Created'}: {len(plan.environments)} environments, "
        f"{len(plan.functions)} functions, {len(plan.triggers)} triggers."
    )


@app.command(help="Show the name changes recorded in a snapshot file.")
def names(
    file: Optional[str] = typer.Option(
        None, "--file", "-f", help="Snapshot file to read (defaults to UPGRADE_STATE_FILE)"
    ),
    show_all: bool = typer.Option(
        False, "--all/--changed", help="List unchanged names as well"
    ),
) -> None:
    settings = get_settings()
    path = file or settings.UPGRADE_STATE_FILE
    try:
        state = load_snapshot(path)
    except FileNotFoundError:
        _fail(UpgradeError(f"snapshot file {path} not found"))
        return
    except UpgradeError as e:
        _fail(e)
        return
    shown = 0
    for old, new in state.namechanges.items():
        if show_all or old != new:
            typer.echo(f"{old} -> {new}")
            shown += 1
    typer.echo(f"{shown} of {len(state.namechanges)} names shown.")


if __name__ == "__main__":  # pragma: no cover
    app()

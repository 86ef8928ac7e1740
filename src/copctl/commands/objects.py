"""Knowledge-store commands -- read and write objects and types.

Every command logs in first (see
:func:`~copctl.commands.auth.authenticated_session`) and prints the raw
API response to stdout as JSON.

Typical workflow::

    copctl types get fmm:namespace
    copctl objects create fmm:namespace --data '{"name": "my-ns"}'
    copctl objects get fmm:namespace my-ns
    copctl objects delete fmm:namespace my-ns
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

import typer

from copctl.client import KnowledgeStoreClient
from copctl.commands.auth import authenticated_session
from copctl.exceptions import CopError
from copctl.models import ClientSession
from copctl.output import error, print_json, success

objects_app = typer.Typer(no_args_is_help=True)
types_app = typer.Typer(no_args_is_help=True)

_DEFAULT_LAYER_TYPE = "TENANT"

T = TypeVar("T")

_LAYER_ID_OPTION = typer.Option(
    None, "--layer-id", help="Knowledge-store layer id. Defaults to the tenant."
)
_LAYER_TYPE_OPTION = typer.Option(
    _DEFAULT_LAYER_TYPE, "--layer-type", help="Layer type: TENANT, SOLUTION, ..."
)
_DATA_OPTION = typer.Option(
    ..., "--data", "-d", help="JSON object, or @path to a file containing one."
)


def _load_payload(data: str) -> dict[str, Any]:
    """Parse ``--data`` as a JSON object, reading ``@path`` arguments from disk."""
    text = data
    if data.startswith("@"):
        path = Path(data[1:]).expanduser()
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise typer.BadParameter(f"Cannot read {str(path)!r}: {exc}", param_hint="--data")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid JSON: {exc}", param_hint="--data")
    if not isinstance(payload, dict):
        raise typer.BadParameter("Expected a JSON object", param_hint="--data")
    return payload


def _call(ctx: typer.Context, action: Callable[[KnowledgeStoreClient, ClientSession], T]) -> T:
    """Log in, run *action* with a client, and map failures to exit codes."""
    session = authenticated_session(ctx)
    try:
        with KnowledgeStoreClient(session) as client:
            return action(client, session)
    except CopError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


# ------------------------------------------------------------------ #
# objects
# ------------------------------------------------------------------ #


@objects_app.command("get")
def objects_get(
    ctx: typer.Context,
    type_name: str = typer.Argument(help="Fully qualified type name, e.g. fmm:namespace."),
    object_id: str = typer.Argument(help="Object id."),
    layer_id: Optional[str] = _LAYER_ID_OPTION,
    layer_type: str = _LAYER_TYPE_OPTION,
) -> None:
    """Fetch a single object."""
    body = _call(
        ctx,
        lambda client, session: client.get_object(
            type_name, object_id, layer_id or session.tenant, layer_type
        ),
    )
    print_json(body)


@objects_app.command("list")
def objects_list(
    ctx: typer.Context,
    type_name: str = typer.Argument(help="Fully qualified type name, e.g. fmm:namespace."),
    layer_id: Optional[str] = _LAYER_ID_OPTION,
    layer_type: str = _LAYER_TYPE_OPTION,
) -> None:
    """List all objects of a type."""
    body = _call(
        ctx,
        lambda client, session: client.get_object(
            type_name, "", layer_id or session.tenant, layer_type
        ),
    )
    print_json(body)


@objects_app.command("create")
def objects_create(
    ctx: typer.Context,
    type_name: str = typer.Argument(help="Fully qualified type name, e.g. fmm:namespace."),
    data: str = _DATA_OPTION,
    layer_id: Optional[str] = _LAYER_ID_OPTION,
    layer_type: str = _LAYER_TYPE_OPTION,
) -> None:
    """Create an object from a JSON document."""
    payload = _load_payload(data)
    body = _call(
        ctx,
        lambda client, session: client.create_object(
            type_name, layer_id or session.tenant, layer_type, payload
        ),
    )
    if body:
        print_json(body)
    success(f"Created {type_name} object.")


@objects_app.command("update")
def objects_update(
    ctx: typer.Context,
    type_name: str = typer.Argument(help="Fully qualified type name, e.g. fmm:namespace."),
    object_id: str = typer.Argument(help="Object id."),
    data: str = _DATA_OPTION,
    layer_id: Optional[str] = _LAYER_ID_OPTION,
    layer_type: str = _LAYER_TYPE_OPTION,
) -> None:
    """Replace an object with a JSON document."""
    payload = _load_payload(data)
    body = _call(
        ctx,
        lambda client, session: client.update_object(
            type_name, object_id, layer_id or session.tenant, layer_type, payload
        ),
    )
    if body:
        print_json(body)
    success(f'Updated {type_name} object "{object_id}".')


@objects_app.command("delete")
def objects_delete(
    ctx: typer.Context,
    type_name: str = typer.Argument(help="Fully qualified type name, e.g. fmm:namespace."),
    object_id: str = typer.Argument(help="Object id."),
    layer_id: Optional[str] = _LAYER_ID_OPTION,
    layer_type: str = _LAYER_TYPE_OPTION,
) -> None:
    """Delete an object."""
    _call(
        ctx,
        lambda client, session: client.delete_object(
            type_name, object_id, layer_id or session.tenant, layer_type
        ),
    )
    success(f'Deleted {type_name} object "{object_id}".')


# ------------------------------------------------------------------ #
# types
# ------------------------------------------------------------------ #


@types_app.command("get")
def types_get(
    ctx: typer.Context,
    type_name: str = typer.Argument(help="Fully qualified type name, e.g. fmm:namespace."),
) -> None:
    """Fetch a type definition."""
    body = _call(ctx, lambda client, session: client.get_type(type_name))
    print_json(body)

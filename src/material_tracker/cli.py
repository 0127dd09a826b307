from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Callable, Sequence

from material_tracker.config import Settings, get_env, settings
from material_tracker.context import TrackerContext, build_context
from material_tracker.errors import (
    CollaboratorError,
    EmptyExportError,
    NoOpTransitionError,
    NotFoundError,
    RequestValidationError,
    UnauthenticatedError,
)
from material_tracker.logging_config import configure_app_logging
from material_tracker.requisitions.export import format_quantity, write_export
from material_tracker.requisitions.models import (
    PRIORITY_VALUES,
    STATUS_LABELS,
    STATUS_VALUES,
    UNIT_LABELS,
    UNIT_VALUES,
    MaterialRequest,
)
from material_tracker.requisitions.summary import summarize_requests

logger = logging.getLogger("material_tracker.cli")

EDITABLE_OPTIONS = ("material_name", "quantity", "unit", "priority", "project_id", "notes")


def _add_request_fields(parser: argparse.ArgumentParser, required: bool) -> None:
    parser.add_argument("--material-name", dest="material_name", required=required, help="Material name")
    parser.add_argument("--quantity", required=required, help="Requested quantity")
    parser.add_argument("--unit", choices=UNIT_VALUES, required=required, help="Unit of measure")
    parser.add_argument("--priority", choices=PRIORITY_VALUES, required=required, help="Request priority")
    parser.add_argument("--project-id", dest="project_id", help="Project the material is for")
    parser.add_argument("--notes", help="Additional notes")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Track construction material requests.")
    parser.add_argument("--email", default=get_env("MATERIAL_TRACKER_EMAIL", ""), help="Account email")
    parser.add_argument("--password", default=get_env("MATERIAL_TRACKER_PASSWORD", ""), help="Account password")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List material requests")
    list_parser.add_argument("--status", choices=STATUS_VALUES)

    show_parser = subparsers.add_parser("show", help="Show one material request")
    show_parser.add_argument("request_id")

    create_parser = subparsers.add_parser("create", help="Submit a new material request")
    _add_request_fields(create_parser, required=True)

    update_parser = subparsers.add_parser("update", help="Edit a material request")
    update_parser.add_argument("request_id")
    _add_request_fields(update_parser, required=False)

    status_parser = subparsers.add_parser("set-status", help="Change the status of a material request")
    status_parser.add_argument("request_id")
    status_parser.add_argument("status", choices=STATUS_VALUES)
    status_parser.add_argument("--yes", action="store_true", help="Confirm without prompting")

    delete_parser = subparsers.add_parser("delete", help="Delete a material request")
    delete_parser.add_argument("request_id")

    export_parser = subparsers.add_parser("export", help="Export material requests to CSV")
    export_parser.add_argument("--status", choices=STATUS_VALUES)
    export_parser.add_argument("--output-dir", dest="output_dir", default=None)

    subparsers.add_parser("projects", help="List projects")

    summary_parser = subparsers.add_parser("summary", help="Show request counters")
    summary_parser.add_argument("--status", choices=STATUS_VALUES)
    return parser


def format_request_line(request: MaterialRequest, project_names: dict[str, str]) -> str:
    project = project_names.get(request.project_id or "", "") or "-"
    unit = UNIT_LABELS.get(request.unit, request.unit)
    return (
        f"{request.id}  {request.material_name}  {format_quantity(request.quantity)} {unit}  "
        f"{STATUS_LABELS[request.status]}  {request.priority}  {project}  "
        f"{request.requested_by_name}  {request.requested_at:%Y-%m-%d}"
    )


def _collect_fields(args: argparse.Namespace) -> dict[str, Any]:
    values = {name: getattr(args, name, None) for name in EDITABLE_OPTIONS}
    return {name: value for name, value in values.items() if value is not None}


def _cmd_list(ctx: TrackerContext, args: argparse.Namespace, confirm: Callable[[str], bool]) -> int:
    requests = ctx.store.list_requests(status=args.status)
    if not requests:
        print("No requests found.")
        return 0
    names = ctx.store.project_names()
    for request in requests:
        print(format_request_line(request, names))
    return 0


def _cmd_show(ctx: TrackerContext, args: argparse.Namespace, confirm: Callable[[str], bool]) -> int:
    request = ctx.store.get_request(args.request_id)
    names = ctx.store.project_names()
    print(format_request_line(request, names))
    if request.notes:
        print(f"Notes: {request.notes}")
    return 0


def _cmd_create(ctx: TrackerContext, args: argparse.Namespace, confirm: Callable[[str], bool]) -> int:
    created = ctx.store.create_request(_collect_fields(args))
    print(f"Request Created: {created.material_name} ({created.id}) has been submitted.")
    return 0


def _cmd_update(ctx: TrackerContext, args: argparse.Namespace, confirm: Callable[[str], bool]) -> int:
    updated = ctx.store.update_request(args.request_id, _collect_fields(args))
    print(f"Request Updated: {updated.material_name} ({updated.id}).")
    return 0


def _cmd_set_status(ctx: TrackerContext, args: argparse.Namespace, confirm: Callable[[str], bool]) -> int:
    request = ctx.store.get_request(args.request_id)
    transition = ctx.status_transition()
    try:
        proposal = transition.propose_for(request, args.status)
    except NoOpTransitionError:
        return 0

    if not args.yes and not confirm(proposal.describe()):
        transition.cancel()
        print("Status change cancelled.")
        return 0

    updated = transition.confirm()
    print(f"Request Updated: Status changed to {updated.status}")
    return 0


def _cmd_delete(ctx: TrackerContext, args: argparse.Namespace, confirm: Callable[[str], bool]) -> int:
    ctx.store.delete_request(args.request_id)
    print("Request Deleted: The material request has been removed.")
    return 0


def _cmd_export(ctx: TrackerContext, args: argparse.Namespace, confirm: Callable[[str], bool]) -> int:
    requests = ctx.store.list_requests(status=args.status)
    path = write_export(requests, args.output_dir, ctx.store.project_names())
    print(f"Export Complete: Exported {len(requests)} material requests to {path}.")
    return 0


def _cmd_projects(ctx: TrackerContext, args: argparse.Namespace, confirm: Callable[[str], bool]) -> int:
    for project in ctx.store.list_projects():
        print(f"{project.id}  {project.name}")
    return 0


def _cmd_summary(ctx: TrackerContext, args: argparse.Namespace, confirm: Callable[[str], bool]) -> int:
    summary = summarize_requests(ctx.store.list_requests(status=args.status))
    print(f"Total Requests: {summary['total']}")
    print(f"Pending: {summary['pending']}")
    print(f"Urgent: {summary['urgent']}")
    return 0


COMMANDS: dict[str, Callable[[TrackerContext, argparse.Namespace, Callable[[str], bool]], int]] = {
    "list": _cmd_list,
    "show": _cmd_show,
    "create": _cmd_create,
    "update": _cmd_update,
    "set-status": _cmd_set_status,
    "delete": _cmd_delete,
    "export": _cmd_export,
    "projects": _cmd_projects,
    "summary": _cmd_summary,
}


def prompt_confirm(message: str) -> bool:
    answer = input(f"{message} [y/N] ")
    return answer.strip().lower() in {"y", "yes"}


def main(
    argv: Sequence[str] | None = None,
    context: TrackerContext | None = None,
    config: Settings | None = None,
    confirm: Callable[[str], bool] = prompt_confirm,
) -> int:
    config = config or settings
    configure_app_logging(config.log_level)
    args = build_parser().parse_args(argv)
    if args.command == "export" and args.output_dir is None:
        args.output_dir = config.export_dir

    if context is None:
        try:
            context = build_context(config)
        except RuntimeError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 2
    ctx = context

    try:
        if args.email and args.password:
            ctx.auth.sign_in(args.email, args.password)
        return COMMANDS[args.command](ctx, args, confirm)
    except RequestValidationError as exc:
        for error in exc.errors:
            print(f"{error.field}: {error.message}", file=sys.stderr)
        return 1
    except EmptyExportError as exc:
        print(f"No data to export: {exc}")
        return 0
    except (NotFoundError, UnauthenticatedError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except CollaboratorError as exc:
        logger.warning("Command %s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

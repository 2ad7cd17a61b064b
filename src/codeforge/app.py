"""Command-line entry point for the CodeForge editor services."""

from __future__ import annotations

import argparse
import asyncio
import getpass
import json
import logging
import os
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

import httpx

from .editor.events import EventBus
from .editor.modes import ModeLoader
from .editor.session import SessionController
from .editor.workspace import ProjectBrowser
from .errors import AuthenticationError, CodeForgeError
from .execution.dispatcher import ExecutionDispatcher, ExecutionResult
from .execution.remote import RemoteExecutionClient, RemoteExecutionSettings
from .execution.sandbox import JavaScriptEvaluator
from .projects.http_store import HttpProjectStore
from .projects.models import language_label
from .projects.store import ProjectStore
from .services.api import ApiClient, ApiSettings
from .services.auth import AuthClient
from .services.settings import SECRET_FIELDS, Settings, SettingsStore, redact_secret
from .utils import file_io
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class Runtime:
    """Services wired together for one CLI invocation."""

    api: ApiClient
    store: ProjectStore
    remote: RemoteExecutionClient
    dispatcher: ExecutionDispatcher
    controller: SessionController
    browser: ProjectBrowser

    async def aclose(self) -> None:
        await self.browser.aclose()
        await self.controller.aclose()
        await self.remote.aclose()
        await self.api.aclose()


def configure_logging(settings_path: Path, debug: bool = False) -> Path:
    """Send logs next to ``settings_path`` and warnings to stderr."""

    log_path = logging_utils.setup_logging(settings_path, debug=debug)
    _LOGGER.debug("Logging to %s (debug=%s)", log_path, debug)
    return log_path


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        settings = active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        settings = Settings()
    return settings


def build_runtime(
    settings: Settings,
    *,
    store: ProjectStore | None = None,
    api_transport: httpx.AsyncBaseTransport | None = None,
    execution_transport: httpx.AsyncBaseTransport | None = None,
) -> Runtime:
    api = ApiClient(ApiSettings.from_settings(settings), transport=api_transport)
    remote = RemoteExecutionClient(
        RemoteExecutionSettings.from_settings(settings), transport=execution_transport
    )
    dispatcher = ExecutionDispatcher(
        remote=remote,
        evaluator=JavaScriptEvaluator(timeout_seconds=settings.local_timeout_seconds),
    )
    project_store = store or HttpProjectStore(api)
    bus = EventBus()
    controller = SessionController(
        project_store,
        dispatcher,
        bus=bus,
        mode_loader=ModeLoader(),
        autosave_delay=settings.autosave_delay,
    )
    browser = ProjectBrowser(project_store, controller, bus=bus)
    return Runtime(
        api=api,
        store=project_store,
        remote=remote,
        dispatcher=dispatcher,
        controller=controller,
        browser=browser,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the `codeforge` console script."""

    args = _parse_cli_args(argv)

    settings_path = args.settings_path or os.environ.get("CODEFORGE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)

    debug = args.debug or _env_flag("CODEFORGE_DEBUG", default=False)
    configure_logging(settings_store.path, debug)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    overrides_mapping: Dict[str, Any] | None = cli_overrides or None
    settings = load_settings(resolved_path, store=settings_store, overrides=overrides_mapping)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return 0

    if settings.debug_logging and not debug:
        configure_logging(settings_store.path, True)

    if args.command is None:
        print("No command given; see --help.", file=sys.stderr)
        return 2

    try:
        return asyncio.run(_run_command(args, settings, settings_store))
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Interrupted by user.")
        return 130


async def _run_command(args: argparse.Namespace, settings: Settings, settings_store: SettingsStore) -> int:
    runtime = build_runtime(settings)
    try:
        return await args.handler(args, runtime, settings, settings_store)
    finally:
        await runtime.aclose()


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------
async def _cmd_run(args: argparse.Namespace, runtime: Runtime, *_: Any) -> int:
    path = Path(args.path)
    language = args.language or file_io.language_for_path(path)
    if not language:
        print(f"Cannot infer a language for {path.name}; pass --language.", file=sys.stderr)
        return 2
    source = file_io.read_text(path)
    if args.preview_out:
        target = Path(args.preview_out)
        runtime.dispatcher.set_preview_sink(lambda markup: file_io.write_text(target, markup))
    result = await runtime.dispatcher.dispatch(source, language)
    return _report_result(result)


async def _cmd_login(args: argparse.Namespace, runtime: Runtime, settings: Settings, store: SettingsStore) -> int:
    password = args.password or getpass.getpass("Password: ")
    auth = AuthClient(runtime.api)
    try:
        if args.username:
            token = await auth.register(args.username, args.email, password)
        else:
            token = await auth.login(args.email, password)
    except AuthenticationError as exc:
        print(f"Login failed: {exc}", file=sys.stderr)
        return 1
    settings.auth_token = token
    store.save(settings)
    if args.username:
        print(f"Registered {args.username} and logged in as {args.email}")
    else:
        print(f"Logged in as {args.email}")
    return 0


async def _cmd_whoami(args: argparse.Namespace, runtime: Runtime, *_: Any) -> int:
    try:
        profile = await AuthClient(runtime.api).me()
    except AuthenticationError as exc:
        print(f"Not signed in: {exc}", file=sys.stderr)
        return 1
    username = profile.get("username") or "?"
    email = profile.get("email")
    print(f"{username} <{email}>" if email else username)
    return 0


async def _cmd_logout(args: argparse.Namespace, runtime: Runtime, settings: Settings, store: SettingsStore) -> int:
    AuthClient(runtime.api).logout()
    runtime.browser.logout()
    settings.auth_token = ""
    settings.last_project_id = None
    store.save(settings)
    print("Logged out")
    return 0


async def _cmd_projects(args: argparse.Namespace, runtime: Runtime, *_: Any) -> int:
    if not await runtime.browser.refresh():
        print("Failed to fetch projects", file=sys.stderr)
        return 1
    for project in runtime.browser.projects:
        stamp = project.updated_at.strftime("%Y-%m-%d %H:%M")
        print(f"{project.id}\t{language_label(project.language)}\t{stamp}\t{project.name}")
    return 0


async def _cmd_create(args: argparse.Namespace, runtime: Runtime, *_: Any) -> int:
    try:
        project = await runtime.browser.create(args.name, args.language)
    except ValueError as exc:
        print(f"Invalid project: {exc}", file=sys.stderr)
        return 2
    except CodeForgeError as exc:
        print(f"Failed to create project: {exc}", file=sys.stderr)
        return 1
    print(project.id)
    return 0


async def _cmd_delete(args: argparse.Namespace, runtime: Runtime, *_: Any) -> int:
    try:
        await runtime.browser.delete(args.project)
    except CodeForgeError as exc:
        print(f"Failed to delete project: {exc}", file=sys.stderr)
        return 1
    print(f"Deleted {args.project}")
    return 0


async def _cmd_push(args: argparse.Namespace, runtime: Runtime, settings: Settings, store: SettingsStore) -> int:
    try:
        await runtime.browser.open(args.project)
    except CodeForgeError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    controller = runtime.controller
    controller.edit(file_io.read_text(args.path))
    if not controller.dirty:
        print("Already up to date")
        return 0
    if not await controller.save():
        print(f"Save failed: {controller.last_error}", file=sys.stderr)
        return 1
    _remember_project(settings, store, args.project)
    print(controller.status.value)
    return 0


async def _cmd_pull(args: argparse.Namespace, runtime: Runtime, settings: Settings, store: SettingsStore) -> int:
    try:
        await runtime.browser.open(args.project)
    except CodeForgeError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    target = runtime.controller.export(args.output)
    _remember_project(settings, store, args.project)
    print(target)
    return 0


def _report_result(result: ExecutionResult, *, stream: TextIO | None = None) -> int:
    destination = stream or sys.stdout
    if result.output:
        destination.write(result.output.rstrip("\n") + "\n")
    if result.error:
        print(result.error, file=sys.stderr)
        return 1
    return 0


def _remember_project(settings: Settings, store: SettingsStore, project_id: str) -> None:
    if settings.last_project_id == project_id:
        return
    settings.last_project_id = project_id
    try:
        store.save(settings)
    except OSError as exc:
        _LOGGER.warning("Unable to persist last project: %s", exc)


# ----------------------------------------------------------------------
# Argument parsing and settings overrides
# ----------------------------------------------------------------------
def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="codeforge",
        description="Run code and synchronize CodeForge projects from the command line.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.codeforge/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings for this invocation (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.set_defaults(command=None, handler=None)

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    run = commands.add_parser("run", help="Run a source file.")
    run.add_argument("path", help="File to run.")
    run.add_argument("--language", help="Language id; inferred from the file suffix by default.")
    run.add_argument("--preview-out", metavar="FILE", help="Write HTML previews to FILE.")
    run.set_defaults(handler=_cmd_run)

    login = commands.add_parser("login", help="Sign in and remember the token.")
    login.add_argument("email")
    login.add_argument("--password", help="Prompted for when omitted.")
    login.add_argument("--register", dest="username", metavar="USERNAME", help="Create the account first.")
    login.set_defaults(handler=_cmd_login)

    whoami = commands.add_parser("whoami", help="Show the account the stored token belongs to.")
    whoami.set_defaults(handler=_cmd_whoami)

    logout = commands.add_parser("logout", help="Forget the stored token.")
    logout.set_defaults(handler=_cmd_logout)

    projects = commands.add_parser("projects", help="List your projects, newest first.")
    projects.set_defaults(handler=_cmd_projects)

    create = commands.add_parser("create", help="Create a project.")
    create.add_argument("name")
    create.add_argument("--language", default="javascript")
    create.set_defaults(handler=_cmd_create)

    delete = commands.add_parser("delete", help="Delete a project.")
    delete.add_argument("project", metavar="ID")
    delete.set_defaults(handler=_cmd_delete)

    push = commands.add_parser("push", help="Save a local file into a project.")
    push.add_argument("path")
    push.add_argument("--project", required=True, metavar="ID")
    push.set_defaults(handler=_cmd_push)

    pull = commands.add_parser("pull", help="Download a project's code.")
    pull.add_argument("--project", required=True, metavar="ID")
    pull.add_argument("--output", default=".", metavar="DIR")
    pull.set_defaults(handler=_cmd_pull)

    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        annotation = type_hints.get(key, fields[key].type)
        overrides[key] = _coerce_value(annotation, raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    normalized = raw_value.strip()

    if normalized.lower() in {"none", "null"} and _is_optional(annotation):
        return None
    if target is str or target is Any:
        return normalized
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    return normalized


def _is_optional(annotation: Any) -> bool:
    return type(None) in get_args(annotation)


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return args[0]


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    for name in SECRET_FIELDS:
        value = payload.get(name, "")
        if isinstance(value, str):
            payload[name] = redact_secret(value)
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.strategy,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": payload, "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("CODEFORGE_"))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

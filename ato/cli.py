"""ato: command-line client for the Automated Test Orchestrator API.

Creates test plans (component/test discovery), triggers their execution,
waits for the server to finish and prints a summary.

Settings are read from ``ATO_*`` environment variables (or a ``.env`` file)
and can be overridden per invocation:

- ATO_API_URL: Base URL of the orchestrator API (default http://localhost:3001/api/v1)
- ATO_DISCOVERY_POLL_INTERVAL_SECONDS / ATO_EXECUTION_POLL_INTERVAL_SECONDS:
  Seconds between status checks (defaults 2 and 3)
- ATO_POLL_MAX_ATTEMPTS: Optional cap on status checks; unset waits indefinitely
- ATO_VERIFY_SSL: Toggle TLS verification (default true)
- ATO_LOG_LEVEL / ATO_LOG_FORMAT: Diagnostics on stderr (default WARNING, console)

Usage examples::

    ato discover --plan-name nightly --creds dev-account --ids 3293-abc --dependencies
    ato execute --plan-id 1f0c-plan --creds dev-account --tests t-1,t-2 --format json
    ato results --plan-id 1f0c-plan --status FAILURE
"""
from __future__ import annotations

import argparse
import getpass
import json
import sys
import time
from typing import Any, Callable, Iterable

import httpx
from pydantic import ValidationError

from ato import __version__
from ato.core.config import Settings, get_settings, normalize_api_url
from ato.core.errors import ATOError, CLIError, PollError, format_error
from ato.core.http import build_http_client
from ato.logging import configure_logging, get_logger
from ato.schemas.credentials import AddCredentialRequest
from ato.schemas.mapping import CreateMappingRequest
from ato.schemas.test_plan import (
    InitiateDiscoveryRequest,
    InitiateExecutionRequest,
    PlanType,
    ResultsFilter,
    TestPlan,
)
from ato.services.client import OrchestratorClient
from ato.services.plans import TestPlanService
from ato.services.reports import render_plan, render_records, render_results

__all__ = ["build_parser", "main", "parse_args", "resolve_settings", "run_command"]

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130

_logger = get_logger("ato.cli")

Handler = Callable[[argparse.Namespace, OrchestratorClient, Settings], str]


def log(message: str) -> None:
    """Emit a progress message on stderr without disrupting stdout capture."""

    print(message, file=sys.stderr)


def _split_csv(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ato", description="Automated Test Orchestrator command-line client")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--api-url", default=None, help="Base URL of the orchestrator API (overrides ATO_API_URL)")
    parser.add_argument(
        "--insecure",
        dest="verify_ssl",
        action="store_false",
        default=None,
        help="Disable TLS verification (NOT recommended)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log requests and poll attempts to stderr")
    parser.add_argument("--log-format", choices=("console", "json"), default=None, help="Diagnostic log format")

    fmt_parent = argparse.ArgumentParser(add_help=False)
    fmt_parent.add_argument(
        "--format",
        dest="output_format",
        choices=("text", "json"),
        default="text",
        help="Rendering format for command output",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    discover = commands.add_parser("discover", parents=[fmt_parent], help="Create a new test plan and wait for discovery")
    discover.add_argument("-p", "--plan-name", required=True, help="A descriptive name for the test plan")
    discover.add_argument("-c", "--creds", required=True, help="Credential profile to use")
    discover.add_argument(
        "-t",
        "--type",
        dest="plan_type",
        type=str.upper,
        choices=[item.value for item in PlanType],
        default=None,
        help="Plan mode: COMPONENT or TEST",
    )
    discover.add_argument("-i", "--ids", action="append", default=[], help="Component or test id (repeatable)")
    discover.add_argument("-n", "--names", action="append", default=[], help="Component or test name to resolve (repeatable)")
    discover.add_argument("-F", "--folders", action="append", default=[], help="Folder to scan for components (repeatable)")
    discover.add_argument("-d", "--dependencies", action="store_true", help="Discover dependencies of the given components")

    execute = commands.add_parser("execute", parents=[fmt_parent], help="Execute tests of a plan and wait for completion")
    execute.add_argument("-p", "--plan-id", required=True, help="Test plan id returned by discovery")
    execute.add_argument("-c", "--creds", required=True, help="Credential profile to use")
    execute.add_argument("-t", "--tests", default=None, help="Comma-separated test component ids to run")

    plans = commands.add_parser("plans", aliases=["tp"], help="Manage and view test plans")
    plan_commands = plans.add_subparsers(dest="subcommand", required=True)
    plan_commands.add_parser("list", parents=[fmt_parent], help="List all test plans")
    plan_get = plan_commands.add_parser("get", parents=[fmt_parent], help="Show one test plan")
    plan_get.add_argument("plan_id")
    plan_rm = plan_commands.add_parser("rm", help="Remove a test plan")
    plan_rm.add_argument("plan_id")

    results = commands.add_parser("results", parents=[fmt_parent], help="Query test execution results")
    results.add_argument("-p", "--plan-id", default=None)
    results.add_argument("--component-id", default=None)
    results.add_argument("--test-id", default=None)
    results.add_argument("--status", type=str.upper, choices=("SUCCESS", "FAILURE"), default=None)

    creds = commands.add_parser("creds", help="Manage credential profiles")
    cred_commands = creds.add_subparsers(dest="subcommand", required=True)
    cred_commands.add_parser("list", parents=[fmt_parent], help="List credential profiles")
    cred_add = cred_commands.add_parser("add", help="Add a credential profile")
    cred_add.add_argument("profile")
    cred_add.add_argument("--account-id", required=True)
    cred_add.add_argument("--username", required=True)
    cred_add.add_argument("--execution-instance-id", required=True)
    cred_add.add_argument("--password", default=None, help="Password or token; prompted when omitted")
    cred_delete = cred_commands.add_parser("delete", help="Delete a credential profile")
    cred_delete.add_argument("profile")

    mappings = commands.add_parser("mappings", help="Manage component-to-test mappings")
    mapping_commands = mappings.add_subparsers(dest="subcommand", required=True)
    mapping_commands.add_parser("list", parents=[fmt_parent], help="List mappings")
    mapping_add = mapping_commands.add_parser("add", parents=[fmt_parent], help="Add a mapping")
    mapping_add.add_argument("--main-id", required=True)
    mapping_add.add_argument("--main-name", default=None)
    mapping_add.add_argument("--test-id", required=True)
    mapping_add.add_argument("--test-name", default=None)
    mapping_rm = mapping_commands.add_parser("rm", help="Remove a mapping")
    mapping_rm.add_argument("mapping_id")

    return parser


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    args = build_parser().parse_args(list(argv))
    if args.command == "tp":
        args.command = "plans"
    return args


def resolve_settings(args: argparse.Namespace, base: Settings | None = None) -> Settings:
    settings = base or get_settings()
    overrides: dict[str, Any] = {}
    if args.api_url:
        try:
            overrides["api_url"] = normalize_api_url(args.api_url)
        except ValueError as exc:
            raise CLIError(str(exc)) from exc
    if args.verify_ssl is not None:
        overrides["verify_ssl"] = args.verify_ssl
    if args.verbose:
        overrides["log_level"] = "DEBUG"
    if args.log_format:
        overrides["log_format"] = args.log_format
    return settings.model_copy(update=overrides) if overrides else settings


def _progress_logger(label: str) -> Callable[[TestPlan, int], None]:
    last_status: dict[str, str] = {}

    def _report(plan: TestPlan, attempt: int) -> None:
        status = str(plan.status)
        if last_status.get("value") != status:
            log(f"{label} {plan.id} status: {status}")
            last_status["value"] = status

    return _report


def _cmd_discover(args: argparse.Namespace, client: OrchestratorClient, settings: Settings) -> str:
    if not (args.ids or args.names or args.folders):
        raise CLIError("Provide at least one component via --ids, --names or --folders")
    try:
        request = InitiateDiscoveryRequest(
            name=args.plan_name,
            component_ids=args.ids,
            credential_profile=args.creds,
            discover_dependencies=args.dependencies,
            plan_type=args.plan_type,
            component_names=args.names,
            folder_names=args.folders,
        )
    except ValidationError as exc:
        raise CLIError(f"Invalid discovery request: {exc.errors()[0]['msg']}") from exc

    total = len(args.ids) + len(args.names) + len(args.folders)
    suffix = " and all their dependencies" if args.dependencies else ""
    log(f"Creating test plan '{args.plan_name}' with {total} input(s){suffix}...")
    service = TestPlanService.from_settings(client, settings)
    plan = service.discover(
        request,
        on_created=lambda plan_id: log(f"Test plan created (ID: {plan_id}). Waiting for component discovery..."),
        on_progress=_progress_logger("Plan"),
    )
    log(f"Test plan '{plan.name}' processing complete. Use 'ato execute --plan-id {plan.id}' to run its tests.")
    return render_plan(plan, args.output_format)


def _cmd_execute(args: argparse.Namespace, client: OrchestratorClient, settings: Settings) -> str:
    tests = _split_csv(args.tests)
    try:
        request = InitiateExecutionRequest(credential_profile=args.creds, tests_to_run=tests)
    except ValidationError as exc:
        raise CLIError(f"Invalid execution request: {exc.errors()[0]['msg']}") from exc

    scope = "selected tests" if tests else "all available tests"
    log(f"Initiating execution for {scope} of plan {args.plan_id}...")
    service = TestPlanService.from_settings(client, settings)
    plan = service.execute(args.plan_id, request, on_progress=_progress_logger("Plan"))
    log("Execution finished.")
    return render_plan(plan, args.output_format)


def _cmd_plans(args: argparse.Namespace, client: OrchestratorClient, settings: Settings) -> str:
    if args.subcommand == "list":
        plans = client.list_test_plans()
        if not plans:
            log("No test plans found.")
        return render_records(plans, args.output_format)
    if args.subcommand == "get":
        return render_plan(client.get_test_plan(args.plan_id), args.output_format)
    client.delete_test_plan(args.plan_id)
    return f'Test plan "{args.plan_id}" was successfully removed.'


def _cmd_results(args: argparse.Namespace, client: OrchestratorClient, settings: Settings) -> str:
    filters = ResultsFilter(
        test_plan_id=args.plan_id,
        component_id=args.component_id,
        test_component_id=args.test_id,
        status=args.status,
    )
    results = client.get_execution_results(filters)
    if not results:
        log("No test execution results found matching the specified criteria.")
    return render_results(results, args.output_format)


def _cmd_creds(args: argparse.Namespace, client: OrchestratorClient, settings: Settings) -> str:
    if args.subcommand == "list":
        profiles = client.list_credential_profiles()
        if not profiles:
            log('No credential profiles found. Use "ato creds add <profile>" to add one.')
        return render_records(profiles, args.output_format)
    if args.subcommand == "add":
        secret = args.password or getpass.getpass("Integration platform password or token: ")
        try:
            request = AddCredentialRequest(
                profile_name=args.profile,
                account_id=args.account_id,
                username=args.username,
                password_or_token=secret,
                execution_instance_id=args.execution_instance_id,
            )
        except ValidationError as exc:
            raise CLIError(f"Invalid credential profile: {exc.errors()[0]['msg']}") from exc
        client.add_credential_profile(request)
        return f'Profile "{args.profile}" has been saved.'
    client.delete_credential_profile(args.profile)
    return f'Profile "{args.profile}" was successfully deleted.'


def _cmd_mappings(args: argparse.Namespace, client: OrchestratorClient, settings: Settings) -> str:
    if args.subcommand == "list":
        mappings = client.list_mappings()
        if not mappings:
            log("No mappings found.")
        return render_records(mappings, args.output_format)
    if args.subcommand == "add":
        try:
            request = CreateMappingRequest(
                main_component_id=args.main_id,
                main_component_name=args.main_name,
                test_component_id=args.test_id,
                test_component_name=args.test_name,
            )
        except ValidationError as exc:
            raise CLIError(f"Invalid mapping: {exc.errors()[0]['msg']}") from exc
        mapping = client.create_mapping(request)
        return render_records([mapping], args.output_format)
    client.delete_mapping(args.mapping_id)
    return "Mapping removed successfully."


_HANDLERS: dict[str, Handler] = {
    "discover": _cmd_discover,
    "execute": _cmd_execute,
    "plans": _cmd_plans,
    "results": _cmd_results,
    "creds": _cmd_creds,
    "mappings": _cmd_mappings,
}


def run_command(args: argparse.Namespace, client: OrchestratorClient, settings: Settings) -> str:
    return _HANDLERS[args.command](args, client, settings)


def _report_error(exc: ATOError, output_format: str) -> None:
    log(f"Error: {format_error(exc)}")
    if output_format == "json":
        print(json.dumps({"error": exc.to_dict()}, indent=2, sort_keys=True))


def main(argv: Iterable[str] | None = None, *, transport: httpx.BaseTransport | None = None) -> int:
    argv_list = list(sys.argv[1:] if argv is None else argv)
    try:
        args = parse_args(argv_list)
    except SystemExit as exc:
        # argparse exits 0 for --help/--version and 2 for usage errors.
        return EXIT_OK if exc.code in (0, None) else EXIT_ERROR
    output_format = getattr(args, "output_format", "text")

    try:
        settings = resolve_settings(args)
    except CLIError as exc:
        _report_error(exc, output_format)
        return EXIT_ERROR
    except ValidationError as exc:
        log(f"Error: Invalid configuration: {exc}")
        return EXIT_ERROR

    configure_logging(
        settings.log_level,
        log_format=settings.log_format,
        redact_fields=settings.redact_fields,
        redaction_placeholder=settings.redaction_placeholder,
    )

    started = time.monotonic()
    try:
        with OrchestratorClient(build_http_client(settings, transport=transport)) as client:
            rendered = run_command(args, client, settings)
    except PollError as exc:
        _logger.info("command_failed", command=args.command, code=exc.code.value)
        _report_error(exc, output_format)
        return EXIT_ERROR
    except CLIError as exc:
        _report_error(exc, output_format)
        return EXIT_ERROR
    except KeyboardInterrupt:
        log("Interrupted.")
        return EXIT_INTERRUPTED

    _logger.info("command_completed", command=args.command, elapsed_seconds=round(time.monotonic() - started, 2))
    if rendered:
        print(rendered)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

"""CLI entry point for scriptsync.

Usage:
    python -m scriptsync create [--title T] [--parent-id ID] [--root-dir DIR]
    python -m scriptsync clone [<script_id_or_url>] [--version N]
    python -m scriptsync pull [--version N]
    python -m scriptsync push [--watch]
    python -m scriptsync status [--json]
    python -m scriptsync open [<script_id>] [--webapp]
    python -m scriptsync list
    python -m scriptsync run <function>
    python -m scriptsync logs [--json] [--open] [--setup]
    python -m scriptsync deploy [<version>] [<description>]
    python -m scriptsync redeploy <deployment_id> <version> <description>
    python -m scriptsync undeploy <deployment_id>
    python -m scriptsync deployments
    python -m scriptsync version [<description>]
    python -m scriptsync versions
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
import webbrowser
from collections.abc import Awaitable, Callable
from pathlib import Path

from scriptsync.client import SCRIPT_URL, ScriptsClient
from scriptsync.config import get_config
from scriptsync.exceptions import ScriptSyncError
from scriptsync.logging import setup_logging
from scriptsync.settings import SettingsStore
from scriptsync.sync import PushResult
from scriptsync.transport import GoogleTransport, Transport, TransportError

Handler = Callable[[argparse.Namespace, ScriptsClient], Awaitable[int]]


def _get_transport() -> Transport | None:
    """Production transport, or None when no token is configured."""
    config = get_config()
    if not config.access_token:
        return None
    return GoogleTransport(access_token=config.access_token, timeout=config.timeout)


def _print_push_result(result: PushResult) -> None:
    if result.success:
        for name in result.files:
            print(f"└─ {name}")
        print(result.message)
    else:
        print(f"Push failed: {result.message}", file=sys.stderr)


# --- Command handlers ---


async def cmd_create(args: argparse.Namespace, client: ScriptsClient) -> int:
    """Create a new Apps Script project."""
    client.store.ensure_absent()
    title = args.title
    if not title:
        default = client.store.directory.name
        title = input(f"Give a script title: ({default}) ").strip() or default

    print(f"Creating Apps Script project {title}...")
    try:
        settings, files = await client.create(
            title, parent_id=args.parent_id, root_dir=args.root_dir
        )
    except TransportError:
        if args.parent_id:
            print(
                "Did you provide the correct parentId? "
                "It must be a Sheets, Docs, Slides or Forms file id.",
                file=sys.stderr,
            )
        raise
    print(f"Created new script: {SCRIPT_URL.format(script_id=settings.script_id)}")
    for local in files:
        print(f"└─ {local.relative_path}")
    return 0


async def cmd_clone(args: argparse.Namespace, client: ScriptsClient) -> int:
    """Clone an existing project into this directory."""
    client.store.ensure_absent()
    script_id = args.script
    if not script_id:
        projects = await client.list_projects(limit=10)
        if not projects:
            print("No script files found.")
            return 0
        for i, project in enumerate(projects, start=1):
            print(f"{i:>3}. {project.name:<20} - ({project.file_id})")
        choice = input("Clone which script? ").strip()
        try:
            script_id = projects[int(choice) - 1].file_id
        except (ValueError, IndexError):
            print(f"Error: Invalid choice: {choice}", file=sys.stderr)
            return 1

    print("Cloning files...")
    files = await client.clone(script_id, args.version, root_dir=args.root_dir)
    for local in files:
        print(f"└─ {local.relative_path}")
    print(f"Cloned {len(files)} files.")
    return 0


async def cmd_pull(args: argparse.Namespace, client: ScriptsClient) -> int:
    """Pull remote files into the project root."""
    print("Pulling files...")
    files = await client.pull(args.version)
    for local in files:
        print(f"└─ {local.relative_path}")
    print(f"Pulled {len(files)} files.")
    return 0


async def cmd_push(args: argparse.Namespace, client: ScriptsClient) -> int:
    """Push local files, once or on every change."""
    if args.watch:
        print("Watching for changed files... (Ctrl+C to stop)")
        watcher = client.watcher(
            interval=get_config().watch_interval, on_result=_print_push_result
        )
        await watcher.run()
        return 0

    print("Pushing files...")
    result = await client.push()
    _print_push_result(result)
    return 0 if result.success else 1


async def cmd_status(args: argparse.Namespace, client: ScriptsClient) -> int:
    """Show which files would be pushed and which are ignored."""
    classification = client.status()
    if args.json:
        print(json.dumps(classification.to_dict()))
        return 0
    print("Not ignored files:")
    for name in classification.files_to_push:
        print(f"└─ {name}")
    print()
    print("Ignored files:")
    for name in classification.untracked_files:
        print(f"└─ {name}")
    return 0


async def cmd_open(args: argparse.Namespace, client: ScriptsClient) -> int:
    """Open the script editor or the latest web app deployment."""
    if args.webapp:
        url = await client.webapp_url()
        print(f"Opening web application: {url}")
    else:
        url = client.script_url(args.script)
        print(f"Opening script: {url}")
    webbrowser.open(url)
    return 0


async def cmd_list(args: argparse.Namespace, client: ScriptsClient) -> int:
    """List the user's script projects."""
    print("Finding your scripts...")
    projects = await client.list_projects(limit=args.limit)
    if not projects:
        print("No script files found.")
        return 0
    for project in projects:
        url = SCRIPT_URL.format(script_id=project.file_id)
        print(f"{project.name:<20} - {url}")
    return 0


async def cmd_run(args: argparse.Namespace, client: ScriptsClient) -> int:
    """Execute a function in the script project."""
    result = await client.run(args.function, args.arg)
    if result.error:
        details = result.error.get("details") or [{}]
        message = details[0].get("errorMessage") or json.dumps(result.error)
        print(f"Execution error: {message}", file=sys.stderr)
        return 1
    if result.return_value is not None:
        print(json.dumps(result.return_value, indent=2))
    else:
        print("Function executed successfully (no return value).")
    return 0


async def cmd_logs(args: argparse.Namespace, client: ScriptsClient) -> int:
    """Print Cloud Logging entries for the project."""
    settings = client.load_settings()
    if args.setup or not settings.project_id:
        print(f"Open this link: {SCRIPT_URL.format(script_id=settings.script_id)}")
        print(
            "Go to *Resource > Cloud Platform Project...* and copy your "
            'projectId (including "project-id-")\n'
        )
        project_id = input("What is your GCP projectId? ").strip()
        if not project_id:
            print("Error: No projectId given.", file=sys.stderr)
            return 1
        client.set_project_id(project_id)
        print("Saved projectId.")

    if args.open:
        url = client.logs_url()
        print(f"Opening logs: {url}")
        webbrowser.open(url)

    entries = await client.logs(limit=args.limit)
    for entry in entries:
        if args.json:
            print(json.dumps(entry.raw, indent=2))
            continue
        function_name = entry.function_name or "N/A"
        print(
            f"{entry.severity:<8} {entry.timestamp} "
            f"{function_name:<15} {entry.payload}"
        )
    return 0


async def cmd_deploy(args: argparse.Namespace, client: ScriptsClient) -> int:
    """Deploy a version, creating one first if none is given."""
    result = await client.deployments().deploy(args.version, args.description)
    if result.created_version is not None:
        print(f"Created version {result.created_version.version_number}.")
    print(f"- {result.deployment.deployment_id} {result.deployment.version_label}.")
    return 0


async def cmd_redeploy(args: argparse.Namespace, client: ScriptsClient) -> int:
    """Repoint an existing deployment at a version."""
    deployment = await client.deployments().redeploy(
        args.deployment_id, args.version, args.description
    )
    print(f"Updated deployment {deployment.deployment_id} {deployment.version_label}.")
    return 0


async def cmd_undeploy(args: argparse.Namespace, client: ScriptsClient) -> int:
    """Delete a deployment."""
    await client.deployments().undeploy(args.deployment_id)
    print(f"Undeployed {args.deployment_id}.")
    return 0


async def cmd_deployments(args: argparse.Namespace, client: ScriptsClient) -> int:
    """List deployments."""
    deployments = await client.deployments().list_deployments()
    word = "Deployment" if len(deployments) == 1 else "Deployments"
    print(f"{len(deployments)} {word}.")
    for d in deployments:
        description = f"- {d.description}" if d.description else ""
        print(f"- {d.deployment_id} {d.version_label} {description}".rstrip())
    return 0


async def cmd_version(args: argparse.Namespace, client: ScriptsClient) -> int:
    """Create a new version."""
    version = await client.deployments().create_version(args.description)
    print(f"Created version {version.version_number}.")
    return 0


async def cmd_versions(args: argparse.Namespace, client: ScriptsClient) -> int:
    """List versions, newest first."""
    versions = await client.deployments().list_versions()
    if not versions:
        print("No versions found.")
        return 0
    word = "Version" if len(versions) == 1 else "Versions"
    print(f"~ {len(versions)} {word} ~")
    for v in versions:
        print(f"{v.version_number} - {v.description or '(no description)'}")
    return 0


# --- CLI setup ---


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scriptsync",
        description="Develop Google Apps Script projects locally",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # create
    create_parser = subparsers.add_parser("create", help="Create a new script project")
    create_parser.add_argument("--title", default=None, help="Project title")
    create_parser.add_argument(
        "--parent-id",
        default=None,
        help="Drive file id of a Sheets/Docs/Slides/Forms file to bind the script to",
    )
    create_parser.add_argument(
        "--root-dir", default=None, help="Local directory for the script files"
    )
    create_parser.set_defaults(func=cmd_create)

    # clone
    clone_parser = subparsers.add_parser("clone", help="Clone an existing project")
    clone_parser.add_argument(
        "script", nargs="?", default=None, help="Script ID or Apps Script URL"
    )
    clone_parser.add_argument("--version", type=int, default=None, help="Version")
    clone_parser.add_argument(
        "--root-dir", default=None, help="Local directory for the script files"
    )
    clone_parser.set_defaults(func=cmd_clone)

    # pull
    pull_parser = subparsers.add_parser("pull", help="Pull remote files")
    pull_parser.add_argument(
        "--version", type=int, default=None, help="Version to pull (default: HEAD)"
    )
    pull_parser.set_defaults(func=cmd_pull)

    # push
    push_parser = subparsers.add_parser("push", help="Push local files")
    push_parser.add_argument(
        "--watch", action="store_true", help="Push again whenever a file changes"
    )
    push_parser.set_defaults(func=cmd_push)

    # status
    status_parser = subparsers.add_parser(
        "status", help="List files that would be pushed or are ignored"
    )
    status_parser.add_argument("--json", action="store_true", help="Output JSON")
    status_parser.set_defaults(func=cmd_status)

    # open
    open_parser = subparsers.add_parser("open", help="Open the script in a browser")
    open_parser.add_argument("script", nargs="?", default=None, help="Script ID")
    open_parser.add_argument(
        "--webapp", action="store_true", help="Open the latest web app deployment"
    )
    open_parser.set_defaults(func=cmd_open)

    # list
    list_parser = subparsers.add_parser("list", help="List your script projects")
    list_parser.add_argument("--limit", type=int, default=50, help="Max projects")
    list_parser.set_defaults(func=cmd_list)

    # run
    run_parser = subparsers.add_parser("run", help="Execute a function")
    run_parser.add_argument("function", help="Function name to execute")
    run_parser.add_argument(
        "--arg", action="append", default=None, help="Argument (can be repeated)"
    )
    run_parser.set_defaults(func=cmd_run)

    # logs
    logs_parser = subparsers.add_parser("logs", help="Show Cloud Logging entries")
    logs_parser.add_argument("--json", action="store_true", help="Output JSON")
    logs_parser.add_argument(
        "--open", action="store_true", help="Open the logs in a browser"
    )
    logs_parser.add_argument(
        "--setup", action="store_true", help="Set the Cloud Platform projectId"
    )
    logs_parser.add_argument("--limit", type=int, default=50, help="Max entries")
    logs_parser.set_defaults(func=cmd_logs)

    # deploy
    deploy_parser = subparsers.add_parser("deploy", help="Create a deployment")
    deploy_parser.add_argument(
        "version", nargs="?", default=None, help="Version (default: a new version)"
    )
    deploy_parser.add_argument("description", nargs="?", default="", help="Description")
    deploy_parser.set_defaults(func=cmd_deploy)

    # redeploy
    redeploy_parser = subparsers.add_parser("redeploy", help="Update a deployment")
    redeploy_parser.add_argument("deployment_id", help="Deployment ID")
    redeploy_parser.add_argument("version", help="Version to deploy")
    redeploy_parser.add_argument("description", help="Description")
    redeploy_parser.set_defaults(func=cmd_redeploy)

    # undeploy
    undeploy_parser = subparsers.add_parser("undeploy", help="Delete a deployment")
    undeploy_parser.add_argument("deployment_id", help="Deployment ID")
    undeploy_parser.set_defaults(func=cmd_undeploy)

    # deployments
    deployments_parser = subparsers.add_parser("deployments", help="List deployments")
    deployments_parser.set_defaults(func=cmd_deployments)

    # version
    version_parser = subparsers.add_parser("version", help="Create a version")
    version_parser.add_argument("description", nargs="?", default="", help="Description")
    version_parser.set_defaults(func=cmd_version)

    # versions
    versions_parser = subparsers.add_parser("versions", help="List versions")
    versions_parser.set_defaults(func=cmd_versions)

    return parser


async def _dispatch(args: argparse.Namespace) -> int:
    handler: Handler = args.func
    # status and plain open work without credentials
    transport = _get_transport()
    client = ScriptsClient(transport, SettingsStore.find(Path.cwd()))
    try:
        return await handler(args, client)
    except (ScriptSyncError, TransportError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        if transport is not None:
            await transport.close()


def main() -> int:
    """Main entry point."""
    config = get_config()
    setup_logging(config.log_level, config.json_logs)
    args = build_parser().parse_args()
    try:
        result: int = asyncio.run(_dispatch(args))
    except KeyboardInterrupt:
        return 130
    return result


if __name__ == "__main__":
    sys.exit(main())

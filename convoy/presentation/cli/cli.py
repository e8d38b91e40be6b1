"""
CLI Module

Architectural Intent:
- Command-line interface for convoy
- Entry point for all user interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug flags for log level control

Design Decisions:
- Exit status: 0 on success or a deliberate decline, 1 on any error or
  failed service, 130 when interrupted
- Ctrl+C during a traversal sets the run's cancel event, so in-flight
  services are stopped and reported instead of dying mid-write
"""

import argparse
import asyncio
import os
import shlex
import signal
import sys
import traceback
from pathlib import Path
from typing import Optional

from convoy.domain.errors import ConvoyError
from convoy.infrastructure.logging import configure_logging, level_from_flags

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="convoy",
        description="Bring cloud services up and down in dependency order",
    )
    parser.add_argument(
        "--config-file", "-c",
        default=os.environ.get("CONVOY_CONFIG_FILE"),
        help="Path to the project config (default: convoy.toml)",
    )
    parser.add_argument("--env", help="Environment name, e.g. staging")
    parser.add_argument("--namespace", help="Project namespace")
    parser.add_argument("--aws-profile", help="AWS profile")
    parser.add_argument("--aws-region", help="AWS region")
    parser.add_argument("--tag", help="Release tag (default: git short sha)")
    parser.add_argument(
        "--plain-text", action="store_true", default=None, help="Disable colored output"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--log-json", action="store_true", help="Write diagnostics as JSON lines"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    up_parser = subparsers.add_parser("up", help="Bring apps or infrastructure up")
    up_sub = up_parser.add_subparsers(dest="target")
    up_apps = up_sub.add_parser("apps", help="Build, push and deploy every app")
    up_apps.add_argument(
        "--explain", action="store_true", help="Print the plan without running it"
    )
    up_sub.add_parser("infra", help="terraform init + apply for the infra stack")

    deploy_parser = subparsers.add_parser("deploy", help="Deploy one container service")
    deploy_parser.add_argument("service", help="Service name")
    deploy_parser.add_argument("--image", default="", help="Deploy this image, skipping build and push")
    deploy_parser.add_argument("--ecs-cluster", default="", help="ECS cluster name")
    deploy_parser.add_argument("--task-definition-arn", default="", help="Base task definition")

    down_parser = subparsers.add_parser("down", help="Destroy one app, or everything")
    down_parser.add_argument("app", nargs="?", help="App name, or 'infra'")
    down_parser.add_argument(
        "--auto-approve", action="store_true", help="Do not ask for confirmation"
    )

    exec_parser = subparsers.add_parser("exec", help="Run a command in a service container")
    exec_parser.add_argument("service", help="Service name")
    exec_parser.add_argument("--ecs-cluster", default="", help="ECS cluster name")
    exec_parser.add_argument("exec_command", nargs=argparse.REMAINDER, help="-- command...")

    tunnel_parser = subparsers.add_parser("tunnel", help="Bastion tunnel")
    tunnel_sub = tunnel_parser.add_subparsers(dest="action")
    tunnel_sub.add_parser("down", help="Close the bastion SSH tunnel")

    subparsers.add_parser(
        "aws-profile", help="Write an AWS credentials profile from AWS_* variables"
    )
    return parser


def _overrides(args: argparse.Namespace) -> dict:
    return {
        "env": args.env,
        "namespace": args.namespace,
        "aws_profile": args.aws_profile,
        "aws_region": args.aws_region,
        "tag": args.tag,
        "plain_text": args.plain_text,
        "log_level": "debug" if args.debug else None,
    }


def _print_report(report, action: str) -> int:
    if report.declined:
        print(f"[*] Declined: {', '.join(report.declined)}")
    # services stopped by Ctrl+C are not failures of their own
    failures = report.failure_lines(include_cancelled=not report.cancelled)
    if failures:
        print(f"[-] {action} failed for {len(failures)} service(s):")
        for line in failures:
            print(f"  {line}")
    if report.cancelled:
        print(f"[-] {action} interrupted")
        return EXIT_INTERRUPTED
    if report.failures:
        return EXIT_ERROR
    print(f"[+] {action} Successful.")
    return EXIT_OK


async def _traverse(run) -> object:
    """Await a scheduler run with SIGINT mapped to its cancel event."""
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False
    try:
        return await run(cancel_event)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


async def _run_command(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    if args.command == "aws-profile":
        from convoy.application.use_cases.configure_aws_profile import ConfigureAwsProfile

        path = ConfigureAwsProfile(os.environ, str(Path.home())).execute()
        print(f"[+] Profile written to {path}")
        return EXIT_OK

    from convoy.composition_root import create_container
    from convoy.infrastructure.config import load_config

    config = load_config(args.config_file, overrides=_overrides(args))
    container = await create_container(config)
    try:
        return await _dispatch(args, parser, container)
    finally:
        await container.shutdown()


async def _dispatch(args: argparse.Namespace, parser: argparse.ArgumentParser, container) -> int:
    config = container.config

    if args.command == "up" and args.target == "apps":
        config.require("env", "namespace")
        if args.explain:
            registry = await container.resolve_registry(lookup_account=False)
            container.up_apps(registry).explain()
            return EXIT_OK
        await container.resolve_registry()
        report = await _traverse(container.up_apps().execute)
        return _print_report(report, "Deployment")

    if args.command == "up" and args.target == "infra":
        config.require("env")
        infra = await container.manage_infra()
        await infra.up()
        print("[+] Infrastructure is up.")
        return EXIT_OK

    if args.command == "deploy":
        config.require("env", "namespace", "aws_region", "aws_profile", "tag")
        if not args.image:
            await container.resolve_registry()
        use_case = container.deploy_service(
            args.service,
            image=args.image,
            cluster=args.ecs_cluster,
            task_definition_arn=args.task_definition_arn,
        )
        report = await _traverse(use_case.execute)
        return _print_report(report, "Deployment")

    if args.command == "down":
        config.require("env")
        if args.app == "infra":
            infra = await container.manage_infra()
            await infra.down()
            print("[+] Infrastructure destroyed.")
            return EXIT_OK
        if args.app is None and not args.auto_approve:
            print("[!] Destroying every app and the infrastructure requires --auto-approve")
            return EXIT_OK

        use_case = await container.down_apps(args.app)
        result = await _traverse(
            lambda cancel_event: use_case.execute(args.auto_approve, cancel_event)
        )
        status = _print_report(result.report, "Destroy")
        if result.infra_destroyed:
            print("[+] Infrastructure destroyed.")
        return status

    if args.command == "exec":
        config.require("env", "namespace")
        command = list(args.exec_command)
        if command and command[0] == "--":
            command = command[1:]
        if not command:
            parser.error("exec needs a command after --")
        cluster = args.ecs_cluster or f"{config.env}-{config.namespace}"
        return await container.exec_command().execute(
            args.service, cluster, shlex.join(command)
        )

    if args.command == "tunnel" and args.action == "down":
        config.require("env")
        await container.tunnel_down().execute(container.outputs.scope("tunnel"))
        return EXIT_OK

    parser.print_help()
    return EXIT_OK


async def async_main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        level=level_from_flags(args.verbose, args.debug), json_format=args.log_json
    )
    verbose = args.verbose or args.debug

    try:
        return await _run_command(args, parser)
    except ConvoyError as e:
        print(f"[-] {e}")
        if verbose:
            traceback.print_exc()
        return EXIT_ERROR
    except Exception as e:
        print(f"[-] Unexpected error: {e}")
        if verbose:
            traceback.print_exc()
        return EXIT_ERROR


def main():
    try:
        code = asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\n[*] Interrupted.")
        code = EXIT_INTERRUPTED
    sys.exit(code)


if __name__ == "__main__":
    main()

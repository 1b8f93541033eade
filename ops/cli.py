"""Command line entry point: python -m ops <command>."""

from __future__ import annotations

import argparse
import json
import logging

from . import cloud, emulator, stack, workflows
from .errors import LabError
from .logging import sanitize, setup_logging
from .settings import Settings

logger = logging.getLogger(__name__)


def cmd_deploy(settings, args):
    return workflows.deploy(settings, start_emulator=args.start_emulator, skip_site=args.skip_site)


def cmd_status(settings, args):
    return workflows.status(settings)


def cmd_scan(settings, args):
    return workflows.scan(settings)


def cmd_cleanup(settings, args):
    return workflows.cleanup(settings, remove_stack=args.remove_stack, stop_emulator=args.stop_emulator)


def cmd_emulator(settings, args):
    if args.action == "up":
        emulator.start(settings)
        emulator.wait_until_ready(settings)
        print(f"✅ Emulator ready at {settings.endpoint}")
    elif args.action == "down":
        emulator.stop(settings, volumes=args.volumes)
        print("✅ Emulator stopped")
    elif args.action == "logs":
        print(emulator.logs(settings, tail=args.tail), end="")
    else:
        states = emulator.health(settings)
        missing = emulator.missing_services(states, settings.required_services)
        for service in sorted(states):
            print(f"  {service}: {states[service]}")
        if missing:
            print(f"❌ Not ready: {', '.join(missing)}")
            return 1
        print("✅ All required services ready")
    return 0


def cmd_preview(settings, args):
    stack.preview(settings, on_output=workflows.echo)
    return 0


def cmd_outputs(settings, args):
    workflows.print_outputs(stack.outputs(settings))
    return 0


def cmd_state(settings, args):
    state = stack.export_state(settings)
    if args.raw:
        print(json.dumps(state, indent=2))
        return 0
    for resource in stack.state_resources(state):
        print(f"{resource['type']}  {resource['id']}  {resource['urn']}")
    return 0


def cmd_unlock(settings, args):
    removed = stack.unlock(settings)
    for path in removed:
        print(f"🔧 Removed lock {path}")
    print(f"✅ Stack {settings.stack_name} unlocked")
    return 0


def cmd_repair(settings, args):
    dropped = stack.clear_pending_operations(settings)
    if dropped:
        print(f"🔧 Dropped {dropped} pending operations; run `python -m ops preview` to review")
    else:
        print("✅ No pending operations in the stack state")
    return 0


def cmd_remove_bucket(settings, args):
    s3 = cloud.client("s3", settings)
    with cloud.cloud_errors(f"Removing bucket {args.name}"):
        if not cloud.bucket_exists(s3, args.name):
            print(f"⚠️ Bucket {args.name} does not exist")
            return 0
        removed = cloud.remove_bucket(s3, args.name)
    print(f"✅ Removed bucket {args.name} ({removed} object versions)")
    return 0


def build_parser():
    p = argparse.ArgumentParser(
        prog="storage-lab",
        description="Provision and inspect the storage-lab stack on LocalStack",
    )
    p.add_argument("--stack", help="Stack name (env STACK_NAME)")
    p.add_argument("--endpoint", help="Emulator endpoint (env LOCALSTACK_ENDPOINT)")
    p.add_argument("--log-level", help="Log level (env LOG_LEVEL)")
    sub = p.add_subparsers(dest="cmd")

    s = sub.add_parser("deploy", help="Apply the stack on the emulator and upload the site")
    s.add_argument("--start-emulator", action="store_true", help="Run `docker compose up` first")
    s.add_argument("--skip-site", action="store_true", help="Do not build or upload the site")
    s.set_defaults(func=cmd_deploy)

    s = sub.add_parser("status", help="Show emulator health, outputs and cloud resources")
    s.set_defaults(func=cmd_status)

    s = sub.add_parser("scan", help="Run the guardrail policy pack and write a report")
    s.set_defaults(func=cmd_scan)

    s = sub.add_parser("cleanup", help="Empty buckets and destroy the stack")
    s.add_argument("--remove-stack", action="store_true", help="Also remove the stack and its config")
    s.add_argument("--stop-emulator", action="store_true", help="Also stop the emulator and drop volumes")
    s.set_defaults(func=cmd_cleanup)

    s = sub.add_parser("emulator", help="Manage the LocalStack container")
    s.add_argument("action", choices=["up", "down", "health", "logs"])
    s.add_argument("--volumes", action="store_true", help="With down: remove volumes")
    s.add_argument("--tail", type=int, default=100, help="With logs: number of lines")
    s.set_defaults(func=cmd_emulator)

    s = sub.add_parser("preview", help="Show the planned changes")
    s.set_defaults(func=cmd_preview)

    s = sub.add_parser("outputs", help="List stack outputs")
    s.set_defaults(func=cmd_outputs)

    s = sub.add_parser("state", help="Show resources recorded in the stack state")
    s.add_argument("--raw", action="store_true", help="Print the full checkpoint as JSON")
    s.set_defaults(func=cmd_state)

    s = sub.add_parser("unlock", help="Force-unlock the stack after an interrupted update")
    s.set_defaults(func=cmd_unlock)

    s = sub.add_parser("repair", help="Drop pending operations left by an interrupted update")
    s.set_defaults(func=cmd_repair)

    s = sub.add_parser("remove-bucket", help="Empty and delete a bucket outside the stack")
    s.add_argument("name", help="Bucket name")
    s.set_defaults(func=cmd_remove_bucket)
    return p


def main(argv=None, environ=None):
    p = build_parser()
    args = p.parse_args(argv)
    if not hasattr(args, "func"):
        p.print_help()
        return 2

    try:
        settings = Settings.from_env(environ).with_overrides(
            stack_name=args.stack,
            endpoint=args.endpoint,
            log_level=args.log_level,
        )
        setup_logging(settings.log_level)
        logger.debug("Settings: %s", sanitize(settings.as_dict()))
        return args.func(settings, args)
    except LabError as e:
        logger.debug("Command %s failed", args.cmd, exc_info=True)
        workflows.print_error(e)
        return 1

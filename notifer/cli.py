"""
Notifer CLI — Send build notifications and administer global settings.

Commands:
- notifer send             — Notify for a build result (defaults from JOB_NAME, BUILD_NUMBER, ...)
- notifer test-connection  — Send a test message with the configured server, token and topic
- notifer config show      — Print the global defaults
- notifer config set       — Update global defaults (KEY=VALUE ...), saved to notifer.yaml
- notifer credentials ...  — set / remove / list encrypted topic tokens
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger("notifer.cli")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="notifer",
        description="Notifer — build notifications for Notifer topics",
    )
    parser.add_argument("--config", default=None, help="Path to notifer.yaml (default: auto-discover)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # notifer send
    send_parser = subparsers.add_parser("send", help="Send a notification for a build result")
    send_parser.add_argument(
        "--result", default=None,
        help="Build result: SUCCESS/FAILURE/UNSTABLE/ABORTED/NOT_BUILT (default: $BUILD_RESULT, else running)",
    )
    send_parser.add_argument("--job", default=None, help="Job display name (default: $JOB_NAME)")
    send_parser.add_argument("--full-job-name", default=None, help="Folder-qualified job name for the message body")
    send_parser.add_argument("--build-number", default=None, help="Build number (default: $BUILD_NUMBER)")
    send_parser.add_argument("--build-url", default=None, help="Build URL (default: $BUILD_URL)")
    send_parser.add_argument("--topic", default="", help="Topic (default: global default topic)")
    send_parser.add_argument("--message", default="", help="Message (default: generated from the build)")
    send_parser.add_argument("--title", default="", help="Title (default: generated from the build)")
    send_parser.add_argument("--priority", type=int, default=0, help="Priority 1-5 (default: from result)")
    send_parser.add_argument("--tags", default="", help="Extra tags, comma or space separated")
    send_parser.add_argument("--credentials-id", default="", help="Credentials id holding the topic token")
    send_parser.add_argument("--server-url", default="", help="Notifer server URL")
    send_parser.add_argument("--fail-on-error", action="store_true", help="Exit non-zero if sending fails")
    send_parser.add_argument("--no-notify-success", dest="notify_success", action="store_false")
    send_parser.add_argument("--no-notify-failure", dest="notify_failure", action="store_false")
    send_parser.add_argument("--no-notify-unstable", dest="notify_unstable", action="store_false")
    send_parser.add_argument("--notify-aborted", dest="notify_aborted", action="store_true")

    # notifer test-connection
    test_parser = subparsers.add_parser("test-connection", help="Send a test notification")
    test_parser.add_argument("--server-url", default="", help="Server URL (default: global setting)")
    test_parser.add_argument("--credentials-id", default="", help="Credentials id (default: global setting)")
    test_parser.add_argument("--topic", default="", help="Topic (default: global default topic)")

    # notifer config
    config_parser = subparsers.add_parser("config", help="Show or update global defaults")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Print global defaults")
    set_parser = config_sub.add_parser("set", help="Update global defaults")
    set_parser.add_argument("assignments", nargs="+", help="KEY=VALUE, e.g. default_topic=ci")

    # notifer credentials
    cred_parser = subparsers.add_parser("credentials", help="Manage encrypted topic tokens")
    cred_sub = cred_parser.add_subparsers(dest="credentials_command")
    cred_set = cred_sub.add_parser("set", help="Store a token")
    cred_set.add_argument("credentials_id")
    cred_set.add_argument("token")
    cred_remove = cred_sub.add_parser("remove", help="Remove a token")
    cred_remove.add_argument("credentials_id")
    cred_sub.add_parser("list", help="List stored credentials ids")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "send":
        return cmd_send(args)
    elif args.command == "test-connection":
        return cmd_test_connection(args)
    elif args.command == "config":
        return cmd_config(args)
    elif args.command == "credentials":
        return cmd_credentials(args)
    else:
        parser.print_help()
        return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_config(args: argparse.Namespace):
    from notifer.engine.config import load_config

    config = load_config(getattr(args, "config", None))
    # --verbose wins over the configured level.
    if not getattr(args, "verbose", False):
        logging.getLogger("notifer").setLevel(config.logging.level)
    return config


def _credential_store(config):
    from notifer.engine.config import get_config_path
    from notifer.engine.credentials import CredentialStore

    store_path = Path(config.credentials.store_path)
    if not store_path.is_absolute():
        config_path = get_config_path()
        base = config_path.parent if config_path else Path.cwd()
        store_path = base / store_path
    return CredentialStore(str(store_path))


def _parse_assignments(assignments: List[str]) -> Dict[str, str]:
    changes: Dict[str, str] = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Expected KEY=VALUE, got '{item}'")
        changes[key.strip()] = value.strip()
    return changes


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_send(args: argparse.Namespace) -> int:
    """
    Notify for one build result:
    1. Load notifer.yaml and the credential store
    2. Build the request, context and preferences from flags / build environment
    3. Gate, resolve, send
    """
    from notifer.engine.environment import EnvVarExpander
    from notifer.engine.errors import NotiferError, NotiferResolutionError, NotiferSendError
    from notifer.engine.logging import FileLogger
    from notifer.engine.models import BuildContext, NotifyPreferences, RawRequest
    from notifer.engine.notifier import BuildNotifier

    try:
        config = _load_config(args)
    except NotiferError as e:
        print(f"[ERROR] {e.message}")
        return 1

    env = dict(os.environ)
    context = BuildContext(
        job_name=args.job or env.get("JOB_NAME", ""),
        full_job_name=args.full_job_name,
        build_number=args.build_number or env.get("BUILD_NUMBER", "0"),
        build_url=args.build_url or env.get("BUILD_URL", ""),
    )
    request = RawRequest(
        topic=args.topic,
        message=args.message,
        title=args.title,
        priority=args.priority,
        tags=args.tags,
        credentials_id=args.credentials_id,
        server_url=args.server_url,
        fail_on_error=args.fail_on_error,
    )
    preferences = NotifyPreferences(
        success=args.notify_success,
        failure=args.notify_failure,
        unstable=args.notify_unstable,
        aborted=args.notify_aborted,
    )
    result_name = args.result if args.result is not None else env.get("BUILD_RESULT")

    notifier = BuildNotifier(
        token_lookup=_credential_store(config).get_token,
        expand=EnvVarExpander(env),
        audit_log=FileLogger(config.logging.directory),
    )

    try:
        result = notifier.notify(request, result_name, context, preferences)
    except NotiferResolutionError as e:
        print(f"[ERROR] {e.message}")
        return 1
    except NotiferSendError as e:
        print(f"[ERROR] Failed to send notification: {e.message}")
        return 1
    except NotiferError as e:
        print(f"[ERROR] {e.message}")
        return 1

    if result is None:
        print("[INFO] No notification sent")
    else:
        print(f"[OK] Notification sent. ID: {result.id}")
    return 0


def cmd_test_connection(args: argparse.Namespace) -> int:
    """Send the fixed test message using flags, falling back to global settings."""
    from notifer.engine.errors import NotiferError
    from notifer.engine.notifier import BuildNotifier

    try:
        config = _load_config(args)
    except NotiferError as e:
        print(f"[ERROR] {e.message}")
        return 1

    defaults = config.notifer
    server_url = args.server_url or defaults.server_url
    credentials_id = args.credentials_id or defaults.default_credentials_id
    topic = args.topic or defaults.default_topic

    notifier = BuildNotifier(token_lookup=_credential_store(config).get_token, global_defaults=defaults)
    try:
        result = notifier.test_connection(server_url, credentials_id, topic)
    except NotiferError as e:
        print(f"[ERROR] Failed: {e.message}")
        return 1

    print(f"[OK] Success! Message sent with ID: {result.id}")
    return 0


def cmd_config(args: argparse.Namespace) -> int:
    """Show or update the global defaults."""
    from notifer.engine.config import get_config_path, update_global_defaults
    from notifer.engine.errors import NotiferError
    from notifer.engine.logging import FileLogger, log_config_change

    try:
        config = _load_config(args)
    except NotiferError as e:
        print(f"[ERROR] {e.message}")
        return 1

    if args.config_command == "set":
        try:
            changes = _parse_assignments(args.assignments)
            updated = update_global_defaults(persist=True, **changes)
        except ValueError as e:
            print(f"[ERROR] {e}")
            return 1
        except NotiferError as e:
            print(f"[ERROR] {e.message}")
            return 1
        FileLogger(log_dir=config.logging.directory).write(
            log_config_change(changes, actor=os.environ.get("USER"))
        )
        print(f"[OK] Saved to {get_config_path()}")
        defaults = updated
    else:
        defaults = config.notifer

    for key, value in defaults.model_dump().items():
        print(f"  {key}: {value}")
    return 0


def cmd_credentials(args: argparse.Namespace) -> int:
    """Manage the encrypted token store."""
    from notifer.engine.errors import NotiferError

    try:
        store = _credential_store(_load_config(args))
        if args.credentials_command == "set":
            store.set_token(args.credentials_id, args.token)
            print(f"[OK] Stored token for '{args.credentials_id}'")
        elif args.credentials_command == "remove":
            if not store.remove_token(args.credentials_id):
                print(f"[ERROR] No token stored for '{args.credentials_id}'")
                return 1
            print(f"[OK] Removed token for '{args.credentials_id}'")
        else:
            ids = store.list_ids()
            if not ids:
                print("[INFO] No credentials stored")
            for credentials_id in ids:
                print(f"  {credentials_id}")
    except NotiferError as e:
        print(f"[ERROR] {e.message}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

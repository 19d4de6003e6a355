#!/usr/bin/env python3
"""CLI entry point for click-to-call.

Provides the ``clicktocall`` command (also ``python -m clicktocall.cli``):

- **dial**: Handle a ``tel:`` / ``callto:`` link (or a bare number) and ask
  the PBX to originate the call.  This is what the desktop runs on a click.
- **configure**: Save domain, extension, API key and auto-answer flag.
- **show**: Print the saved settings (key masked).
- **register** / **unregister**: Install or remove the XDG desktop entry
  that makes click-to-call the default ``tel:`` handler.

Examples:
    $ clicktocall configure --domain pbx.example.com --extension 101 --prompt-key
    $ clicktocall dial "tel:+1-555-123-4567"
    $ clicktocall "tel:+1-555-123-4567"          # as launched by some desktops
    $ clicktocall dial 030-123456 --timeout 3 --no-notify -v
    $ clicktocall register
"""

import argparse
import getpass
import os
import sys

from loguru import logger
from pydantic import SecretStr, ValidationError
from pydantic_settings import SettingsError
from tabulate import tabulate
import yaml

from clicktocall import __version__, configure_logging
from clicktocall.appconfig import load_app_config
from clicktocall.dispatcher import CallDispatcher
from clicktocall.errors import PersistenceError, RegistrationError
from clicktocall.handler import SchemeHandler
from clicktocall.notify import Notifier
from clicktocall.number import find_link_argument
from clicktocall.registration import register_handler, unregister_handler
from clicktocall.settings import Settings, SettingsStore

COMMANDS: tuple[str, ...] = ("dial", "configure", "show", "register", "unregister")


def _print_banner() -> None:
    """Log a startup banner with version and the effective file locations."""
    startup_rows = [
        ["version", __version__],
        ["settings", str(SettingsStore().path)],
        ["config", os.environ.get("CLICKTOCALL_CONFIG_PATH", "(default)")],
    ]
    table_str = tabulate(startup_rows, tablefmt="mixed_grid")
    logger.opt(raw=True).debug("\n{}\n", "click-to-call starting up\n" + table_str)


def _rewrite_bare_link(argv: list[str]) -> list[str]:
    """Turn ``clicktocall tel:...`` into ``clicktocall dial tel:...``."""
    if argv and argv[0] not in COMMANDS and not argv[0].startswith("-"):
        link = find_link_argument(argv)
        if link is not None:
            idx = argv.index(link)
            return ["dial", link, *argv[:idx], *argv[idx + 1 :]]
    return argv


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Arguments without the program name; ``sys.argv[1:]`` when omitted.

    Returns:
        Parsed namespace; ``command`` names the subcommand.
    """
    argv = _rewrite_bare_link(list(sys.argv[1:] if argv is None else argv))

    parser = argparse.ArgumentParser(
        prog="clicktocall",
        description="click-to-call — place calls on your PBX extension from tel: links",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="command", required=True)

    # ── dial subcommand ─────────────────────────────────────────────
    dial_parser = sub.add_parser("dial", help="Originate a call for a tel:/callto: link or number")
    dial_parser.add_argument("link", help="Link as delivered by the desktop, or a bare number")
    dial_parser.add_argument("--config", "-c", help="Path to YAML deployment config")
    dial_parser.add_argument("--timeout", "-t", dest="timeout_seconds", type=float, help="HTTP timeout in seconds")
    dial_parser.add_argument(
        "--no-notify", dest="notifications", action="store_false", default=None, help="No desktop notification"
    )
    dial_parser.add_argument(
        "--insecure", dest="verify_tls", action="store_false", default=None, help="Skip TLS certificate verification"
    )
    dial_parser.add_argument("--log-file", dest="log_file", help="Also log to this file")
    dial_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging (DEBUG level)")

    # ── configure subcommand ────────────────────────────────────────
    cfg_parser = sub.add_parser("configure", help="Save PBX settings")
    cfg_parser.add_argument("--domain", "-d", help="PBX hostname, e.g. pbx.example.com")
    cfg_parser.add_argument("--extension", "-e", help="SIP extension to originate from")
    key_group = cfg_parser.add_mutually_exclusive_group()
    key_group.add_argument("--key", "-k", help="PBX API key (visible in shell history, prefer --prompt-key)")
    key_group.add_argument("--prompt-key", dest="prompt_key", action="store_true", help="Read the API key from a prompt")
    aa_group = cfg_parser.add_mutually_exclusive_group()
    aa_group.add_argument("--auto-answer", dest="auto_answer", action="store_true", default=None, help="Enable auto-answer")
    aa_group.add_argument("--no-auto-answer", dest="auto_answer", action="store_false", help="Disable auto-answer")
    cfg_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging (DEBUG level)")

    # ── show subcommand ─────────────────────────────────────────────
    show_parser = sub.add_parser("show", help="Print saved settings (key masked)")
    show_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging (DEBUG level)")

    # ── register / unregister ───────────────────────────────────────
    reg_parser = sub.add_parser("register", help="Make click-to-call the default tel: handler (XDG desktops)")
    reg_parser.add_argument("--exec", dest="exec_command", help="Command to run for a link (default: this install)")
    reg_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging (DEBUG level)")
    unreg_parser = sub.add_parser("unregister", help="Remove the tel: handler desktop entry")
    unreg_parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging (DEBUG level)")

    return parser.parse_args(argv)


def cmd_dial(args: argparse.Namespace) -> int:
    """Execute the ``dial`` subcommand.

    Returns:
        Exit code: 0 if the PBX accepted the request, 1 otherwise.
    """
    if args.config:
        os.environ["CLICKTOCALL_CONFIG_PATH"] = args.config

    try:
        config = load_app_config(
            overrides={
                "timeout_seconds": args.timeout_seconds,
                "notifications": args.notifications,
                "verify_tls": args.verify_tls,
                "log_file": args.log_file,
            }
        )
    except (ValidationError, SettingsError, yaml.YAMLError, OSError) as exc:
        logger.error(f"Configuration error: {exc}")
        if args.notifications is not False:
            Notifier().show("Click-To-Call Not Configured", f"Configuration error: {exc}")
        return 1

    if config.log_file is not None:
        configure_logging(config.log_file)

    dispatcher = CallDispatcher(verify_tls=config.verify_tls, user_agent=f"{config.user_agent}/{__version__}")
    try:
        handler = SchemeHandler(SettingsStore(), dispatcher, Notifier(desktop=config.notifications), config)
        outcome = handler.handle(args.link)
    finally:
        dispatcher.close()

    return 0 if outcome.ok else 1


def cmd_configure(args: argparse.Namespace) -> int:
    """Execute the ``configure`` subcommand.

    Merges the given fields into the stored settings and saves them.

    Returns:
        Exit code: 0 on success, 1 if the settings could not be saved.
    """
    store = SettingsStore()
    current = store.load_or_default()

    updates: dict[str, object] = {}
    for field in ("domain", "extension", "auto_answer"):
        val = getattr(args, field, None)
        if val is not None:
            updates[field] = val
    if args.prompt_key:
        updates["key"] = SecretStr(getpass.getpass("PBX API key: "))
    elif args.key is not None:
        updates["key"] = SecretStr(args.key)

    try:
        settings = Settings(**{**current.model_dump(), **updates})
    except ValidationError as exc:
        logger.error(f"Invalid settings: {exc}")
        return 1

    try:
        path = store.save(settings)
    except PersistenceError as exc:
        logger.error(f"Settings not saved: {exc}")
        return 1

    missing = settings.missing_fields()
    if missing:
        logger.warning(f"Settings saved to {path}, but still missing: {', '.join(missing)}")
    else:
        logger.info(f"Settings saved to {path}")
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    """Execute the ``show`` subcommand."""
    store = SettingsStore()
    if not store.exists():
        print(f"No settings saved yet ({store.path}). Run 'clicktocall configure'.")
        return 1

    settings = store.load_or_default()
    rows = [
        ["domain", settings.domain or "-"],
        ["extension", settings.extension or "-"],
        ["key", "********" if settings.key.get_secret_value() else "-"],
        ["auto_answer", "yes" if settings.auto_answer else "no"],
        ["file", str(store.path)],
    ]
    print(tabulate(rows, tablefmt="simple"))
    return 0 if settings.is_complete else 1


def cmd_register(args: argparse.Namespace) -> int:
    """Execute the ``register`` subcommand."""
    try:
        path = register_handler(exec_command=args.exec_command)
    except RegistrationError as exc:
        logger.error(f"Registration failed: {exc}")
        return 1
    logger.info(f"click-to-call registered as tel:/callto: handler ({path})")
    return 0


def cmd_unregister(args: argparse.Namespace) -> int:
    """Execute the ``unregister`` subcommand."""
    try:
        unregister_handler()
    except RegistrationError as exc:
        logger.error(f"Unregistration failed: {exc}")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point: parse args, configure logging, and dispatch.

    Returns:
        Exit code: 0 on success, 1 on failure.
    """
    args = parse_args(argv)
    if args.verbose:
        os.environ.setdefault("LOGURU_LEVEL", "DEBUG")
    else:
        os.environ.setdefault("LOGURU_LEVEL", "INFO")
    configure_logging()

    _print_banner()

    if args.command == "dial":
        return cmd_dial(args)
    elif args.command == "configure":
        return cmd_configure(args)
    elif args.command == "show":
        return cmd_show(args)
    elif args.command == "register":
        return cmd_register(args)
    elif args.command == "unregister":
        return cmd_unregister(args)
    return 1


if __name__ == "__main__":
    sys.exit(main())

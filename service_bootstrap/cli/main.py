"""CLI entrypoint for service-bootstrap."""
import os
import sys
import asyncio
import argparse
from pathlib import Path

from .validators import validate_key_name
from ..errors import BootstrapError, MissingRequiredConfigurationError
from ..log import configure_logging
from ..secrets.domains.config_loader import default_config_path, load_defaults
from ..secrets.domains.config_store import ConfigStore
from ..secrets.domains.models import SECRET_KEYS, to_secret_name

VERSION = "0.1.0"


def _load_config(args) -> ConfigStore:
    """Environment layered over the YAML defaults file, if one is in effect."""
    defaults = load_defaults(getattr(args, "config", None))
    return ConfigStore.from_environ(defaults=defaults)


def _setup_logging(args) -> None:
    level = getattr(args, "log_level", None) or os.getenv("LOG_LEVEL") or "DEBUG"
    configure_logging(level)


def cmd_version(args):
    """Show version information."""
    print(f"service-bootstrap {VERSION}")


def cmd_run(args):
    """Run the full startup sequence."""
    from ..startup.workflows import orchestrator

    _setup_logging(args)
    try:
        config = _load_config(args)
    except BootstrapError as e:
        orchestrator.report_startup_error(e)
        sys.exit(orchestrator.EXIT_STARTUP_FAILED)

    sys.exit(orchestrator.main(config))


def cmd_check(args):
    """Resolve secrets and validate required configuration, without touching the database."""
    from ..startup.workflows import orchestrator

    _setup_logging(args)
    try:
        config = _load_config(args)
        outcomes = orchestrator.StartupSequence(config).resolve_and_validate()
    except MissingRequiredConfigurationError as e:
        orchestrator.report_missing_configuration(e)
        sys.exit(orchestrator.EXIT_STARTUP_FAILED)
    except BootstrapError as e:
        orchestrator.report_startup_error(e)
        sys.exit(orchestrator.EXIT_STARTUP_FAILED)

    for outcome in outcomes:
        print(outcome)
    print("Success: all required configuration present")


def cmd_secrets_list(args):
    """List secret keys and their Secret Manager names."""
    for key in SECRET_KEYS:
        print(f"{key} -> {to_secret_name(key)}")


def cmd_secrets_get(args):
    """Fetch one key from the secret store."""
    from ..secrets.workflows.secret_operations import fetch_secret

    validate_key_name(args.key)
    config = _load_config(args)
    value = asyncio.run(fetch_secret(config, args.key))

    if args.quiet:
        print(value)
    else:
        print(f"Secret '{to_secret_name(args.key)}': {value}")


def cmd_config_set_path(args):
    """Set config file path preference."""
    from ..secrets.domains.preferences import set_preference

    config_path = Path(args.path).resolve()

    if not config_path.is_file():
        print(f"Error: Config file does not exist: {config_path}", file=sys.stderr)
        sys.exit(1)

    set_preference("config_path", str(config_path))
    print(f"Config path set to: {config_path}")


def cmd_config_show(args):
    """Show current config file path."""
    from ..secrets.domains.preferences import get_preference

    config_path_pref = get_preference("config_path")
    if config_path_pref:
        suffix = "" if Path(config_path_pref).exists() else " (file not found)"
        print(f"Config path: {config_path_pref}{suffix}")
        print("Source: preference")
    else:
        config_path = default_config_path()
        suffix = "" if config_path.exists() else " (file not found)"
        print(f"Config path: {config_path}{suffix}")
        print("Source: default")


def cmd_config_clear(args):
    """Clear config path preference."""
    from ..secrets.domains.preferences import clear_preference

    clear_preference("config_path")
    print(f"Config path preference cleared. Will use default: {default_config_path()}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="service-bootstrap",
        description="Resolve startup secrets, validate configuration and check database connectivity",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (missing configuration, secret store or database failure)
  2 - Usage error (invalid arguments, invalid key name)

Environment variables:
  SECRET_MANAGER_URL - Secret Manager URL, e.g. https://secretmanager.googleapis.com/projects/<id>
  GCP_PROJECT        - Project ID when the URL has none
  K_SERVICE          - Set on Cloud Run; a missing SECRET_MANAGER_URL is then fatal
  LOG_LEVEL          - Log level for run/check (default DEBUG)
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("version", help="Show version information")

    for name, help_text in (
        ("run", "Run the full startup sequence"),
        ("check", "Resolve secrets and validate configuration only"),
    ):
        command_parser = subparsers.add_parser(name, help=help_text)
        command_parser.add_argument("--config", help="YAML defaults file (env: mapping)")
        command_parser.add_argument(
            "--log-level",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Log level (default: LOG_LEVEL env var or DEBUG)"
        )

    secrets_parser = subparsers.add_parser(
        "secrets",
        help="Secret store operations",
        description="Inspect the secret keys fetched at startup"
    )
    secrets_subparsers = secrets_parser.add_subparsers(dest="secrets_command")
    secrets_subparsers.add_parser("list", help="List keys and their secret names")

    get_parser = secrets_subparsers.add_parser("get", help="Fetch one key from the secret store")
    get_parser.add_argument("key", help="Configuration key, e.g. DB_PASSWORD")
    get_parser.add_argument("--config", help="YAML defaults file (env: mapping)")
    get_parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Output only the secret value"
    )

    config_parser = subparsers.add_parser(
        "config",
        help="Configuration file management",
        description=f"Manage the YAML defaults file (default: {default_config_path()})"
    )
    config_subparsers = config_parser.add_subparsers(dest="config_command")
    set_path_parser = config_subparsers.add_parser("set-path", help="Set config file path")
    set_path_parser.add_argument("path", help="Path to config file")
    config_subparsers.add_parser("show", help="Show current config path")
    config_subparsers.add_parser("clear", help="Clear config path preference")

    return parser


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors
        2 - Usage errors
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    handlers = {
        ("version", None): cmd_version,
        ("run", None): cmd_run,
        ("check", None): cmd_check,
        ("secrets", "list"): cmd_secrets_list,
        ("secrets", "get"): cmd_secrets_get,
        ("config", "set-path"): cmd_config_set_path,
        ("config", "show"): cmd_config_show,
        ("config", "clear"): cmd_config_clear,
    }
    subcommand = getattr(args, f"{args.command}_command", None) if args.command else None
    handler = handlers.get((args.command, subcommand))

    if handler is None:
        parser.print_help()
        sys.exit(2)

    try:
        handler(args)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()

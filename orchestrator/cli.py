"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the helper runtime.

- Provides argparse-based CLI
- Merges CLI options over environment configuration
- Builds the registry, transport and orchestrator
- Entry point for the application

============================================================
USAGE
============================================================
python -m orchestrator.cli
python -m orchestrator.cli --config config/config.yaml --log-level DEBUG
python -m orchestrator.cli --list-helpers

============================================================
"""

import argparse
import asyncio
import dataclasses
import logging
import sys
from typing import List, Optional

from .models import OrchestratorConfig, parse_descriptors
from .core import Orchestrator, new_session_id, setup_logging
from .registry import HelperRegistry
from core.config_loader import load_configuration, resolve_log_level
from core.constants import HOST_VERSION, SYSTEM_NAME
from helpers import BUILTIN_HELPERS
from transport import TransportServer


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog=SYSTEM_NAME,
        description="Server-side helper runtime for dashboard modules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                   # Run with config/config.yaml
  %(prog)s --config /etc/mirror/config.yaml  # Run with another config file
  %(prog)s --shutdown-deadline 5             # Allow 5s for graceful stop
  %(prog)s --list-helpers                    # Show registered helpers
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        metavar="PATH",
        help="Configuration file (default: $MIRROR_CONFIG_FILE or config/config.yaml)",
    )

    # --------------------------------------------------------
    # Lifecycle Options
    # --------------------------------------------------------
    lifecycle_group = parser.add_argument_group("Lifecycle Options")

    lifecycle_group.add_argument(
        "--shutdown-deadline",
        type=float,
        metavar="SECONDS",
        help="Hard deadline after the first termination signal (default: 3)",
    )

    lifecycle_group.add_argument(
        "--start-timeout",
        type=float,
        metavar="SECONDS",
        help="Per-helper start timeout (default: none)",
    )

    lifecycle_group.add_argument(
        "--modules-root",
        type=str,
        metavar="PATH",
        help="Directory helper base paths are resolved under (default: modules)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: log_level from the config file)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Logging format (default: text)",
    )

    # --------------------------------------------------------
    # Version/Info
    # --------------------------------------------------------
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {HOST_VERSION}",
    )

    parser.add_argument(
        "--list-helpers",
        action="store_true",
        help="Show registered helpers and exit",
    )

    return parser


# ============================================================
# CLI VALIDATION
# ============================================================

def validate_args(args: argparse.Namespace) -> List[str]:
    """
    Validate CLI arguments.

    Args:
        args: Parsed arguments

    Returns:
        List of validation errors
    """
    errors = []

    if args.shutdown_deadline is not None and args.shutdown_deadline <= 0:
        errors.append("--shutdown-deadline must be positive")

    if args.start_timeout is not None and args.start_timeout <= 0:
        errors.append("--start-timeout must be positive")

    return errors


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> OrchestratorConfig:
    """
    Build orchestrator configuration from environment and CLI.

    CLI options win over environment variables.
    """
    config = OrchestratorConfig.from_env()
    overrides = {
        "shutdown_deadline_seconds": args.shutdown_deadline,
        "start_timeout_seconds": args.start_timeout,
        "modules_root": args.modules_root,
        "log_level": args.log_level,
        "log_format": args.log_format,
    }
    return dataclasses.replace(
        config,
        **{key: value for key, value in overrides.items() if value is not None},
    )


def build_registry(config: OrchestratorConfig) -> HelperRegistry:
    """Create a registry holding the built-in and installed helpers."""
    registry = HelperRegistry(
        modules_root=config.modules_root,
        host_version=config.host_version,
    )
    registry.register_builtins(BUILTIN_HELPERS)
    registry.register_entry_points()
    return registry


# ============================================================
# SHOW HELPERS
# ============================================================

def show_helpers(registry: HelperRegistry) -> None:
    """Print registered helpers per namespace."""
    for namespace, names in registry.describe().items():
        print(f"\n{namespace} ({len(names)})")
        print("=" * 60)
        for name in names:
            print(f"  {name}")
    print()


def print_banner(config: OrchestratorConfig) -> None:
    """Print startup banner."""
    print()
    print("=" * 60)
    print(f"  {SYSTEM_NAME.upper()} {config.host_version}")
    print("=" * 60)
    print(f"  Modules root:      {config.modules_root}")
    print(f"  Shutdown deadline: {config.shutdown_deadline_seconds}s")
    print(f"  Start timeout:     {config.start_timeout_seconds or 'none'}")
    print("=" * 60)
    print()


# ============================================================
# MAIN ENTRY POINT
# ============================================================

async def async_main(args: argparse.Namespace) -> int:
    """
    Async main entry point.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    config = build_config(args)
    setup_logging(
        level=config.log_level,
        log_format=config.log_format,
        session_id=new_session_id(config.session_id_prefix),
    )

    configuration = load_configuration(args.config)
    if args.log_level is None:
        logging.getLogger().setLevel(resolve_log_level(configuration.get("log_level")))

    orchestrator = Orchestrator(
        config=config,
        registry=build_registry(config),
        transport=TransportServer(configuration),
    )

    try:
        return await orchestrator.run(parse_descriptors(configuration))
    except Exception as e:
        logging.getLogger(__name__).error(f"Fatal error: {e}", exc_info=True)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    if args.list_helpers:
        show_helpers(build_registry(build_config(args)))
        return 0

    print_banner(build_config(args))

    return asyncio.run(async_main(args))


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())

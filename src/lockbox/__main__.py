# Main Entry Point
#
# Runs the Lockbox API server. Configuration comes from the environment
# (or a .env file): LOCKBOX_ENCRYPTION_KEY and LOCKBOX_DATABASE_URL are
# required, the process refuses to start without them.

import argparse
import dataclasses
import sys

from . import __version__
from .core import EventSeverity, EventType, configure_audit_logger
from .exceptions import ConfigurationError


def main():
    """Main entry point for Lockbox."""
    parser = argparse.ArgumentParser(
        description="Lockbox - encrypted vault for banking credentials",
    )

    parser.add_argument(
        "--host",
        default=None,
        help="API host (default: LOCKBOX_HOST or 127.0.0.1)"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="API port (default: LOCKBOX_PORT or 8000)"
    )

    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to a .env file (default: search from the working directory)"
    )

    parser.add_argument(
        "--generate-key",
        action="store_true",
        help="Print a new random LOCKBOX_ENCRYPTION_KEY and exit"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Lockbox v{__version__}"
    )

    args = parser.parse_args()

    if args.generate_key:
        from .vault.encryption import generate_secret
        print(f"LOCKBOX_ENCRYPTION_KEY={generate_secret()}")
        return

    from .config import load_settings

    try:
        settings = load_settings(dotenv_path=args.env_file)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    overrides = {}
    if args.host:
        overrides["host"] = args.host
    if args.port:
        overrides["port"] = args.port
    if overrides:
        settings = dataclasses.replace(settings, **overrides)

    audit = configure_audit_logger(settings.audit_log_dir)

    print(f"Starting Lockbox API on {settings.host}:{settings.port}...")
    print("Press Ctrl+C to stop")

    from .api.main import start_api_server

    try:
        start_api_server(settings)
    except KeyboardInterrupt:
        print("\n\nShutting down...")
    except Exception as e:
        print(f"\n\nError: {str(e)}", file=sys.stderr)
        audit.log_event(
            event_type=EventType.SYSTEM_STOP,
            severity=EventSeverity.CRITICAL,
            message=f"Lockbox crashed: {str(e)}"
        )
        sys.exit(1)


if __name__ == "__main__":
    main()

"""drupal2wp Main Application."""

import asyncio
import signal
import sys

from pydantic import ValidationError

from drupal2wp import __version__, log
from drupal2wp.config.settings import get_config
from drupal2wp.core.cancellation import CancellationToken
from drupal2wp.core.runner import MigrationRunner
from drupal2wp.exceptions import (
    ConfigError,
    FatalMigrationError,
    MigrationError,
)
from drupal2wp.models.db.mapping import Family

USAGE = "usage: main.py [migrate | rollback FAMILY... | verify]"


def _setup_signal_handlers(token: CancellationToken) -> None:
    """Install SIGINT/SIGTERM handlers that cancel the run between records."""
    loop = asyncio.get_running_loop()

    def _on_signal(sig):
        name = signal.Signals(sig).name if sig else "UNKNOWN"
        log.info(f"drupal2wp: Received {name} signal, stopping after this record...")
        token.cancel(f"received {name}")

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda s=sig: _on_signal(s))
        except NotImplementedError:
            signal.signal(sig, lambda s, f: _on_signal(s))


async def run(argv: list[str]) -> int:
    """Run the requested command.

    Args:
        argv (list[str]): ``migrate`` (the default), ``rollback FAMILY...`` or
            ``verify``

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    command, *args = argv or ["migrate"]
    if command not in ("migrate", "rollback", "verify") or (
        command == "rollback" and not args
    ):
        log.error(USAGE)
        return 1

    token = CancellationToken()
    runner: MigrationRunner | None = None
    try:
        config = get_config()
        log.info(f"drupal2wp {__version__}: {config}")
        runner = MigrationRunner.from_config(config, token)
        _setup_signal_handlers(token)

        if command == "rollback":
            results = await runner.rollback(Family(a) for a in args)
        elif command == "verify":
            await runner.verifier.check_prerequisites()
            orphans = await runner.find_orphans()
            await runner.find_unmapped_references()
            return 1 if any(orphans.values()) else 0
        else:
            results = await runner.run()

        if token.is_cancelled:
            log.warning("drupal2wp: Run cancelled, partial results were kept")
        failed = sum(stats.errors for stats in results.values())
        if failed:
            log.warning(f"drupal2wp: Finished with {failed} failed records")
            return 1
        log.success("drupal2wp: Finished without errors")
        return 0
    except (ValidationError, ConfigError) as e:
        log.error(f"drupal2wp: Configuration error: {e}")
        return 1
    except ValueError as e:
        log.error(f"drupal2wp: Invalid argument: {e}")
        return 1
    except FatalMigrationError as e:
        log.error(f"drupal2wp: Run aborted: {e}")
        return 1
    except MigrationError as e:
        log.error(f"drupal2wp: Migration error: {e}", exc_info=True)
        return 1
    except asyncio.CancelledError:
        log.info("drupal2wp: Run cancelled")
        return 0
    finally:
        if runner is not None:
            await runner.close()


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv (list[str] | None): Command-line arguments, without the program

    Returns:
        int: Exit code (0 for success, 1 for error)
    """
    try:
        return asyncio.run(run(sys.argv[1:] if argv is None else argv))
    except KeyboardInterrupt:
        log.info("drupal2wp: Interrupted")
        return 0
    except Exception as e:
        log.error(f"drupal2wp: Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())

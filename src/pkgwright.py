"""pkgwright: install and manage packages from an npm-style registry.

Entry point for the command line interface.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from args import parse_args
from cli_config import EngineConfig
from cli_packages import HANDLERS, ConsolePolicy
from common.errors import (
    CatalogError,
    ConflictError,
    InstallError,
    PackageManagerError,
    ResolutionError,
    StateError,
)
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import ExitCodes
from engine import EngineContext

logger = logging.getLogger(__name__)


async def _run(args, config: EngineConfig) -> ExitCodes:
    policy = ConsolePolicy(assume_yes=getattr(args, "ASSUME_YES", False))
    ctx = EngineContext.create(config, policy=policy)
    try:
        return await HANDLERS[args.action](args, ctx)
    finally:
        await ctx.close()


def run(argv=None) -> int:
    """Run the CLI and return the process exit code."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL, args.LOG_FILE, args.QUIET)
    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action=args.action),
        )

    try:
        config = EngineConfig.load(args.CONFIG, args)
    except ValueError as exc:
        logger.error("Configuration error: %s", exc)
        return ExitCodes.FILE_ERROR.value

    try:
        code = asyncio.run(_run(args, config))
    except CatalogError as exc:
        logger.error("Registry error: %s", exc)
        return ExitCodes.CONNECTION_ERROR.value
    except ConflictError as exc:
        logger.error("Aborted because of dependency conflicts:\n%s", exc)
        return ExitCodes.ABORTED.value
    except (StateError, ResolutionError, InstallError) as exc:
        logger.error("%s", exc)
        return ExitCodes.OPERATION_FAILED.value
    except PackageManagerError as exc:
        logger.error("Operation failed: %s", exc)
        return ExitCodes.OPERATION_FAILED.value
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return ExitCodes.ABORTED.value

    logger.debug("CLI finished", extra=extra_context(event="function_exit", component="cli", outcome=code.name))
    return code.value


def main():
    """Main function of the program."""
    sys.exit(run())


if __name__ == "__main__":
    main()

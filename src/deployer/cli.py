"""Command-line entry point: one fail-fast build-and-deploy run."""
from __future__ import annotations

import logging
import os
import sys
from typing import Mapping, Optional

from dotenv import find_dotenv, load_dotenv

from src.common.command_runner import CommandRunner

from .config import DeployerConfig
from .errors import ConfigurationError
from .pipeline import DeployContext, DeployPipeline, DeployPipelineResult, create_state
from .steps import default_steps

EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def setup_logging(level: int = logging.INFO) -> None:
    """Configure logging for the deployer."""
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )
    logging.getLogger().addHandler(console_handler)
    logging.getLogger().setLevel(level)

    logging.getLogger('urllib3').setLevel(logging.WARNING)


def run_deploy(
    config: DeployerConfig,
    *,
    environ: Mapping[str, str],
    command_runner: Optional[CommandRunner] = None,
    logger: Optional[logging.Logger] = None,
) -> DeployPipelineResult:
    """Execute one pipeline run with an already validated configuration."""
    logger = logger or logging.getLogger(__name__)
    context = DeployContext(
        config=config,
        command_runner=command_runner or CommandRunner(logger),
        logger=logger,
        environ=dict(environ),
    )
    state = create_state(config)
    logger.info("Deploying %s", state.image.full_name)
    return DeployPipeline(default_steps()).run(state, context)


def print_summary(result: DeployPipelineResult) -> None:
    if not result.success:
        print(f"\nDeploy failed at step '{result.failed_step}':", file=sys.stderr)
        for issue in result.issues:
            if issue.is_error():
                print(f"  [{issue.code}] {issue.message}", file=sys.stderr)
        return

    print("")
    for endpoint in result.state.endpoints:
        print(endpoint)


def main() -> int:
    """Main entry point; behaviour is driven entirely by environment variables."""
    setup_logging()
    logger = logging.getLogger(__name__)

    if len(sys.argv) > 1:
        print("app-deploy takes no arguments; configure it through environment variables.", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    load_dotenv(find_dotenv(usecwd=True))
    environ = dict(os.environ)

    try:
        config = DeployerConfig.from_env(environ)
    except ConfigurationError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR

    try:
        result = run_deploy(config, environ=environ, logger=logger)
    except KeyboardInterrupt:
        logger.warning("Deploy interrupted; re-run to resume from a clean start")
        return EXIT_INTERRUPTED

    print_summary(result)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
tfdeployer - Main Entry Point

This is the thin orchestration layer that:
1. Parses the deployment parameters
2. Loads configuration and initializes modules
3. Runs the deployment workflow

All business logic is in the modules, following black box principles.
"""

import asyncio
import logging
import sys

from tfdeployer.config.provider import ConfigProvider, EnvConfigProvider
from tfdeployer.logging_config import configure_logging
from tfdeployer.modules.control import CommandFailed, ControlVolume
from tfdeployer.modules.dispatch import CommandDispatcher
from tfdeployer.modules.inputs import DeploymentInputs
from tfdeployer.modules.relay import LogRelay
from tfdeployer.modules.storage import ReleaseStorage
from tfdeployer.modules.workflow import DeploymentWorkflow

logger = logging.getLogger("tfdeployer.main")


async def run_deployment(inputs: DeploymentInputs, config_provider: ConfigProvider) -> None:
    """Wire the modules together and run one deployment."""
    volume_config = config_provider.get_volume_config()
    volume = ControlVolume(volume_config.root, release_workdir=volume_config.release_workdir)
    dispatcher = CommandDispatcher.from_config(volume, config_provider.get_dispatch_config())
    storage = ReleaseStorage(inputs.region)

    async with LogRelay.from_config(inputs.log_url, config_provider.get_relay_config()) as relay:
        if not relay.enabled:
            logger.info("No log URL configured, output is only echoed locally")
        workflow = DeploymentWorkflow(
            inputs,
            volume,
            dispatcher,
            relay,
            storage,
            runner_source=volume_config.runner_source,
        )
        await workflow.run()


def main():
    """Main entry point."""
    configure_logging()

    if len(sys.argv) != 2:
        logger.error("usage: tfdeployer JSON_PARAMS")
        sys.exit(1)

    try:
        inputs = DeploymentInputs.from_json(sys.argv[1])
    except ValueError as e:
        logger.error(f"error parsing input: {e}")
        sys.exit(1)

    try:
        asyncio.run(run_deployment(inputs, EnvConfigProvider()))
    except KeyboardInterrupt:
        logger.info("Deployer stopped by user")
        sys.exit(130)
    except CommandFailed as e:
        logger.error(f"Command {e.name} failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

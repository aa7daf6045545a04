import asyncio
import json
import logging
from contextlib import aclosing
from pathlib import Path
from typing import List, Optional, Union

from tfdeployer.modules.control import Command, CommandOutcome, ControlVolume, WorkflowError
from tfdeployer.modules.dispatch import CommandDispatcher
from tfdeployer.modules.framing import LineGroup
from tfdeployer.modules.inputs import DeploymentInputs, Operation
from tfdeployer.modules.relay import LogRelay
from tfdeployer.modules.storage import ReleaseStorage

from . import terraform

logger = logging.getLogger("tfdeployer.workflow")


class DeploymentWorkflow:
    """Sequences the Terraform steps of one deployment through the dispatcher."""

    def __init__(
        self,
        inputs: DeploymentInputs,
        volume: ControlVolume,
        dispatcher: CommandDispatcher,
        relay: LogRelay,
        storage: ReleaseStorage,
        runner_source: Optional[Union[str, Path]] = None,
    ):
        self.inputs = inputs
        self.volume = volume
        self.dispatcher = dispatcher
        self.relay = relay
        self.storage = storage
        self.runner_source = runner_source
        self._step = 0

    async def run(self) -> None:
        """
        Run the deployment end to end.

        Logic:
        1. Reset the control volume and install the runner launcher
        2. Download and unpack the release
        3. terraform init and workspace selection
        4. Write tfvars, then plan (and apply) depending on the operation
        5. Post the terminal log message
        6. Always mark the control volume done so the runner exits
        """
        self.volume.reset()
        if self.runner_source:
            self.volume.install_runner(self.runner_source)

        try:
            await self._download_release()
            await self._terraform_init()
            self._write_tfvars()

            if self.inputs.operation == Operation.PLAN:
                await self.stream_command("terraform-plan", terraform.plan_args())
            elif self.inputs.operation == Operation.APPLY:
                await self.stream_command(
                    "terraform-plan", terraform.plan_args(out=terraform.PLAN_FILE)
                )
                await self.stream_command("terraform-apply", terraform.apply_args())

            await self.relay.finish()
            logger.info(f"Deployment {self.inputs.operation.value} finished")
        finally:
            try:
                self.volume.mark_done()
            except OSError as e:
                logger.error(f"Failed to mark done: {e}")

    async def stream_command(self, name: str, args: List[str], shell: bool = False) -> CommandOutcome:
        """
        Run one command and relay its output as it arrives.

        A failed command is relayed as the terminal post of the log session
        and its error is raised, which ends the workflow.
        """
        self._step += 1
        command = Command(name=f"{self._step:02d}-{name}", args=tuple(args), shell=shell)
        logger.info(f"Running command:\n\n    {command}\n")

        command_run = await self.dispatcher.dispatch(command)
        async with aclosing(command_run.line_groups()) as groups:
            async for group in groups:
                await self.relay.send(group)

        outcome = command_run.outcome
        if not outcome.succeeded:
            await self.relay.send(LineGroup(error=outcome.error))
        return outcome

    async def _download_release(self) -> None:
        try:
            await asyncio.to_thread(
                self.storage.download_release,
                self.inputs.release_bucket,
                self.inputs.release_key,
                self.volume.release_dir,
            )
        except Exception as e:
            raise WorkflowError(f"failed to download terraform release: {e}") from e

    async def _terraform_init(self) -> None:
        location = self.inputs.state_location
        state_exists = await asyncio.to_thread(
            self.storage.state_exists, self.inputs.tf_state_bucket, self.inputs.state_key
        )
        if self.inputs.new_state and state_exists:
            raise WorkflowError(
                f"expected to create new terraform state, but state already exists ({location})"
            )
        if not self.inputs.new_state and not state_exists:
            raise WorkflowError(
                f"expected to use existing terraform state, but state does not exist ({location})"
            )

        await self.stream_command("terraform-init", terraform.init_args(self.inputs))
        await self.stream_command(
            "select-workspace",
            [terraform.select_workspace_expr(self.inputs.workspace)],
            shell=True,
        )

    def _write_tfvars(self) -> None:
        path = self.volume.tfvars_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.inputs.tf_vars))
        logger.debug(f"Wrote {path}")

"""Terraform command lines used by the deployment workflow."""

import shlex
from typing import List, Optional

from tfdeployer.modules.inputs import DeploymentInputs

TFVARS_FILE = "tfvars.json"
PLAN_FILE = "tfplan"


def init_args(inputs: DeploymentInputs) -> List[str]:
    return [
        "terraform",
        "init",
        "-reconfigure",
        f"-backend-config=bucket={inputs.tf_state_bucket}",
        f"-backend-config=dynamodb_table={inputs.tf_locks_table}",
        f"-backend-config=workspace_key_prefix={inputs.service_name}",
        "-backend-config=key=terraform.tfstate",
        f"-backend-config=region={inputs.region}",
    ]


def select_workspace_expr(workspace: str) -> str:
    """Shell expression that selects the workspace, creating it if needed."""
    quoted = shlex.quote(workspace)
    return f"terraform workspace select {quoted} || terraform workspace new {quoted}"


def plan_args(out: Optional[str] = None) -> List[str]:
    args = ["terraform", "plan", f"-var-file={TFVARS_FILE}"]
    if out:
        args.append(f"-out={out}")
    return args


def apply_args(plan_file: str = PLAN_FILE) -> List[str]:
    return ["terraform", "apply", plan_file]

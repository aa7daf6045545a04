"""
Deployment invocation parameters.

The deployer is started with a single JSON document describing what to
deploy and where its state lives.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Operation(str, Enum):
    """What the deployment should do after terraform init."""

    INIT = "init"
    PLAN = "plan"
    APPLY = "apply"


class DeploymentInputs(BaseModel):
    """Input parameters for one deployment run."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    release_bucket: str = Field(..., alias="releaseBucket", description="S3 bucket holding release archives")
    release_key: str = Field(..., alias="releaseKey", description="S3 key of the release archive")
    tf_state_bucket: str = Field(..., alias="tfStateBucket", description="S3 bucket for Terraform state")
    tf_locks_table: str = Field(..., alias="tfLocksTable", description="DynamoDB table for Terraform locks")
    service_name: str = Field(..., alias="serviceName", description="Name of the service being deployed")
    workspace: str = Field(..., description="Terraform workspace name")
    region: str = Field(..., description="AWS region")
    operation: Operation = Field(default=Operation.INIT, description="Deployment operation")
    new_state: bool = Field(
        default=False,
        alias="newState",
        description="Whether the run is expected to create new Terraform state",
    )
    log_url: Optional[str] = Field(None, alias="logURL", description="First log session endpoint")
    tf_vars: Dict[str, Any] = Field(default_factory=dict, alias="tfVars", description="Terraform variables")

    @field_validator(
        "release_bucket",
        "release_key",
        "tf_state_bucket",
        "tf_locks_table",
        "service_name",
        "workspace",
        "region",
    )
    @classmethod
    def validate_required(cls, v, info):
        """Required parameters must not be empty."""
        if not v.strip():
            field = cls.model_fields[info.field_name]
            raise ValueError(f"missing {field.alias or info.field_name}")
        return v

    @field_validator("log_url")
    @classmethod
    def validate_log_url(cls, v):
        """An empty log URL disables log forwarding."""
        if v is not None and not v.strip():
            return None
        return v

    @classmethod
    def from_json(cls, inputs_json: str) -> "DeploymentInputs":
        """
        Parse and validate the JSON parameter document.

        Raises:
            ValueError: If the document is not valid JSON or fails validation
        """
        return cls.model_validate_json(inputs_json)

    @property
    def state_key(self) -> str:
        """S3 key of this workspace's Terraform state."""
        return f"{self.service_name}/{self.workspace}/terraform.tfstate"

    @property
    def state_location(self) -> str:
        return f"s3://{self.tf_state_bucket}/{self.state_key}"

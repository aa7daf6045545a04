"""
Workflow Module - Black Box Interface

Purpose: Sequence the Terraform steps of a deployment
Interface: DeploymentWorkflow.run(), DeploymentWorkflow.stream_command()
Hidden: Terraform argument construction, step naming, state preconditions

Thin layer on top of dispatch and relay; it owns everything Terraform
specific, none of which the control channel inspects.
"""

from .workflow import DeploymentWorkflow

__all__ = ["DeploymentWorkflow"]

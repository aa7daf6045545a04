"""
Inputs Module - Black Box Interface

Purpose: Parse and validate the deployer's invocation parameters
Interface: DeploymentInputs.from_json(), Operation
Hidden: JSON field naming, validation rules
"""

from .models import DeploymentInputs, Operation

__all__ = ["DeploymentInputs", "Operation"]

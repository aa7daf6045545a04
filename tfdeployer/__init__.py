"""
tfdeployer - Terraform deployment supervisor

Runs a Terraform workflow inside a separate execution container and streams
its output to a remote log collector.

Architecture:
- The deployer and the runner share nothing but the control volume
- Commands are handed over as queue files, output flows back over
  per-command unix sockets, exit codes come back as status files
- Each module is self-contained with a small public interface

Modules:
- control: Control volume layout, command model, error taxonomy
- framing: Byte stream to line group framing
- dispatch: Deployer side of the control channel
- executor: Runner side of the control channel
- relay: Upstream log forwarding with cursor rotation
- workflow: Terraform init/plan/apply sequencing
- inputs: Deployment invocation parameters
- storage: Release archive and state lookups in S3
- receiver: Development log collector
"""

__version__ = "1.0.0"

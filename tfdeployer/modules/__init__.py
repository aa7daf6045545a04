"""
tfdeployer Modules - Black Box Architecture

Each module is a self-contained black box with:
- Clear interface (public API)
- Hidden implementation details
- Single responsibility

Modules communicate only through well-defined interfaces. The control
volume is the only thing the deployer and runner sides have in common.
"""

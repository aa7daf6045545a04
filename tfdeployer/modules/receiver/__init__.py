"""
Receiver Module - Black Box Interface

Purpose: Local stand-in for the remote log collector
Interface: create_receiver_app(), main()
Hidden: Session bookkeeping, sequence enforcement

Not used by the deployer itself; it serves the other end of the relay.
"""

from .app import create_receiver_app

__all__ = ["create_receiver_app"]

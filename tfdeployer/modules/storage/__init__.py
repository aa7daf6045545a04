"""
Storage Module - Black Box Interface

Purpose: Object storage access for release archives and Terraform state
Interface: ReleaseStorage.download_release(), ReleaseStorage.state_exists()
Hidden: S3 client construction, archive extraction

Can be replaced with any object store without affecting the control channel.
"""

from .s3 import ReleaseStorage, extract_archive

__all__ = ["ReleaseStorage", "extract_archive"]

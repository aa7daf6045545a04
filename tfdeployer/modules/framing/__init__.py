"""
Framing Module - Black Box Interface

Purpose: Turn a raw output stream into groups of complete lines
Interface: LineFramer.feed(), LineFramer.finish(), stream_line_groups()
Hidden: Carry-over buffering of partial lines
"""

from .framer import READ_SIZE, LineFramer, LineGroup, stream_line_groups

__all__ = ["LineFramer", "LineGroup", "stream_line_groups", "READ_SIZE"]

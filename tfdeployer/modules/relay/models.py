"""
Log endpoint wire models.

The collector receives one LogData per line group and answers each
non-terminal post with the URL the next post must go to.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class LogData(BaseModel):
    """Body of a log post."""

    lines: List[str] = Field(default_factory=list, description="Output lines, without separators")
    done: bool = Field(default=False, description="True for the last post of a session")
    error: Optional[str] = Field(None, description="Error that ended the session, if any")


class LogContinuation(BaseModel):
    """Collector response naming the next endpoint of the session."""

    model_config = ConfigDict(populate_by_name=True)

    continue_url: str = Field(..., alias="continue", description="Endpoint for the next post")

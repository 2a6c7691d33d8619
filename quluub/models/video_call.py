"""
quluub/models/video_call.py

Purpose: Video call lifecycle events reported by the client
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class VideoCallStarted(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["started"] = "started"
    call_url: Optional[str] = Field(default=None, alias="callUrl")


class VideoCallEnded(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: Literal["ended"] = "ended"
    duration_seconds: int = Field(default=0, ge=0, alias="durationSeconds")


VideoCallEvent = Annotated[Union[VideoCallStarted, VideoCallEnded], Field(discriminator="status")]

"""Batch execution configuration models."""

from pydantic import BaseModel, Field


class ExecutionConfig(BaseModel):
    """Configuration for the batch engine run loop."""

    batch_size: int = Field(
        default=50,
        ge=1,
        description="Records processed between progress writes and event loop yields",
    )
    stop_reason: str = Field(
        default="user requested stop",
        description="Reason recorded with interrupts issued by the stop operation",
    )

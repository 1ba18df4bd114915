"""
Bulk search job states.

A job is a tagged union on ``status`` so illegal combinations can't be built:
a completed job always has results, a failed job always has errors.
Completed jobs may still carry per-record errors (partial failure).
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, Field

from app.schemas.land_registry import OwnershipRecord, PricePaidRecord, Property

JobStatus = Literal["pending", "processing", "completed", "failed"]


class BulkResults(BaseModel):
    properties: list[Property] = Field(default_factory=list)
    ownership_records: list[OwnershipRecord] = Field(default_factory=list)
    price_paid_records: list[PricePaidRecord] = Field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.properties) + len(self.ownership_records) + len(self.price_paid_records)


class _JobBase(BaseModel):
    request_id: str = Field(min_length=1)
    total_records: int = 0
    processed_records: int = 0
    submitted_at: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("submitted_at", "created_at")
    )
    completed_at: Optional[str] = None
    errors: list[str] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return False


class PendingJob(_JobBase):
    status: Literal["pending"]


class ProcessingJob(_JobBase):
    status: Literal["processing"]


class CompletedJob(_JobBase):
    status: Literal["completed"]
    results: BulkResults

    @property
    def is_terminal(self) -> bool:
        return True


class FailedJob(_JobBase):
    status: Literal["failed"]
    errors: list[str] = Field(min_length=1)

    @property
    def is_terminal(self) -> bool:
        return True


BulkJob = Annotated[
    Union[PendingJob, ProcessingJob, CompletedJob, FailedJob],
    Field(discriminator="status"),
]

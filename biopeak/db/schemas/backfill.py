from datetime import datetime
from typing import Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BackfillRequest(CamelModel):
    period_start: datetime
    period_end: datetime
    summary_types: List[str] = Field(default_factory=lambda: ["dailies"])


class BackfillRequestResult(CamelModel):
    summary_type: str
    status: Literal["requested", "existing"]
    job_id: UUID
    job_status: str
    message: str


class BackfillRequestResponse(CamelModel):
    message: str
    results: List[BackfillRequestResult]
    period: Dict[str, datetime]


class BackfillJobRead(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    user_id: UUID
    period_start: datetime
    period_end: datetime
    summary_type: str
    status: str
    requested_at: datetime
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    activities_processed: int = 0
    retry_count: int = 0
    max_retries: int = 3
    next_retry_at: Optional[datetime] = None
    rate_limit_reset_at: Optional[datetime] = None
    is_duplicate: bool = False


class SummaryTypeCounts(CamelModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0
    errors: int = 0


class BackfillSummary(CamelModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    pending: int = 0
    errors: int = 0
    total_activities_processed: int = 0
    by_summary_type: Dict[str, SummaryTypeCounts] = Field(default_factory=dict)


class BackfillStatusResponse(CamelModel):
    backfill_status: List[BackfillJobRead]
    summary: BackfillSummary


class ProcessorRequest(CamelModel):
    user_id: Optional[UUID] = None
    batch_size: int = Field(default=10, ge=1, le=100)


class ProcessorResult(CamelModel):
    processed: int = 0
    errors: int = 0
    rate_limited: bool = False
    rate_limit_reset: Optional[datetime] = None
    total_found: int = 0


class RecalculationDetail(CamelModel):
    backfill_id: UUID
    user_id: UUID
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    old_activities: Optional[int] = None
    new_activities: Optional[int] = None
    hours_since_request: Optional[float] = None
    error: Optional[str] = None


class RecalculationResult(CamelModel):
    processed: int = 0
    completed: int = 0
    errors: int = 0
    details: List[RecalculationDetail] = Field(default_factory=list)


class CleanupResult(CamelModel):
    processed: int = 0
    retried: int = 0
    timed_out: int = 0
    errors: int = 0

"""Export checkpoint model."""

from __future__ import annotations

from typing import Literal

from pydantic import AwareDatetime
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from auditsync.sync_status.schemas import DestinationType


class ExportCheckpoint(BaseModel):
    """Last confirmed export cursor for one destination type."""

    model_config = ConfigDict(frozen=True)

    last_export_timestamp: AwareDatetime = Field(
        description="Events at or after this instant are exported next run.",
    )
    last_export_count: int = Field(ge=0)
    last_export_date: str = Field(description="UTC date of the export, YYYY-MM-DD.")
    export_type: DestinationType
    status: Literal["success", "failed"] = "success"
    error_message: str | None = None

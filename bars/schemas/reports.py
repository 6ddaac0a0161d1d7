from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

class ReportIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    period: Optional[str] = "day"
    # ISO dates, only read for the custom period
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None

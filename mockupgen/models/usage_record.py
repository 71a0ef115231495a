"""
mockupgen/models/usage_record.py

UsageRecord model for the usage ledger.
"""

from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


class UsageRecord(BaseModel):
    """
    One appended unit of accounting.

    Rows are additive: the usage for a period is the sum of `count` over
    every row for the same user, feature and period. Rows are never updated.

    Feature keys:
    - mockupsPerMonth: AI mockup generation
    - bulkGeneration: bulk mockup generation run
    - gemini_image_generation / gpt_image_generation / gpt_image_editing
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    feature_key: str
    period_start: datetime
    count: int = Field(gt=0)
    occurred_at: datetime
    metadata: Optional[Dict[str, Any]] = None


class UsageReading(BaseModel):
    """Aggregate read plus whether the store had to be bypassed."""
    model_config = ConfigDict(frozen=True)

    used: int = 0
    degraded: bool = False

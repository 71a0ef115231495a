"""
mockupgen/models/subscription.py

Subscription mirror. The billing provider owns these rows; this service
only reads them to resolve a user's plan.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class Subscription(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    plan: str
    status: str  # active | canceled | expired | past_due
    payment_reference: Optional[str] = None
    is_annual: bool = False
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

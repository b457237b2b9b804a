from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import date, datetime

from .models import AlertType


# Provider catalogue

class CredentialField(BaseModel):
    name: str
    label: str
    type: str
    required: bool
    placeholder: Optional[str] = None
    help_text: Optional[str] = None


class Provider(BaseModel):
    id: str
    name: str
    description: str
    color: str
    active: bool
    credential_fields: List[CredentialField]


# Connections

class ConnectionCreate(BaseModel):
    provider: str
    credentials: Dict[str, str]


class ConnectionTestRequest(BaseModel):
    provider: str
    credentials: Dict[str, str]


class ConnectionTestResponse(BaseModel):
    success: bool
    error: Optional[str] = None


class Connection(BaseModel):
    """Connection as returned to the owner; credentials are never included."""
    id: int
    provider: str
    is_active: bool
    last_synced_at: Optional[datetime] = None
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SyncResponse(BaseModel):
    success: bool
    records_count: int = Field(0, serialization_alias="recordsCount")
    error: Optional[str] = None


# Alerts

class AlertCreate(BaseModel):
    type: AlertType
    provider: Optional[str] = None
    threshold_cents: int = Field(..., gt=0)


class AlertUpdate(BaseModel):
    is_active: bool


class Alert(BaseModel):
    id: int
    type: AlertType
    provider: Optional[str] = None
    threshold_cents: int
    is_active: bool
    last_triggered_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AlertHistory(BaseModel):
    id: int
    alert_id: int
    triggered_at: datetime
    amount_cents: int
    message: Optional[str] = None

    class Config:
        from_attributes = True


# Dashboard

class ConnectionSpend(BaseModel):
    connection_id: int
    provider: str
    is_active: bool
    last_synced_at: Optional[datetime] = None
    last_error: Optional[str] = None
    current_month_cents: int
    previous_month_cents: int
    change_percent: int


class DailySpend(BaseModel):
    day: date
    total_cents: int
    by_provider: Dict[str, int]


class Dashboard(BaseModel):
    current_month_cents: int
    previous_month_cents: int
    projected_month_cents: int
    connections: List[ConnectionSpend]
    daily: List[DailySpend]


# Scheduled jobs

class CronSyncResponse(BaseModel):
    message: str
    success: int
    failed: int
    errors: List[str]


class CronAlertResponse(BaseModel):
    message: str
    triggered: int

"""
SLA Application DTOs
=====================

Data Transfer Objects for the JSON API layer.

These Pydantic models handle serialization for API responses.
Following YAGNI - only what's needed.
"""

from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import datetime


# ========== Type Aliases for Literals ==========
RegimeStr = Literal["raw", "business-hour"]
SLAMetricStr = Literal["response", "resolve"]
VerdictStr = Literal["comply", "violate"]


# ========== Response DTOs ==========

class SeriesSummary(BaseModel):
    """Comply/violate totals for one regime and metric."""
    regime: RegimeStr
    metric: SLAMetricStr
    comply: int = Field(..., description="Tickets complying")
    violate: int = Field(..., description="Tickets violating (including no target / not reached)")
    compliance_rate: float = Field(..., description="Percentage of tickets complying")


class DashboardResponse(BaseModel):
    """Response model for dashboard."""
    generated_at: Optional[datetime] = Field(None, description="When the last compliance pass ran")
    ticket_class: Optional[str] = Field(None, description="Class filter, if any")
    total_tickets: int = Field(..., description="Tickets in the last pass (after filter)")
    resolution_failures: int = Field(..., description="Tickets (all classes) scored without targets after a failed SLT lookup")
    series: List[SeriesSummary] = Field(default_factory=list)


class DeadlineResponse(BaseModel):
    """Resolved targets in seconds (0 means no target)."""
    tto_seconds: float
    ttr_seconds: float


class VerdictResponse(BaseModel):
    """One (regime, metric) verdict."""
    regime: RegimeStr
    metric: SLAMetricStr
    elapsed_seconds: float
    verdict: VerdictStr


class TicketComplianceResponse(BaseModel):
    """Response model for a single ticket's compliance."""
    ref: str
    ticket_class: str
    priority: str
    service: str
    deadline: DeadlineResponse
    compliance: List[VerdictResponse]

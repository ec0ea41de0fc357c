"""Pydantic models for the dashboard API."""

from __future__ import annotations

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field


class LegendStatModel(BaseModel):
    mean: Optional[float] = None
    max: Optional[float] = None
    last: Optional[float] = None


class SeriesPayload(BaseModel):
    name: str
    color: Optional[str] = None
    data: List[Tuple[int, Optional[float]]] = Field(
        default_factory=list, description="[timestamp_ms, value] pairs (non-finite values as null)"
    )
    stats: LegendStatModel = Field(default_factory=LegendStatModel)
    legend: str = ""


class ChartResponse(BaseModel):
    title: str = ""
    error: Optional[str] = None
    generation: int = 0
    series: List[SeriesPayload] = Field(default_factory=list)
    meta: dict = Field(default_factory=dict)


class QueryRequest(BaseModel):
    backend: Optional[str] = None
    query: Optional[str] = None
    range: Optional[str] = None
    start: Optional[str] = None
    end: Optional[str] = None
    step: Optional[float] = None
    mode: Optional[str] = Field(None, description="Tabular grouping mode: generic or composite")
    refresh_s: float = Field(0.0, ge=0)


class RefreshRequest(BaseModel):
    interval_s: float = Field(..., ge=0)


class SessionResponse(BaseModel):
    id: str
    refresh_s: float = 0.0
    chart: ChartResponse

"""Read-only analytics endpoints under ``/api/analytics``."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.api.dependencies import analytics_service
from app.api.responses import respond
from app.models.enums import AnalyticsPeriod
from app.services.analytics_service import DEFAULT_TREND_MONTHS, MAX_TREND_MONTHS, AnalyticsService

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


@router.get("/dashboard")
def get_dashboard(service: AnalyticsService = Depends(analytics_service)) -> JSONResponse:
    return respond(service.get_dashboard())


@router.get("/spending-insights")
def get_spending_insights(
    period: Optional[AnalyticsPeriod] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: AnalyticsService = Depends(analytics_service),
) -> JSONResponse:
    return respond(service.get_spending_insights(period, start_date, end_date))


@router.get("/budget-performance")
def get_budget_performance(
    period: Optional[AnalyticsPeriod] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: AnalyticsService = Depends(analytics_service),
) -> JSONResponse:
    return respond(service.get_budget_performance(period, start_date, end_date))


@router.get("/trends")
def get_trends(
    months: int = Query(DEFAULT_TREND_MONTHS, ge=1, le=MAX_TREND_MONTHS),
    service: AnalyticsService = Depends(analytics_service),
) -> JSONResponse:
    return respond(service.get_trends(months))


@router.get("/health-score")
def get_health_score(
    period: Optional[AnalyticsPeriod] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: AnalyticsService = Depends(analytics_service),
) -> JSONResponse:
    return respond(service.get_health_score(period, start_date, end_date))


@router.get("/comparison")
def get_comparison(
    period: Optional[AnalyticsPeriod] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: AnalyticsService = Depends(analytics_service),
) -> JSONResponse:
    return respond(service.get_comparison(period, start_date, end_date))


@router.get("/overview")
def get_overview(service: AnalyticsService = Depends(analytics_service)) -> JSONResponse:
    return respond(service.get_overview())

"""
Biohacker - Lab & Insight Endpoints

Lab report storage, AI lab-text extraction and AI insights.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date
import logging

from biohacker.deps import get_database, get_llm_client, get_settings
from biohacker.insights_service import InsightsService, InsightParseError
from biohacker.middleware.auth import get_current_user
from biohacker.models.documents import LabMarker, LabReport

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateLabReportRequest(BaseModel):
    """Request to store a lab report"""
    test_date: Optional[date] = None
    lab_name: Optional[str] = None
    markers: List[LabMarker] = Field(..., min_length=1)


class ExtractLabRequest(BaseModel):
    """Raw text of a lab report (already pulled out of the PDF)"""
    text: str


def _service() -> InsightsService:
    settings = get_settings()
    return InsightsService(
        get_database(),
        get_llm_client(),
        model=settings.llm_model,
        extraction_model=settings.extraction_model if settings.llm_provider != "ollama" else settings.llm_model,
    )


@router.post("/labs")
async def create_lab_report(
    body: CreateLabReportRequest,
    user: dict = Depends(get_current_user)
):
    """Store a lab report"""
    service = _service()
    report = await service.save_lab_report(LabReport(user_id=user["user_id"], **body.model_dump()))
    return {"report_id": report.report_id, "markers": len(report.markers)}


@router.get("/labs")
async def list_lab_reports(
    limit: int = Query(default=50, ge=1, le=200),
    user: dict = Depends(get_current_user)
):
    """List user's lab reports, oldest first"""
    reports = await _service().get_lab_reports(user["user_id"], limit=limit)
    return [r.model_dump(mode="json") for r in reports]


@router.post("/labs/extract")
async def extract_lab_report(
    body: ExtractLabRequest,
    user: dict = Depends(get_current_user)
):
    """Structured markers from lab report text, for review before saving"""
    try:
        report = await _service().extract_lab_report(user["user_id"], body.text)
    except InsightParseError as e:
        logger.error(f"Lab extraction error: {e}")
        raise HTTPException(502, "Failed to extract lab data")

    return report.model_dump(mode="json", exclude={"report_id", "user_id", "created_at"})


@router.post("/insights")
async def generate_insights(user: dict = Depends(get_current_user)):
    """AI insights correlating cycles with lab results"""
    try:
        insights = await _service().generate_insights(user["user_id"])
    except InsightParseError as e:
        logger.error(f"AI insights error: {e}")
        raise HTTPException(502, "Failed to generate insights")

    return {"insights": [i.model_dump(mode="json") for i in insights]}

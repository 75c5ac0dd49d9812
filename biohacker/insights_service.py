"""
Biohacker - Insights Service

LLM-backed lab report extraction and narrative insights over a user's
cycles and lab history.
"""

from typing import Optional, List, Dict, Any
import json
import logging
import re

from biohacker.models.documents import Cycle, Insight, LabMarker, LabReport
from biohacker.protocols.llm import ILLMClient

logger = logging.getLogger(__name__)

# Markers that get called out in the insights prompt
KEY_MARKERS = [
    "Testosterone Total",
    "IGF-1",
    "CRP (High Sensitivity)",
    "HDL Cholesterol",
]

MIN_REPORT_TEXT = 50

JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class InsufficientDataError(ValueError):
    """Not enough history to analyse."""


class InsightParseError(Exception):
    """The model did not return the JSON we asked for."""


def extract_json_object(text: str) -> Dict[str, Any]:
    """First {...} block in a model response, tolerant of prose or fences"""
    match = JSON_OBJECT.search(text or "")
    if not match:
        raise InsightParseError("Could not find JSON in model response")
    try:
        return json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise InsightParseError(f"Invalid JSON in model response: {e}") from e


def summarize_cycles(cycles: List[Cycle]) -> str:
    lines = []
    for c in cycles:
        adherence = c.adherence_percent()
        adherence_str = f"{adherence:.0f}%" if adherence is not None else "n/a"
        lines.append(
            f"{c.peptide_name} ({c.dose_amount}): {c.start_date.isoformat()} to "
            f"{c.end_date.isoformat()}, status: {c.status.value}, adherence: {adherence_str}"
        )
    return "\n".join(lines)


def _marker_text(marker: LabMarker) -> str:
    text = f"{marker.marker_name}: {marker.value} {marker.unit or ''}".strip()
    if marker.is_out_of_range():
        text += " (out of range)"
    return text


def summarize_labs(reports: List[LabReport]) -> str:
    lines = []
    for r in reports:
        markers = [m for m in r.markers if m.marker_name in KEY_MARKERS] or r.markers[:5]
        marker_str = ", ".join(_marker_text(m) for m in markers)
        test_date = r.test_date.isoformat() if r.test_date else "undated"
        lines.append(f"{test_date} ({r.lab_name or 'unknown lab'}): {marker_str}")
    return "\n".join(lines)


def build_insights_prompt(cycles: List[Cycle], reports: List[LabReport]) -> str:
    return f"""You are an expert peptide therapy analyst. Analyze this user's cycle and lab data to provide actionable insights.

**CYCLES:**
{summarize_cycles(cycles)}

**LAB RESULTS:**
{summarize_labs(reports)}

Provide 3-5 insights in this EXACT JSON format:
{{
  "insights": [
    {{
      "type": "positive" | "neutral" | "caution",
      "title": "Short title (5-8 words)",
      "insight": "Detailed observation (2-3 sentences)",
      "recommendation": "Actionable next step (1-2 sentences)"
    }}
  ]
}}

Focus on:
1. Correlations between specific cycles and lab improvements
2. Patterns in adherence and outcomes
3. Timing relationships (cycles 3 months before lab improvements)
4. Stacking synergies (peptides used together)
5. Safety considerations (any concerning trends)

Return ONLY the JSON, no markdown formatting."""


def build_extraction_prompt(text: str) -> str:
    return f"""Extract ALL lab test markers from this medical lab report text. For each marker, extract:
- marker_name: The biomarker name (e.g., "Testosterone", "Glucose", "Cholesterol")
- value: The numeric value
- unit: The unit of measurement (e.g., "ng/dL", "mg/dL", "pg/mL")
- reference_min: Lower bound of reference range (if available)
- reference_max: Upper bound of reference range (if available)

Also extract:
- test_date: The date of the test (YYYY-MM-DD format)
- lab_name: The name of the laboratory (if visible)

Return ONLY valid JSON in this exact format:
{{
  "test_date": "YYYY-MM-DD",
  "lab_name": "Lab Name",
  "markers": [
    {{"marker_name": "Testosterone", "value": 450, "unit": "ng/dL", "reference_min": 300, "reference_max": 1000}}
  ]
}}

If you can't determine a field, use null.

Here is the lab report text:

{text}"""


class InsightsService:
    """
    Service for AI analysis of a user's history

    Handles:
    - Lab report storage
    - Lab report text -> structured markers
    - Cycle/lab correlation insights
    """

    def __init__(
        self,
        db,
        llm: ILLMClient,
        model: str = "gpt-4o",
        extraction_model: str = "gpt-4o-mini"
    ):
        self.db = db
        self.llm = llm
        self.model = model
        self.extraction_model = extraction_model

    # =========================================================================
    # LAB REPORTS
    # =========================================================================

    async def save_lab_report(self, report: LabReport) -> LabReport:
        await self.db.lab_reports.insert_one(report.model_dump(mode="json"))
        return report

    async def get_lab_reports(self, user_id: str, limit: int = 100) -> List[LabReport]:
        """A user's lab reports, oldest first"""
        cursor = self.db.lab_reports.find({"user_id": user_id}).sort("test_date", 1).limit(limit)
        return [LabReport(**doc) async for doc in cursor]

    async def _complete(self, model: str, prompt: str, max_tokens: int) -> str:
        response = await self.llm.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.2,
            max_tokens=max_tokens,
        )
        return response.choices[0].message.content or ""

    async def extract_lab_report(self, user_id: str, text: str) -> LabReport:
        """
        Turn raw lab report text into a draft LabReport

        The draft is returned for the user to review and is not stored.
        """
        if not text or len(text.strip()) < MIN_REPORT_TEXT:
            raise ValueError("Could not extract sufficient text from lab report")

        content = await self._complete(self.extraction_model, build_extraction_prompt(text), 4096)
        data = extract_json_object(content)

        markers = []
        for raw in data.get("markers") or []:
            if not isinstance(raw, dict) or not raw.get("marker_name"):
                continue
            try:
                markers.append(LabMarker(**raw))
            except ValueError as e:
                logger.warning(f"Skipping unparseable marker {raw.get('marker_name')}: {e}")

        logger.info(f"Extracted {len(markers)} lab markers for {user_id}")

        try:
            return LabReport(
                user_id=user_id,
                test_date=data.get("test_date"),
                lab_name=data.get("lab_name"),
                markers=markers,
            )
        except ValueError:
            # Model returned a date we can't parse; keep the markers
            return LabReport(user_id=user_id, lab_name=data.get("lab_name"), markers=markers)

    # =========================================================================
    # INSIGHTS
    # =========================================================================

    async def generate_insights(self, user_id: str) -> List[Insight]:
        """
        Narrative insights over the user's cycles and lab reports

        Raises:
            InsufficientDataError: fewer than one cycle or one lab report
            InsightParseError: the model response had no usable JSON
        """
        cursor = self.db.cycles.find({"user_id": user_id}).sort("start_date", 1)
        cycles = [Cycle(**doc) async for doc in cursor]
        reports = await self.get_lab_reports(user_id)

        if not cycles or not reports:
            raise InsufficientDataError("Insufficient data. Need at least 1 cycle and 1 lab report.")

        content = await self._complete(self.model, build_insights_prompt(cycles, reports), 2048)
        data = extract_json_object(content)

        insights = []
        for raw in data.get("insights") or []:
            try:
                insights.append(Insight(**raw))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed insight: {e}")

        if not insights:
            raise InsightParseError("Model returned no usable insights")

        return insights

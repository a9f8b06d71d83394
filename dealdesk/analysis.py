"""AI company analysis (cached on the company row) and the email connection link."""

import logging
from datetime import datetime
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from .db import PortfolioCompany
from .integrations import IntegrationClient, IntegrationError
from .schemas import AnalysisResponse, CompanyAnalysis

logger = logging.getLogger(__name__)

ANALYSIS_FUNCTION = "company-intelligence"
EMAIL_LINK_FUNCTION = "generate-unipile-link"

HEALTH_BANDS = [
    (8, "#22c55e"),
    (6, "#10b981"),
    (4, "#f59e0b"),
]
HEALTH_FALLBACK_COLOR = "#ef4444"


def health_color(score: float) -> str:
    for threshold, color in HEALTH_BANDS:
        if score >= threshold:
            return color
    return HEALTH_FALLBACK_COLOR


def _validate(raw) -> Optional[CompanyAnalysis]:
    if not isinstance(raw, dict):
        return None
    try:
        analysis = CompanyAnalysis.model_validate(raw)
    except ValidationError as e:
        logger.warning("Discarding malformed analysis: %s", e)
        return None
    return analysis if analysis.health_score.score > 0 else None


def _response(analysis: Optional[CompanyAnalysis], updated_at=None) -> AnalysisResponse:
    if analysis is None:
        return AnalysisResponse(available=False)
    return AnalysisResponse(
        available=True,
        analysis=analysis,
        health_color=health_color(analysis.health_score.score),
        updated_at=updated_at,
    )


def cached_analysis(company: PortfolioCompany) -> AnalysisResponse:
    return _response(_validate(company.ai_analysis), company.ai_analysis_updated_at)


def run_analysis(db: Session, integrations: IntegrationClient, company: PortfolioCompany,
                 force_refresh: bool = False) -> AnalysisResponse:
    """Ask the analysis function for a fresh report.

    A failed or unusable answer keeps whatever was cached before, so the
    banner degrades to "unavailable" only when nothing was ever stored.
    """
    body = {"company_id": company.id, "mode": "analysis", "force_refresh": force_refresh}
    try:
        data = integrations.invoke_function(ANALYSIS_FUNCTION, body)
    except IntegrationError as e:
        logger.error("AI analysis failed for %s: %s", company.id, e)
        return cached_analysis(company)

    analysis = _validate(data.get("analysis")) if data.get("success") else None
    if analysis is None:
        logger.warning("AI analysis for %s returned no usable result", company.id)
        return cached_analysis(company)

    company.ai_analysis = analysis.model_dump()
    company.ai_analysis_updated_at = datetime.utcnow()
    db.commit()
    db.refresh(company)
    return _response(analysis, company.ai_analysis_updated_at)


def generate_email_link(integrations: IntegrationClient, redirect_url: str) -> str:
    data = integrations.invoke_function(EMAIL_LINK_FUNCTION, {"redirect_url": redirect_url})
    url = data.get("url")
    if not url:
        raise IntegrationError("No link received")
    return url

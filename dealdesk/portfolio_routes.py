from typing import List

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from . import analysis, domains, portfolio
from .charts import render_line_chart
from .db import get_db
from .dependencies import get_integrations, get_storage, read_upload, read_uploads
from .integrations import IntegrationClient, IntegrationError
from .metrics import MetricSelection, build_metric_series, group_by_category
from .reports import completed_reports, list_reports, submit_report
from .schemas import (
    AnalysisResponse,
    CompanyIn,
    CompanyOut,
    DomainIn,
    DomainOut,
    ImportResponse,
    MetricsResponse,
    ReportOut,
    RunAnalysisRequest,
    SignedUrlResponse,
)
from .storage import StorageClient

router = APIRouter()


class ConnectLinkRequest(BaseModel):
    redirect_url: str = "/onboarding/connect-email"


def _company_or_404(db: Session, company_id: str):
    try:
        return portfolio.get_company(db, company_id)
    except portfolio.CompanyNotFound:
        raise HTTPException(status_code=404, detail="Company not found")


# ---------------------------
# Companies
# ---------------------------

@router.get("/companies", response_model=List[CompanyOut])
def list_companies(db: Session = Depends(get_db)):
    return portfolio.list_companies(db)


@router.post("/companies", response_model=CompanyOut, status_code=201)
def create_company(req: CompanyIn, db: Session = Depends(get_db)):
    return portfolio.create_company(db, req)


@router.post("/companies/import", response_model=ImportResponse)
async def import_companies(file: UploadFile = File(...), db: Session = Depends(get_db)):
    incoming = await read_upload(file)
    try:
        return portfolio.import_portfolio(db, incoming.name, incoming.content)
    except portfolio.ImportFormatError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/companies/{company_id}", response_model=CompanyOut)
def get_company(company_id: str, db: Session = Depends(get_db)):
    return _company_or_404(db, company_id)


@router.delete("/companies/{company_id}", status_code=204)
def delete_company(company_id: str, db: Session = Depends(get_db)):
    _company_or_404(db, company_id)
    portfolio.delete_company(db, company_id)


# ---------------------------
# Reports & metrics
# ---------------------------

@router.get("/companies/{company_id}/reports", response_model=List[ReportOut])
def get_reports(company_id: str, db: Session = Depends(get_db)):
    _company_or_404(db, company_id)
    return list_reports(db, company_id)


@router.post("/companies/{company_id}/reports", response_model=ReportOut, status_code=201)
async def upload_report(
    company_id: str,
    files: List[UploadFile] = File(...),
    additional_context: str = Form(""),
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    integrations: IntegrationClient = Depends(get_integrations),
):
    company = _company_or_404(db, company_id)
    incoming = await read_uploads(files)
    if not incoming:
        raise HTTPException(status_code=400, detail="Veuillez sélectionner au moins un fichier")
    try:
        return submit_report(db, storage, integrations, company, incoming, additional_context)
    except IntegrationError as e:
        raise HTTPException(status_code=502, detail=f"Erreur lors de l'envoi du rapport: {e}")


@router.get("/companies/{company_id}/metrics", response_model=MetricsResponse)
def get_metrics(company_id: str, db: Session = Depends(get_db)):
    _company_or_404(db, company_id)
    series = build_metric_series(completed_reports(db, company_id))
    categories = group_by_category(series)
    return MetricsResponse(
        series=series,
        categories={name: [s.key for s in items] for name, items in categories.items()},
        default_selection=MetricSelection.initial(series).top_keys(),
    )


@router.get("/companies/{company_id}/metrics/{metric_key}/chart.svg")
def get_metric_chart(company_id: str, metric_key: str, db: Session = Depends(get_db)):
    _company_or_404(db, company_id)
    series = build_metric_series(completed_reports(db, company_id))
    match = next((s for s in series if s.key == metric_key), None)
    if match is None:
        raise HTTPException(status_code=404, detail=f"No data for metric {metric_key}")
    svg = render_line_chart(match)
    if svg is None:
        raise HTTPException(status_code=404, detail="Not enough data points to draw a chart")
    return Response(content=svg, media_type="image/svg+xml")


# ---------------------------
# AI analysis
# ---------------------------

@router.get("/companies/{company_id}/analysis", response_model=AnalysisResponse)
def get_analysis(company_id: str, db: Session = Depends(get_db)):
    return analysis.cached_analysis(_company_or_404(db, company_id))


@router.post("/companies/{company_id}/analysis", response_model=AnalysisResponse)
def run_analysis(
    company_id: str,
    req: RunAnalysisRequest,
    db: Session = Depends(get_db),
    integrations: IntegrationClient = Depends(get_integrations),
):
    company = _company_or_404(db, company_id)
    return analysis.run_analysis(db, integrations, company, req.force_refresh)


@router.post("/email/connect-link", response_model=SignedUrlResponse)
def email_connect_link(req: ConnectLinkRequest,
                       integrations: IntegrationClient = Depends(get_integrations)):
    try:
        return SignedUrlResponse(url=analysis.generate_email_link(integrations, req.redirect_url))
    except IntegrationError as e:
        raise HTTPException(status_code=502, detail=f"Error connecting email: {e}")


# ---------------------------
# Domains
# ---------------------------

@router.get("/companies/{company_id}/domains", response_model=List[DomainOut])
def get_domains(company_id: str, db: Session = Depends(get_db)):
    _company_or_404(db, company_id)
    return domains.list_domains(db, company_id)


@router.post("/companies/{company_id}/domains", response_model=DomainOut, status_code=201)
def add_domain(
    company_id: str,
    req: DomainIn,
    db: Session = Depends(get_db),
    integrations: IntegrationClient = Depends(get_integrations),
):
    company = _company_or_404(db, company_id)
    try:
        return domains.add_domain(db, integrations, company, req.domain)
    except domains.InvalidDomain as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/companies/{company_id}/domains/{domain_id}", status_code=204)
def remove_domain(company_id: str, domain_id: str, db: Session = Depends(get_db)):
    try:
        domains.remove_domain(db, company_id, domain_id)
    except domains.DomainNotFound:
        raise HTTPException(status_code=404, detail="Domain not found")


@router.post("/companies/{company_id}/domains/{domain_id}/primary", response_model=DomainOut)
def set_primary_domain(company_id: str, domain_id: str, db: Session = Depends(get_db)):
    try:
        return domains.set_primary_domain(db, company_id, domain_id)
    except domains.DomainNotFound:
        raise HTTPException(status_code=404, detail="Domain not found")

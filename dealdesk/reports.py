"""Company reports: listing and the upload-then-analyse flow."""

import logging
from datetime import date, datetime
from typing import List

from sqlalchemy.orm import Session, selectinload

from .config import REPORT_FILES_BUCKET, REPORT_WEBHOOK_URL
from .db import CompanyReport, PortfolioCompany, ReportFile
from .integrations import IntegrationClient
from .periods import parse_period_sort_date
from .storage import IncomingFile, StorageClient, StorageError

logger = logging.getLogger(__name__)


def list_reports(db: Session, company_id: str) -> List[CompanyReport]:
    """Newest first: report_date descending with undated reports last, then by period."""
    reports = (
        db.query(CompanyReport)
        .options(selectinload(CompanyReport.files))
        .filter(CompanyReport.company_id == company_id)
        .all()
    )
    reports.sort(
        key=lambda r: (
            r.report_date is not None,
            r.report_date or date.min,
            parse_period_sort_date(r.report_period),
            r.created_at or datetime.min,
        ),
        reverse=True,
    )
    return reports


def completed_reports(db: Session, company_id: str) -> List[CompanyReport]:
    return [
        r for r in list_reports(db, company_id)
        if r.processing_status in (None, "completed") and r.metrics
    ]


def submit_report(db: Session, storage: StorageClient, integrations: IntegrationClient,
                  company: PortfolioCompany, files: List[IncomingFile],
                  additional_context: str = "") -> CompanyReport:
    """Create a pending report, store its files and hand it to the analysis webhook.

    Not atomic: a file that fails to upload is skipped, and a webhook failure
    leaves the report row in ``pending``.
    """
    report = CompanyReport(
        company_id=company.id,
        report_source="frontend_upload",
        processing_status="pending",
        has_attachments=len(files) > 0,
    )
    db.add(report)
    db.commit()
    db.refresh(report)

    for incoming in files:
        storage_path = f"{company.id}/{report.id}/{incoming.name}"
        try:
            storage.upload(REPORT_FILES_BUCKET, storage_path, incoming.content,
                           incoming.content_type, upsert=True)
        except StorageError as e:
            logger.error("Upload error for %s: %s", incoming.name, e)
            continue
        db.add(
            ReportFile(
                report_id=report.id,
                file_name=incoming.name,
                original_file_name=incoming.name,
                storage_path=storage_path,
                mime_type=incoming.content_type,
                file_size_bytes=incoming.size,
                file_type="report",
            )
        )
    db.commit()

    fields = {
        "company_id": company.id,
        "company_name": company.company_name,
        "report_id": report.id,
        "additional_context": additional_context or "",
        "file_count": str(len(files)),
    }
    form_files = [
        (f"file_{index}", (incoming.name, incoming.content, incoming.content_type or "application/octet-stream"))
        for index, incoming in enumerate(files)
    ]
    logger.info("Sending report %s (%d file(s)) to analysis", report.id, len(files))
    integrations.post_form(REPORT_WEBHOOK_URL, fields, form_files)

    db.refresh(report)
    return report

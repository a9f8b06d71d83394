"""Portfolio companies and spreadsheet import."""

import logging
from datetime import date
from typing import Any, List, Optional

import pandas as pd
from sqlalchemy.orm import Session

from .db import PortfolioCompany
from .formatting import parse_number
from .parsing import TABLE_EXTENSIONS, read_table_frames
from .schemas import CompanyIn, ImportResponse, ImportRowResult, ImportSummary

logger = logging.getLogger(__name__)

# Accepted header spellings, compared lower-cased with spaces as underscores.
COLUMN_ALIASES = {
    "company_name": ("company_name", "company", "name", "nom", "entreprise", "société", "societe"),
    "domain": ("domain", "website", "site", "domaine"),
    "sectors": ("sectors", "sector", "secteur", "secteurs"),
    "investment_type": ("investment_type", "type", "type_d'investissement"),
    "amount_invested": ("amount_invested", "amount", "montant_investi", "montant"),
    "investment_date": ("investment_date", "date", "date_d'investissement"),
}


class CompanyNotFound(Exception):
    pass


class ImportFormatError(Exception):
    pass


def get_company(db: Session, company_id: str) -> PortfolioCompany:
    company = db.get(PortfolioCompany, company_id)
    if company is None:
        raise CompanyNotFound(company_id)
    return company


def list_companies(db: Session) -> List[PortfolioCompany]:
    return db.query(PortfolioCompany).order_by(PortfolioCompany.company_name.asc()).all()


def create_company(db: Session, data: CompanyIn) -> PortfolioCompany:
    company = PortfolioCompany(**data.model_dump())
    db.add(company)
    db.commit()
    db.refresh(company)
    logger.info("Created portfolio company %s", company.id)
    return company


def delete_company(db: Session, company_id: str) -> None:
    company = get_company(db, company_id)
    db.delete(company)
    db.commit()


def _normalize_header(header: Any) -> str:
    return str(header).strip().lower().replace(" ", "_")


def _resolve_columns(columns) -> dict:
    normalized = {_normalize_header(c): c for c in columns}
    resolved = {}
    for field, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in normalized:
                resolved[field] = normalized[alias]
                break
    return resolved


def _cell(row, column: Optional[str]) -> Optional[str]:
    if column is None:
        return None
    value = row.get(column)
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    text = str(value).strip()
    return text or None


def _parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    parsed = pd.to_datetime(value, errors="coerce", dayfirst=True)
    if pd.isna(parsed):
        raise ValueError(f"Invalid date: {value}")
    return parsed.date()


def _row_to_company(row, columns: dict) -> CompanyIn:
    name = _cell(row, columns.get("company_name"))
    if not name:
        raise ValueError("Missing company name")
    sectors = _cell(row, columns.get("sectors"))
    amount = parse_number(_cell(row, columns.get("amount_invested")))
    return CompanyIn(
        company_name=name,
        domain=_cell(row, columns.get("domain")),
        sectors=[s.strip() for s in sectors.split(",") if s.strip()] if sectors else [],
        investment_type=_cell(row, columns.get("investment_type")),
        amount_invested_cents=round(amount * 100) if amount is not None else None,
        investment_date=_parse_date(_cell(row, columns.get("investment_date"))),
    )


def import_portfolio(db: Session, file_name: str, blob: bytes) -> ImportResponse:
    """Create one company per spreadsheet row; rows fail independently."""
    if not file_name.lower().endswith(TABLE_EXTENSIONS):
        raise ImportFormatError("Veuillez utiliser un fichier CSV ou Excel (.xlsx, .xls)")
    try:
        frames = read_table_frames(blob, file_name)
    except Exception as e:
        raise ImportFormatError(f"Unreadable spreadsheet: {e}") from e
    if not frames:
        raise ImportFormatError("The spreadsheet is empty")

    _, df = frames[0]
    columns = _resolve_columns(df.columns)
    if "company_name" not in columns:
        raise ImportFormatError("A company_name column is required")

    results = []
    for _, row in df.iterrows():
        fallback_name = _cell(row, columns["company_name"]) or ""
        try:
            data = _row_to_company(row, columns)
        except ValueError as e:
            results.append(ImportRowResult(success=False, company_name=fallback_name, error=str(e)))
            continue
        db.add(PortfolioCompany(**data.model_dump()))
        results.append(ImportRowResult(success=True, company_name=data.company_name))
    db.commit()

    successful = sum(1 for r in results if r.success)
    logger.info("Imported %d/%d companies from %s", successful, len(results), file_name)
    return ImportResponse(
        success=successful > 0,
        summary=ImportSummary(total=len(results), successful=successful, failed=len(results) - successful),
        results=results,
    )

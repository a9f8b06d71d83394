import io
from datetime import date

import pandas as pd
import pytest

from dealdesk.db import PortfolioCompany
from dealdesk.portfolio import ImportFormatError, import_portfolio


def test_import_csv_with_french_headers(db):
    csv = (
        "Société;Secteur;Montant;Date\n"
        "Acme;SaaS, Fintech;150000;15/03/2023\n"
        "Globex;Retail;;\n"
    ).encode("utf-8")
    result = import_portfolio(db, "portfolio.csv", csv)

    assert result.success is True
    assert result.summary.total == 2
    assert result.summary.successful == 2
    acme = db.query(PortfolioCompany).filter_by(company_name="Acme").one()
    assert acme.sectors == ["SaaS", "Fintech"]
    assert acme.amount_invested_cents == 15_000_000
    assert acme.investment_date == date(2023, 3, 15)
    globex = db.query(PortfolioCompany).filter_by(company_name="Globex").one()
    assert globex.amount_invested_cents is None


def test_rows_fail_independently(db):
    csv = b"company_name,investment_date\nAcme,2024-01-10\n,2024-02-01\nInitech,not a date\n"
    result = import_portfolio(db, "portfolio.csv", csv)

    assert result.summary.successful == 1
    assert result.summary.failed == 2
    errors = [r.error for r in result.results if not r.success]
    assert errors[0] == "Missing company name"
    assert errors[1].startswith("Invalid date")
    assert db.query(PortfolioCompany).count() == 1


def test_import_xlsx(db):
    buffer = io.BytesIO()
    pd.DataFrame({"Company": ["Acme", "Hooli"], "Domain": ["acme.io", "hooli.com"]}).to_excel(
        buffer, index=False
    )
    result = import_portfolio(db, "portfolio.xlsx", buffer.getvalue())
    assert result.summary.successful == 2
    assert {c.domain for c in db.query(PortfolioCompany)} == {"acme.io", "hooli.com"}


def test_unsupported_extension(db):
    with pytest.raises(ImportFormatError):
        import_portfolio(db, "portfolio.pdf", b"%PDF")


def test_missing_company_column(db):
    with pytest.raises(ImportFormatError, match="company_name"):
        import_portfolio(db, "portfolio.csv", b"sector,amount\nSaaS,10\n")


def test_import_endpoint(client):
    resp = client.post(
        "/companies/import",
        files={"file": ("portfolio.csv", b"name\nAcme\nHooli\n", "text/csv")},
    )
    assert resp.status_code == 200
    assert resp.json()["summary"] == {"total": 2, "successful": 2, "failed": 0}
    assert [c["company_name"] for c in client.get("/companies").json()] == ["Acme", "Hooli"]

    resp = client.post("/companies/import", files={"file": ("portfolio.txt", b"name\n", "text/plain")})
    assert resp.status_code == 400

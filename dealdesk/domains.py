"""Email domains tracked per portfolio company."""

import logging
import re
from typing import List

from sqlalchemy.orm import Session

from .config import DOMAIN_SCAN_WEBHOOK_URL
from .db import CompanyDomain, PortfolioCompany
from .integrations import IntegrationClient

logger = logging.getLogger(__name__)

# Consumer mailboxes never identify a company.
GENERIC_DOMAINS = frozenset([
    "gmail.com", "outlook.com", "hotmail.com", "yahoo.com", "icloud.com",
    "live.com", "msn.com", "aol.com", "protonmail.com", "mail.com",
    "yahoo.fr", "orange.fr", "free.fr", "sfr.fr", "laposte.net",
])

DOMAIN_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)+$")


class InvalidDomain(Exception):
    pass


class DomainNotFound(Exception):
    pass


def clean_domain(raw: str) -> str:
    """Reduce a URL, email address or bare host to a lower-case domain."""
    domain = (raw or "").strip().lower()
    if "@" in domain:
        domain = domain.rsplit("@", 1)[1]
    domain = re.sub(r"^[a-z]+://", "", domain)
    domain = re.sub(r"^www\.", "", domain)
    return domain.split("/", 1)[0].split("?", 1)[0].split(":", 1)[0]


def validate_domain(domain: str) -> None:
    if not domain or not DOMAIN_PATTERN.match(domain):
        raise InvalidDomain("Domaine invalide")
    if domain in GENERIC_DOMAINS:
        raise InvalidDomain("Les domaines génériques (gmail, outlook...) ne sont pas autorisés")


def list_domains(db: Session, company_id: str) -> List[CompanyDomain]:
    domains = db.query(CompanyDomain).filter(CompanyDomain.company_id == company_id).all()
    domains.sort(key=lambda d: (not d.is_primary, d.created_at))
    return domains


def add_domain(db: Session, integrations: IntegrationClient, company: PortfolioCompany,
               raw_domain: str) -> CompanyDomain:
    domain = clean_domain(raw_domain)
    validate_domain(domain)

    existing = list_domains(db, company.id)
    if any(d.domain == domain for d in existing):
        raise InvalidDomain("Ce domaine existe déjà")

    entry = CompanyDomain(company_id=company.id, domain=domain, is_primary=not existing)
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("Domain %s added to company %s", domain, company.id)

    integrations.notify(DOMAIN_SCAN_WEBHOOK_URL, {
        "company_id": company.id,
        "company_name": company.company_name,
        "domain": domain,
    })
    return entry


def _get_domain(db: Session, company_id: str, domain_id: str) -> CompanyDomain:
    entry = db.get(CompanyDomain, domain_id)
    if entry is None or entry.company_id != company_id:
        raise DomainNotFound(domain_id)
    return entry


def remove_domain(db: Session, company_id: str, domain_id: str) -> None:
    """Delete a domain; removing the primary one promotes the oldest remaining."""
    entry = _get_domain(db, company_id, domain_id)
    was_primary = entry.is_primary
    db.delete(entry)
    db.flush()
    if was_primary:
        remaining = list_domains(db, company_id)
        if remaining:
            remaining[0].is_primary = True
    db.commit()


def set_primary_domain(db: Session, company_id: str, domain_id: str) -> CompanyDomain:
    target = _get_domain(db, company_id, domain_id)
    for entry in list_domains(db, company_id):
        entry.is_primary = entry.id == target.id
    db.commit()
    db.refresh(target)
    return target

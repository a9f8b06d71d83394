"""Deal submission, the analysis webhook round-trip and deck file management."""

import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from .config import DEAL_WEBHOOK_URL, DECK_FILES_BUCKET, MAX_DECK_SIZE_BYTES
from .db import Deal, DeckFile
from .documents import build_storage_path
from .integrations import IntegrationClient, IntegrationError
from .storage import IncomingFile, StorageClient, StorageError

logger = logging.getLogger(__name__)

STATUS_BADGES = {
    "completed": ("Terminé", "green"),
    "pending": ("Analyse en cours...", "yellow"),
    "analyzing": ("Analyse en cours...", "yellow"),
    "error": ("Erreur", "red"),
}


class DealNotFound(Exception):
    pass


class InvalidDeck(Exception):
    pass


def status_badge(status: str) -> Dict[str, Optional[str]]:
    label, color = STATUS_BADGES.get(status, (status, None))
    return {"label": label, "color": color}


def company_name_from_file(file_name: str) -> str:
    base = re.sub(r"\.pdf$", "", file_name, flags=re.IGNORECASE)
    return re.sub(r"[-_]", " ", base).strip() or file_name


def check_deck_size(size: Optional[int]) -> None:
    """Reject oversized decks; None means the size is not known yet."""
    if size is not None and size > MAX_DECK_SIZE_BYTES:
        raise InvalidDeck("Le fichier ne doit pas dépasser 50 MB")


def validate_deck(deck: IncomingFile) -> None:
    is_pdf = deck.content_type == "application/pdf" or deck.name.lower().endswith(".pdf")
    if not is_pdf:
        raise InvalidDeck("Seuls les fichiers PDF sont acceptés")
    check_deck_size(deck.size)


def normalize_webhook_result(raw: Any) -> Dict[str, Any]:
    """The automation answers with either an object or a one-element list."""
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    return raw if isinstance(raw, dict) else {}


def apply_analysis_result(deal: Deal, result: Dict[str, Any]) -> None:
    if result.get("cancelled") is True:
        deal.status = "pending"
        deal.error_message = "Analyse annulée"
        return
    if result.get("status") == "completed":
        deal.status = "completed"
        deal.analyzed_at = datetime.utcnow()
        deal.error_message = None
        if result.get("company_name"):
            deal.company_name = result["company_name"]
        if result.get("memo_html"):
            deal.memo_html = result["memo_html"]
        return
    deal.status = "pending"
    deal.error_message = result.get("error") or "Échec de l'analyse"


class DealService:
    def __init__(self, db: Session, storage: StorageClient, integrations: IntegrationClient):
        self.db = db
        self.storage = storage
        self.integrations = integrations

    def list(self) -> List[Deal]:
        return self.db.query(Deal).order_by(Deal.created_at.desc()).all()

    def get(self, deal_id: str) -> Deal:
        deal = self.db.get(Deal, deal_id)
        if deal is None:
            raise DealNotFound(deal_id)
        return deal

    def submit(self, deck: IncomingFile, additional_context: str = "",
               sender_email: Optional[str] = None) -> Deal:
        """Create the deal, store its deck and run the analysis webhook.

        Storage failures abort the submission; analysis failures leave the deal
        ``pending`` with an error message so it can be retried later.
        """
        validate_deck(deck)

        deal = Deal(
            company_name=company_name_from_file(deck.name),
            status="analyzing",
            source="form",
            additional_context=additional_context or None,
        )
        self.db.add(deal)
        self.db.commit()
        self.db.refresh(deal)
        logger.info("Deal %s created from %s", deal.id, deck.name)

        self._store_deck(deal, deck, sender_email)

        fields = {"deal_id": deal.id, "additional_context": additional_context or ""}
        files = [("file", (deck.name, deck.content, "application/pdf"))]
        try:
            raw = self.integrations.post_form(DEAL_WEBHOOK_URL, fields, files)
            apply_analysis_result(deal, normalize_webhook_result(raw))
        except IntegrationError as e:
            logger.error("Deal analysis failed for %s: %s", deal.id, e)
            deal.status = "pending"
            deal.error_message = str(e) or "Erreur lors de l'analyse"

        self.db.commit()
        self.db.refresh(deal)
        return deal

    def _store_deck(self, deal: Deal, deck: IncomingFile, sender_email: Optional[str]) -> DeckFile:
        storage_path = build_storage_path(deal.id, deck.name)
        try:
            self.storage.upload(DECK_FILES_BUCKET, storage_path, deck.content, "application/pdf")
        except StorageError:
            logger.exception("Deck upload failed for deal %s", deal.id)
            deal.status = "error"
            deal.error_message = "Échec de l'upload du deck"
            self.db.commit()
            raise
        deck_file = DeckFile(
            deal_id=deal.id,
            file_name=deck.name,
            storage_path=storage_path,
            mime_type="application/pdf",
            file_size_bytes=deck.size,
            sender_email=sender_email,
        )
        self.db.add(deck_file)
        self.db.commit()
        return deck_file

    def update(self, deal_id: str, fields: Dict[str, Any]) -> Deal:
        deal = self.get(deal_id)
        for name in ("company_name", "sector", "stage", "status"):
            if name in fields and fields[name] is not None:
                setattr(deal, name, fields[name])
        self.db.commit()
        self.db.refresh(deal)
        return deal

    def delete(self, deal_id: str) -> None:
        deal = self.get(deal_id)
        paths = [f.storage_path for f in deal.deck_files if f.storage_path]
        if paths:
            try:
                self.storage.remove(DECK_FILES_BUCKET, paths)
            except StorageError as e:
                logger.error("Storage deletion error: %s", e)
        self.db.delete(deal)
        self.db.commit()

    # ---------------------------
    # Deck files
    # ---------------------------

    def list_documents(self, deal_id: str) -> List[DeckFile]:
        self.get(deal_id)
        return (
            self.db.query(DeckFile)
            .filter(DeckFile.deal_id == deal_id)
            .order_by(DeckFile.uploaded_at.desc())
            .all()
        )

    def get_document(self, deal_id: str, document_id: str) -> DeckFile:
        doc = self.db.get(DeckFile, document_id)
        if doc is None or doc.deal_id != deal_id:
            raise DealNotFound(document_id)
        return doc

    def upload_document(self, deal_id: str, incoming: IncomingFile,
                        sender_email: Optional[str] = None) -> DeckFile:
        self.get(deal_id)
        storage_path = build_storage_path(deal_id, incoming.name)
        self.storage.upload(DECK_FILES_BUCKET, storage_path, incoming.content, incoming.content_type)
        doc = DeckFile(
            deal_id=deal_id,
            file_name=incoming.name,
            storage_path=storage_path,
            mime_type=incoming.content_type or None,
            file_size_bytes=incoming.size,
            sender_email=sender_email,
        )
        self.db.add(doc)
        self.db.commit()
        self.db.refresh(doc)
        return doc

    def rename_document(self, deal_id: str, document_id: str, new_name: str) -> DeckFile:
        doc = self.get_document(deal_id, document_id)
        doc.file_name = new_name
        self.db.commit()
        self.db.refresh(doc)
        return doc

    def delete_document(self, deal_id: str, document_id: str) -> None:
        doc = self.get_document(deal_id, document_id)
        if doc.storage_path:
            try:
                self.storage.remove(DECK_FILES_BUCKET, [doc.storage_path])
            except StorageError as e:
                logger.error("Storage deletion error: %s", e)
        self.db.delete(doc)
        self.db.commit()

    def document_url(self, deal_id: str, document_id: str) -> str:
        doc = self.get_document(deal_id, document_id)
        if not doc.storage_path:
            raise DealNotFound(f"{document_id} has no stored file")
        return self.storage.create_signed_url(DECK_FILES_BUCKET, doc.storage_path)

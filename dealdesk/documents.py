"""Per-company document tree: navigation helpers, file classification and CRUD."""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from .config import (
    DECK_EMBEDDING_WEBHOOK_URL,
    PORTFOLIO_DOCUMENTS_BUCKET,
    REPORT_FILES_BUCKET,
)
from .db import CompanyReport, PortfolioCompany, PortfolioDocument
from .integrations import IntegrationClient
from .parsing import TABLE_EXTENSIONS, file_extension, parse_table_bytes, sanitize_file_name
from .schemas import Breadcrumb, DocumentOut, DocumentPreview, DocumentTreeNode, FileKind
from .storage import StorageClient, StorageError

logger = logging.getLogger(__name__)

ROOT_NAME = "Fichiers"
DECK_FOLDER_NAME = "Deck"


class DocumentNotFound(Exception):
    pass


class InvalidMove(Exception):
    pass


# ---------------------------
# File classification
# ---------------------------

@dataclass(frozen=True)
class _KindRule:
    kind: str
    extensions: tuple
    mime_markers: tuple
    badge: Optional[str]
    color: Optional[str]
    icon: str
    preview: Optional[str]


# Checked in order; the first rule matching either the suffix or the mime type wins.
FILE_KIND_RULES = [
    _KindRule("pdf", (".pdf",), ("pdf",), "PDF", "red", "file-text", "pdf"),
    _KindRule("word", (".doc", ".docx"), ("word", "officedocument.wordprocessing"),
              "DOC", "blue", "file-text", None),
    _KindRule("excel", TABLE_EXTENSIONS, ("spreadsheet", "excel", "csv"),
              "XLS", "green", "file-spreadsheet", "table"),
    _KindRule("powerpoint", (".ppt", ".pptx"), ("presentation", "powerpoint"),
              "PPT", "orange", "file-text", None),
    _KindRule("image", (".jpg", ".jpeg", ".png", ".gif", ".webp"), ("image/",),
              "IMG", "violet", "image", "image"),
    _KindRule("markdown", (".md", ".markdown"), ("markdown",), "MD", "slate", "file-text", "markdown"),
    _KindRule("text", (".txt",), ("text/",), "TXT", "gray", "file-text", "text"),
]


def classify_file(mime_type: Optional[str], file_name: str) -> FileKind:
    name = (file_name or "").lower()
    mime = (mime_type or "").lower()
    for rule in FILE_KIND_RULES:
        if name.endswith(rule.extensions) or any(marker in mime for marker in rule.mime_markers):
            return FileKind(kind=rule.kind, badge=rule.badge, color=rule.color,
                            icon=rule.icon, preview=rule.preview)
    return FileKind(kind="unknown")


def preview_mode(doc) -> Optional[str]:
    """How a document opens: markdown editor, pdf viewer, image, text, table or not at all."""
    if doc.type == "folder":
        return None
    if doc.text_content:
        if doc.name.lower().endswith((".md", ".markdown")) or doc.source_report_id:
            return "markdown"
        return "text"
    return classify_file(doc.mime_type, doc.name).preview


def is_previewable(doc) -> bool:
    return preview_mode(doc) is not None


def describe_document(doc, model=DocumentOut):
    """Serialize a document with its badge and whether the viewer can open it."""
    out = model.model_validate(doc, from_attributes=True)
    if out.type == "file":
        out.file_kind = classify_file(out.mime_type, out.name)
    out.previewable = is_previewable(out)
    return out


# ---------------------------
# Tree navigation
# ---------------------------

def _sort_key(node):
    return (node.type != "folder", node.name.lower())


def build_document_tree(documents: Iterable) -> List[DocumentTreeNode]:
    """Nest a flat document list. Nodes whose parent is missing become roots."""
    nodes: Dict[str, DocumentTreeNode] = {}
    order = []
    for doc in documents:
        node = describe_document(doc, DocumentTreeNode)
        nodes[node.id] = node
        order.append(node)

    roots = []
    for node in order:
        parent = nodes.get(node.parent_id) if node.parent_id else None
        if parent is not None and parent is not node:
            parent.children.append(node)
        else:
            roots.append(node)

    stack = [roots]
    seen = set()
    while stack:
        siblings = stack.pop()
        siblings.sort(key=_sort_key)
        for node in siblings:
            if node.id not in seen:
                seen.add(node.id)
                stack.append(node.children)
    return roots


def build_breadcrumbs(documents: Iterable, folder_id: Optional[str]) -> List[Breadcrumb]:
    """Path from the synthetic root to folder_id. Stops on cycles or dangling parents."""
    path = [Breadcrumb(id=None, name=ROOT_NAME)]
    if not folder_id:
        return path

    by_id = {doc.id: doc for doc in documents}
    segments = []
    visited = set()
    current = by_id.get(folder_id)
    while current is not None and current.id not in visited:
        visited.add(current.id)
        segments.append(Breadcrumb(id=current.id, name=current.name))
        current = by_id.get(current.parent_id) if current.parent_id else None
    return path + list(reversed(segments))


def folder_contents(documents: Iterable, folder_id: Optional[str]) -> List:
    contents = [d for d in documents if d.parent_id == folder_id]
    return sorted(contents, key=_sort_key)


def count_children(documents: Iterable, folder_id: str) -> int:
    return sum(1 for d in documents if d.parent_id == folder_id)


def collect_descendants(documents: Iterable, document_id: str) -> List:
    """The document and everything below it, parents before children."""
    children_of: Dict[Optional[str], List] = {}
    by_id = {}
    for doc in documents:
        by_id[doc.id] = doc
        children_of.setdefault(doc.parent_id, []).append(doc)

    if document_id not in by_id:
        return []
    collected = []
    seen = set()
    queue = [by_id[document_id]]
    while queue:
        doc = queue.pop(0)
        if doc.id in seen:
            continue
        seen.add(doc.id)
        collected.append(doc)
        queue.extend(children_of.get(doc.id, []))
    return collected


def build_storage_path(owner_id: str, file_name: str, timestamp_ms: Optional[int] = None) -> str:
    timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    ext = file_extension(file_name)
    base = file_name[: -(len(ext) + 1)] if ext else file_name
    suffix = f".{ext}" if ext else ""
    return f"{owner_id}/{timestamp_ms}_{sanitize_file_name(base)}{suffix}"


# ---------------------------
# Service
# ---------------------------

class DocumentService:
    def __init__(self, db: Session, storage: StorageClient, integrations: IntegrationClient):
        self.db = db
        self.storage = storage
        self.integrations = integrations

    def list(self, company_id: str) -> List[PortfolioDocument]:
        return (
            self.db.query(PortfolioDocument)
            .filter(PortfolioDocument.company_id == company_id)
            .order_by(PortfolioDocument.type.asc(), PortfolioDocument.name.asc())
            .all()
        )

    def get(self, document_id: str) -> PortfolioDocument:
        doc = self.db.get(PortfolioDocument, document_id)
        if doc is None:
            raise DocumentNotFound(document_id)
        return doc

    def _check_parent(self, company_id: str, parent_id: Optional[str]) -> None:
        if not parent_id:
            return
        parent = self.db.get(PortfolioDocument, parent_id)
        if parent is None or parent.company_id != company_id or parent.type != "folder":
            raise InvalidMove(f"{parent_id} is not a folder of this company")

    def create_folder(self, company_id: str, name: str, parent_id: Optional[str] = None) -> PortfolioDocument:
        self._check_parent(company_id, parent_id)
        folder = PortfolioDocument(
            company_id=company_id, type="folder", name=name, parent_id=parent_id or None
        )
        self.db.add(folder)
        self.db.commit()
        self.db.refresh(folder)
        logger.info("Created folder %s for company %s", folder.id, company_id)
        return folder

    def upload_file(self, company_id: str, file_name: str, content: bytes,
                    mime_type: Optional[str] = None, parent_id: Optional[str] = None) -> PortfolioDocument:
        self._check_parent(company_id, parent_id)
        storage_path = build_storage_path(company_id, file_name)
        self.storage.upload(PORTFOLIO_DOCUMENTS_BUCKET, storage_path, content, mime_type)

        doc = PortfolioDocument(
            company_id=company_id,
            type="file",
            name=file_name,
            parent_id=parent_id or None,
            storage_path=storage_path,
            mime_type=mime_type or None,
            file_size_bytes=len(content),
            original_file_name=file_name,
        )
        self.db.add(doc)
        self.db.commit()
        self.db.refresh(doc)

        if parent_id and mime_type == "application/pdf":
            self._notify_deck_upload(doc)
        return doc

    def _notify_deck_upload(self, doc: PortfolioDocument) -> None:
        parent = self.db.get(PortfolioDocument, doc.parent_id)
        if parent is None or parent.name != DECK_FOLDER_NAME:
            return
        company = self.db.get(PortfolioCompany, doc.company_id)
        try:
            signed_url = self.storage.create_signed_url(PORTFOLIO_DOCUMENTS_BUCKET, doc.storage_path)
        except StorageError as e:
            logger.error("Could not sign deck %s: %s", doc.id, e)
            signed_url = None
        payload = {
            "company_id": doc.company_id,
            "company_name": company.company_name if company else "Unknown",
            "document_id": doc.id,
            "file_name": doc.name,
            "storage_path": doc.storage_path,
            "signed_url": signed_url,
            "event": "deck_uploaded",
        }
        logger.info("Deck uploaded, requesting embedding for %s", doc.id)
        self.integrations.notify(DECK_EMBEDDING_WEBHOOK_URL, payload)

    def update(self, document_id: str, fields: Dict) -> PortfolioDocument:
        """Rename and/or move; fields holds only the keys the caller sent."""
        doc = self.get(document_id)
        if "name" in fields and fields["name"] is not None:
            name = fields["name"].strip()
            if not name:
                raise InvalidMove("Name must not be blank")
            doc.name = name
        if "parent_id" in fields:
            new_parent = fields["parent_id"] or None
            self._check_parent(doc.company_id, new_parent)
            if new_parent is not None:
                siblings = self.list(doc.company_id)
                if new_parent in {d.id for d in collect_descendants(siblings, doc.id)}:
                    raise InvalidMove("A folder cannot be moved inside itself")
            doc.parent_id = new_parent
        doc.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(doc)
        return doc

    def delete(self, document_id: str) -> List[str]:
        """Delete a document and, for folders, everything beneath it."""
        doc = self.get(document_id)
        targets = collect_descendants(self.list(doc.company_id), document_id)
        paths = [d.storage_path for d in targets if d.storage_path]
        if paths:
            try:
                self.storage.remove(PORTFOLIO_DOCUMENTS_BUCKET, paths)
            except StorageError as e:
                # rows are removed regardless
                logger.error("Storage deletion error: %s", e)

        ids = [d.id for d in targets]
        self.db.query(PortfolioDocument).filter(PortfolioDocument.id.in_(ids)).delete(
            synchronize_session=False
        )
        self.db.commit()
        logger.info("Deleted %d document(s) under %s", len(ids), document_id)
        return ids

    def update_content(self, document_id: str, content: str) -> PortfolioDocument:
        doc = self.get(document_id)
        now = datetime.utcnow()
        doc.text_content = content
        doc.updated_at = now
        if doc.source_report_id:
            report = self.db.get(CompanyReport, doc.source_report_id)
            if report is not None:
                report.cleaned_content = content
                report.updated_at = now
        self.db.commit()
        self.db.refresh(doc)
        return doc

    def download(self, document_id: str):
        """Return (file name, bytes, mime type) for a stored or inline document."""
        doc = self.get(document_id)
        file_name = doc.original_file_name or doc.name
        if doc.text_content:
            return file_name, doc.text_content.encode("utf-8"), "text/plain; charset=utf-8"
        if not doc.storage_path:
            raise DocumentNotFound(f"{document_id} has no associated file")
        try:
            blob = self.storage.download(PORTFOLIO_DOCUMENTS_BUCKET, doc.storage_path)
        except StorageError:
            logger.info("Trying %s bucket for %s", REPORT_FILES_BUCKET, doc.storage_path)
            blob = self.storage.download(REPORT_FILES_BUCKET, doc.storage_path)
        return file_name, blob, doc.mime_type or "application/octet-stream"

    def preview(self, document_id: str) -> DocumentPreview:
        doc = self.get(document_id)
        kind = classify_file(doc.mime_type, doc.name)
        mode = preview_mode(doc)
        result = DocumentPreview(mode=mode, file_kind=kind)
        if mode in ("markdown", "text"):
            if doc.text_content:
                result.text = doc.text_content
            else:
                _, blob, _ = self.download(document_id)
                result.text = blob.decode("utf-8", errors="replace")
        elif mode == "table":
            _, blob, _ = self.download(document_id)
            result.tables = parse_table_bytes(blob, doc.name)
        elif mode in ("pdf", "image") and doc.storage_path:
            result.url = self.storage.create_signed_url(PORTFOLIO_DOCUMENTS_BUCKET, doc.storage_path)
        return result


def to_listing(documents: List[PortfolioDocument]):
    return {
        "documents": [describe_document(d) for d in documents],
        "tree": build_document_tree(documents),
    }

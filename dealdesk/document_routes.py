from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from .db import get_db
from .dependencies import get_integrations, get_storage, read_upload
from .documents import (
    DocumentNotFound,
    DocumentService,
    InvalidMove,
    build_breadcrumbs,
    describe_document,
    to_listing,
)
from .integrations import IntegrationClient
from .portfolio import CompanyNotFound, get_company
from .schemas import (
    Breadcrumb,
    ContentUpdate,
    DocumentListing,
    DocumentOut,
    DocumentPreview,
    DocumentUpdate,
    FolderCreate,
)
from .storage import StorageClient, StorageError

router = APIRouter()


def get_document_service(
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    integrations: IntegrationClient = Depends(get_integrations),
) -> DocumentService:
    return DocumentService(db, storage, integrations)


def _require_company(service: DocumentService, company_id: str) -> None:
    try:
        get_company(service.db, company_id)
    except CompanyNotFound:
        raise HTTPException(status_code=404, detail="Company not found")


def _document_or_404(service: DocumentService, document_id: str):
    try:
        return service.get(document_id)
    except DocumentNotFound:
        raise HTTPException(status_code=404, detail="Document not found")


@router.get("/companies/{company_id}/documents", response_model=DocumentListing)
def list_documents(company_id: str, service: DocumentService = Depends(get_document_service)):
    _require_company(service, company_id)
    return to_listing(service.list(company_id))


@router.post("/companies/{company_id}/documents/folders", response_model=DocumentOut, status_code=201)
def create_folder(company_id: str, req: FolderCreate,
                  service: DocumentService = Depends(get_document_service)):
    _require_company(service, company_id)
    try:
        return describe_document(service.create_folder(company_id, req.name, req.parent_id))
    except InvalidMove as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/companies/{company_id}/documents/files", response_model=List[DocumentOut], status_code=201)
async def upload_files(
    company_id: str,
    files: List[UploadFile] = File(...),
    parent_id: Optional[str] = Form(None),
    service: DocumentService = Depends(get_document_service),
):
    _require_company(service, company_id)
    created = []
    for upload in files:
        incoming = await read_upload(upload)
        try:
            created.append(service.upload_file(company_id, incoming.name, incoming.content,
                                               incoming.content_type, parent_id))
        except InvalidMove as e:
            raise HTTPException(status_code=400, detail=str(e))
        except StorageError as e:
            raise HTTPException(status_code=502, detail=f"Erreur lors de l'upload de {incoming.name}: {e}")
    return [describe_document(doc) for doc in created]


@router.patch("/documents/{document_id}", response_model=DocumentOut)
def update_document(document_id: str, req: DocumentUpdate,
                    service: DocumentService = Depends(get_document_service)):
    fields = {name: getattr(req, name) for name in req.model_fields_set}
    try:
        return describe_document(service.update(document_id, fields))
    except DocumentNotFound:
        raise HTTPException(status_code=404, detail="Document not found")
    except InvalidMove as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/documents/{document_id}/content", response_model=DocumentOut)
def update_content(document_id: str, req: ContentUpdate,
                   service: DocumentService = Depends(get_document_service)):
    try:
        return describe_document(service.update_content(document_id, req.content))
    except DocumentNotFound:
        raise HTTPException(status_code=404, detail="Document not found")


@router.delete("/documents/{document_id}")
def delete_document(document_id: str, service: DocumentService = Depends(get_document_service)):
    try:
        deleted = service.delete(document_id)
    except DocumentNotFound:
        raise HTTPException(status_code=404, detail="Document not found")
    return {"deleted": deleted}


@router.get("/documents/{document_id}/breadcrumbs", response_model=List[Breadcrumb])
def breadcrumbs(document_id: str, service: DocumentService = Depends(get_document_service)):
    doc = _document_or_404(service, document_id)
    folder_id = doc.id if doc.type == "folder" else doc.parent_id
    return build_breadcrumbs(service.list(doc.company_id), folder_id)


@router.get("/documents/{document_id}/download")
def download_document(document_id: str, service: DocumentService = Depends(get_document_service)):
    try:
        file_name, blob, mime_type = service.download(document_id)
    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=502, detail=f"Erreur lors du téléchargement: {e}")
    disposition = f"attachment; filename*=UTF-8''{quote(file_name)}"
    return Response(content=blob, media_type=mime_type,
                    headers={"Content-Disposition": disposition})


@router.get("/documents/{document_id}/preview", response_model=DocumentPreview)
def preview_document(document_id: str, service: DocumentService = Depends(get_document_service)):
    try:
        return service.preview(document_id)
    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=502, detail=f"Preview unavailable: {e}")

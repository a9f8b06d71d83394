from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from .db import get_db
from .deals import DealNotFound, DealService, InvalidDeck, check_deck_size, status_badge
from .dependencies import get_integrations, get_storage, read_upload
from .integrations import IntegrationClient
from .schemas import DealOut, DealUpdate, DeckFileOut, RenameRequest, SignedUrlResponse
from .storage import StorageClient, StorageError

router = APIRouter()


def get_deal_service(
    db: Session = Depends(get_db),
    storage: StorageClient = Depends(get_storage),
    integrations: IntegrationClient = Depends(get_integrations),
) -> DealService:
    return DealService(db, storage, integrations)


def _deal_payload(deal) -> dict:
    payload = DealOut.model_validate(deal).model_dump()
    payload["badge"] = status_badge(deal.status)
    return payload


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/deals", status_code=201)
async def submit_deal(
    file: UploadFile = File(...),
    additional_context: str = Form(""),
    sender_email: Optional[str] = Form(None),
    service: DealService = Depends(get_deal_service),
):
    try:
        # the multipart parser already knows the size; skip reading an oversized deck
        check_deck_size(file.size)
        deck = await read_upload(file)
        deal = service.submit(deck, additional_context, sender_email)
    except InvalidDeck as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=502, detail=f"Error uploading deck: {e}")
    return _deal_payload(deal)


@router.get("/deals")
def list_deals(service: DealService = Depends(get_deal_service)):
    return [_deal_payload(d) for d in service.list()]


@router.get("/deals/{deal_id}")
def get_deal(deal_id: str, service: DealService = Depends(get_deal_service)):
    try:
        return _deal_payload(service.get(deal_id))
    except DealNotFound:
        raise HTTPException(status_code=404, detail="Deal not found")


@router.patch("/deals/{deal_id}")
def update_deal(deal_id: str, req: DealUpdate, service: DealService = Depends(get_deal_service)):
    try:
        deal = service.update(deal_id, req.model_dump(exclude_unset=True))
    except DealNotFound:
        raise HTTPException(status_code=404, detail="Deal not found")
    return _deal_payload(deal)


@router.delete("/deals/{deal_id}", status_code=204)
def delete_deal(deal_id: str, service: DealService = Depends(get_deal_service)):
    try:
        service.delete(deal_id)
    except DealNotFound:
        raise HTTPException(status_code=404, detail="Deal not found")


@router.get("/deals/{deal_id}/memo", response_class=HTMLResponse)
def deal_memo(deal_id: str, service: DealService = Depends(get_deal_service)):
    try:
        deal = service.get(deal_id)
    except DealNotFound:
        raise HTTPException(status_code=404, detail="Deal not found")
    if not deal.memo_html:
        raise HTTPException(status_code=404, detail="No memo available for this deal yet.")
    return HTMLResponse(deal.memo_html)


# ---------------------------
# Deck files
# ---------------------------

@router.get("/deals/{deal_id}/documents", response_model=List[DeckFileOut])
def list_deal_documents(deal_id: str, service: DealService = Depends(get_deal_service)):
    try:
        return service.list_documents(deal_id)
    except DealNotFound:
        raise HTTPException(status_code=404, detail="Deal not found")


@router.post("/deals/{deal_id}/documents", response_model=DeckFileOut, status_code=201)
async def upload_deal_document(
    deal_id: str,
    file: UploadFile = File(...),
    sender_email: Optional[str] = Form(None),
    service: DealService = Depends(get_deal_service),
):
    incoming = await read_upload(file)
    try:
        return service.upload_document(deal_id, incoming, sender_email)
    except DealNotFound:
        raise HTTPException(status_code=404, detail="Deal not found")
    except StorageError as e:
        raise HTTPException(status_code=502, detail=f"Error uploading file: {e}")


@router.patch("/deals/{deal_id}/documents/{document_id}", response_model=DeckFileOut)
def rename_deal_document(deal_id: str, document_id: str, req: RenameRequest,
                         service: DealService = Depends(get_deal_service)):
    try:
        return service.rename_document(deal_id, document_id, req.name)
    except DealNotFound:
        raise HTTPException(status_code=404, detail="Document not found")


@router.delete("/deals/{deal_id}/documents/{document_id}", status_code=204)
def delete_deal_document(deal_id: str, document_id: str,
                         service: DealService = Depends(get_deal_service)):
    try:
        service.delete_document(deal_id, document_id)
    except DealNotFound:
        raise HTTPException(status_code=404, detail="Document not found")


@router.get("/deals/{deal_id}/documents/{document_id}/url", response_model=SignedUrlResponse)
def deal_document_url(deal_id: str, document_id: str,
                      service: DealService = Depends(get_deal_service)):
    try:
        return SignedUrlResponse(url=service.document_url(deal_id, document_id))
    except DealNotFound:
        raise HTTPException(status_code=404, detail="Document not found")
    except StorageError as e:
        raise HTTPException(status_code=502, detail=f"Error creating signed URL: {e}")

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .chat import ChatError, ChatService, ConversationNotFound
from .db import get_db
from .deals import DealNotFound
from .dependencies import get_integrations
from .integrations import IntegrationClient
from .portfolio import CompanyNotFound
from .schemas import ChatMessageOut, ChatReply, ChatRequest, ConversationOut

router = APIRouter()


def get_chat_service(
    db: Session = Depends(get_db),
    integrations: IntegrationClient = Depends(get_integrations),
) -> ChatService:
    return ChatService(db, integrations)


def _reply(result) -> ChatReply:
    conversation, question, answer = result
    return ChatReply(
        conversation=ConversationOut.model_validate(conversation),
        user_message=ChatMessageOut.model_validate(question),
        assistant_message=ChatMessageOut.model_validate(answer),
    )


@router.post("/deals/{deal_id}/chat", response_model=ChatReply)
def chat_with_deal(deal_id: str, req: ChatRequest, service: ChatService = Depends(get_chat_service)):
    try:
        return _reply(service.send_to_deal(deal_id, req.message, req.conversation_id))
    except DealNotFound:
        raise HTTPException(status_code=404, detail="Deal not found")
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except ChatError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/deals/{deal_id}/conversations", response_model=List[ConversationOut])
def deal_conversations(deal_id: str, service: ChatService = Depends(get_chat_service)):
    try:
        return service.deal_conversations(deal_id)
    except DealNotFound:
        raise HTTPException(status_code=404, detail="Deal not found")


@router.post("/companies/{company_id}/chat", response_model=ChatReply)
def chat_with_company(company_id: str, req: ChatRequest, service: ChatService = Depends(get_chat_service)):
    try:
        return _reply(service.send_to_company(company_id, req.message, req.conversation_id))
    except CompanyNotFound:
        raise HTTPException(status_code=404, detail="Company not found")
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except ChatError as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/companies/{company_id}/conversations", response_model=List[ConversationOut])
def company_conversations(company_id: str, service: ChatService = Depends(get_chat_service)):
    try:
        return service.company_conversations(company_id)
    except CompanyNotFound:
        raise HTTPException(status_code=404, detail="Company not found")


@router.get("/conversations/{conversation_id}/messages", response_model=List[ChatMessageOut])
def conversation_messages(conversation_id: str, service: ChatService = Depends(get_chat_service)):
    try:
        return service.messages(conversation_id)
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Conversation not found")


@router.delete("/conversations/{conversation_id}", status_code=204)
def delete_conversation(conversation_id: str, service: ChatService = Depends(get_chat_service)):
    try:
        service.delete(conversation_id)
    except ConversationNotFound:
        raise HTTPException(status_code=404, detail="Conversation not found")

"""Conversations with the automation chat agents, one thread list per deal or portfolio company."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from .config import DEAL_CHAT_WEBHOOK_URL, PORTFOLIO_CHAT_WEBHOOK_URL
from .db import Conversation, ConversationMessage, Deal
from .deals import DealNotFound
from .integrations import IntegrationClient, IntegrationError
from .portfolio import get_company

logger = logging.getLogger(__name__)

TITLE_LENGTH = 50
FALLBACK_REPLY = "Je n'ai pas pu générer de réponse. Veuillez réessayer."

# The agents answer under different keys depending on the workflow version.
REPLY_KEYS = ("message", "output", "response")


class ChatError(Exception):
    """Raised when the chat agent is unreachable or its answer is unusable."""


class ConversationNotFound(Exception):
    pass


def normalize_chat_reply(raw: Any) -> str:
    """Extract the answer text from an object or a one-element list."""
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    if not isinstance(raw, dict):
        raise ChatError("Format de réponse invalide")
    for key in REPLY_KEYS:
        text = raw.get(key)
        if text:
            return str(text)
    return FALLBACK_REPLY


def conversation_title(content: str) -> str:
    if len(content) > TITLE_LENGTH:
        return content[:TITLE_LENGTH] + "..."
    return content


class ChatService:
    def __init__(self, db: Session, integrations: IntegrationClient):
        self.db = db
        self.integrations = integrations

    def _deal(self, deal_id: str) -> Deal:
        deal = self.db.get(Deal, deal_id)
        if deal is None:
            raise DealNotFound(deal_id)
        return deal

    def _conversations(self, **owner) -> List[Conversation]:
        return (
            self.db.query(Conversation)
            .filter_by(**owner)
            .order_by(Conversation.updated_at.desc())
            .all()
        )

    def deal_conversations(self, deal_id: str) -> List[Conversation]:
        self._deal(deal_id)
        return self._conversations(deal_id=deal_id)

    def company_conversations(self, company_id: str) -> List[Conversation]:
        get_company(self.db, company_id)
        return self._conversations(company_id=company_id)

    def get(self, conversation_id: str) -> Conversation:
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise ConversationNotFound(conversation_id)
        return conversation

    def messages(self, conversation_id: str) -> List[ConversationMessage]:
        return list(self.get(conversation_id).messages)

    def delete(self, conversation_id: str) -> None:
        self.db.delete(self.get(conversation_id))
        self.db.commit()

    def send_to_deal(self, deal_id: str, content: str, conversation_id: Optional[str] = None):
        deal = self._deal(deal_id)
        return self._send(
            DEAL_CHAT_WEBHOOK_URL,
            content,
            conversation_id,
            owner={"deal_id": deal.id},
            context={"deal_id": deal.id, "company_name": deal.company_name},
        )

    def send_to_company(self, company_id: str, content: str, conversation_id: Optional[str] = None):
        company = get_company(self.db, company_id)
        return self._send(
            PORTFOLIO_CHAT_WEBHOOK_URL,
            content,
            conversation_id,
            owner={"company_id": company.id},
            context={"portfolio_company_id": company.id},
        )

    def _open(self, conversation_id: Optional[str], content: str, owner: Dict[str, str]) -> Conversation:
        if conversation_id is None:
            conversation = Conversation(title=conversation_title(content), **owner)
            self.db.add(conversation)
            return conversation
        conversation = self.get(conversation_id)
        # a thread never moves between deals or companies
        if any(getattr(conversation, field) != value for field, value in owner.items()):
            raise ConversationNotFound(conversation_id)
        return conversation

    def _send(self, url: str, content: str, conversation_id: Optional[str],
              owner: Dict[str, str], context: Dict[str, Any]
              ) -> Tuple[Conversation, ConversationMessage, ConversationMessage]:
        """Store the question, ask the agent, store its answer.

        The question is committed before the webhook call, so it stays in the
        thread when the agent fails.
        """
        conversation = self._open(conversation_id, content, owner)
        question = ConversationMessage(conversation=conversation, role="user", content=content)
        self.db.add(question)
        self.db.commit()

        payload = {"message": content, "conversation_id": conversation.id, **context}
        try:
            reply = normalize_chat_reply(self.integrations.post_json(url, payload))
        except (IntegrationError, ChatError) as e:
            logger.error("Chat error in conversation %s: %s", conversation.id, e)
            raise ChatError(f"Erreur lors de l'envoi du message: {e}") from e

        answer = ConversationMessage(conversation=conversation, role="assistant", content=reply)
        conversation.updated_at = datetime.utcnow()
        self.db.add(answer)
        self.db.commit()
        self.db.refresh(conversation)
        self.db.refresh(question)
        self.db.refresh(answer)
        return conversation, question, answer

# dealdesk/db.py

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Text,
    create_engine,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

from .config import DATABASE_URL

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, echo=False, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere (sqlite in tests)
JSONType = JSON().with_variant(JSONB, "postgresql")


def new_id() -> str:
    return str(uuid.uuid4())


class Deal(Base):
    __tablename__ = "deals"
    id = Column(Text, primary_key=True, default=new_id)
    company_name = Column(Text, nullable=False)
    sector = Column(Text)
    stage = Column(Text)
    status = Column(Text, nullable=False, default="pending")
    source = Column(Text, default="form")
    additional_context = Column(Text)
    memo_html = Column(Text)
    error_message = Column(Text)
    analyzed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)

    deck_files = relationship(
        "DeckFile", back_populates="deal", cascade="all, delete-orphan"
    )


class DeckFile(Base):
    __tablename__ = "deck_files"
    id = Column(Text, primary_key=True, default=new_id)
    deal_id = Column(Text, ForeignKey("deals.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(Text, nullable=False)
    storage_path = Column(Text)
    mime_type = Column(Text)
    file_size_bytes = Column(BigInteger)
    sender_email = Column(Text)
    uploaded_at = Column(DateTime, default=datetime.utcnow)

    deal = relationship("Deal", back_populates="deck_files")


class PortfolioCompany(Base):
    __tablename__ = "portfolio_companies"
    id = Column(Text, primary_key=True, default=new_id)
    company_name = Column(Text, nullable=False)
    domain = Column(Text)
    sectors = Column(JSONType, default=list)
    investment_type = Column(Text)
    amount_invested_cents = Column(BigInteger)
    entry_valuation_cents = Column(BigInteger)
    ownership_percentage = Column(Float)
    investment_date = Column(Date)
    ai_analysis = Column(JSONType)
    ai_analysis_updated_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)


class CompanyReport(Base):
    __tablename__ = "company_reports"
    id = Column(Text, primary_key=True, default=new_id)
    company_id = Column(Text, ForeignKey("portfolio_companies.id", ondelete="CASCADE"), nullable=False, index=True)
    report_period = Column(Text)
    report_date = Column(Date)
    report_type = Column(Text)
    report_source = Column(Text)
    processing_status = Column(Text, default="pending")  # pending, processing, completed, failed
    headline = Column(Text)
    key_highlights = Column(JSONType)
    metrics = Column(JSONType)
    cleaned_content = Column(Text)
    has_attachments = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    files = relationship(
        "ReportFile", back_populates="report", cascade="all, delete-orphan"
    )


class ReportFile(Base):
    __tablename__ = "report_files"
    id = Column(Text, primary_key=True, default=new_id)
    report_id = Column(Text, ForeignKey("company_reports.id", ondelete="CASCADE"), nullable=False, index=True)
    file_name = Column(Text, nullable=False)
    original_file_name = Column(Text)
    storage_path = Column(Text, nullable=False)
    mime_type = Column(Text)
    file_size_bytes = Column(BigInteger)
    file_type = Column(Text, default="report")

    report = relationship("CompanyReport", back_populates="files")


class PortfolioDocument(Base):
    __tablename__ = "portfolio_documents"
    id = Column(Text, primary_key=True, default=new_id)
    company_id = Column(Text, ForeignKey("portfolio_companies.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Text, nullable=False)  # file | folder
    name = Column(Text, nullable=False)
    parent_id = Column(Text, ForeignKey("portfolio_documents.id", ondelete="CASCADE"), nullable=True)
    storage_path = Column(Text)
    mime_type = Column(Text)
    file_size_bytes = Column(BigInteger)
    original_file_name = Column(Text)
    text_content = Column(Text)
    source_report_id = Column(Text, ForeignKey("company_reports.id", ondelete="SET NULL"))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class CompanyDomain(Base):
    __tablename__ = "company_domains"
    id = Column(Text, primary_key=True, default=new_id)
    company_id = Column(Text, ForeignKey("portfolio_companies.id", ondelete="CASCADE"), nullable=False, index=True)
    domain = Column(Text, nullable=False)
    is_primary = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class Conversation(Base):
    """A chat thread about either a deal or a portfolio company."""

    __tablename__ = "conversations"
    id = Column(Text, primary_key=True, default=new_id)
    deal_id = Column(Text, ForeignKey("deals.id", ondelete="CASCADE"), index=True)
    company_id = Column(Text, ForeignKey("portfolio_companies.id", ondelete="CASCADE"), index=True)
    title = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    messages = relationship(
        "ConversationMessage",
        back_populates="conversation",
        cascade="all, delete-orphan",
        order_by="ConversationMessage.created_at",
    )


class ConversationMessage(Base):
    __tablename__ = "conversation_messages"
    id = Column(Text, primary_key=True, default=new_id)
    conversation_id = Column(Text, ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Text, nullable=False)  # user | assistant
    content = Column(Text, nullable=False)
    attachments = Column(JSONType)
    created_at = Column(DateTime, default=datetime.utcnow)

    conversation = relationship("Conversation", back_populates="messages")


def init_db():
    Base.metadata.create_all(bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

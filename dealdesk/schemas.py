# dealdesk/schemas.py

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ---------------------------
# Metrics
# ---------------------------

class MetricPoint(BaseModel):
    period: str                # e.g. "Q3 2024" or "March 2024"
    date: date
    value: float


class MetricSeries(BaseModel):
    key: str
    label: str
    metric_type: str
    category: str
    points: List[MetricPoint] = Field(default_factory=list)
    latest_value: Optional[float] = None
    formatted_latest: str = "-"
    variation: Optional[str] = None


class MetricsResponse(BaseModel):
    series: List[MetricSeries]
    categories: Dict[str, List[str]]
    default_selection: List[str]


# ---------------------------
# Deals
# ---------------------------

class DeckFileOut(ORMModel):
    id: str
    deal_id: str
    file_name: str
    storage_path: Optional[str] = None
    mime_type: Optional[str] = None
    file_size_bytes: Optional[int] = None
    sender_email: Optional[str] = None
    uploaded_at: Optional[datetime] = None


class DealOut(ORMModel):
    id: str
    company_name: str
    sector: Optional[str] = None
    stage: Optional[str] = None
    status: str
    source: Optional[str] = None
    additional_context: Optional[str] = None
    memo_html: Optional[str] = None
    error_message: Optional[str] = None
    analyzed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class DealUpdate(BaseModel):
    company_name: Optional[str] = None
    sector: Optional[str] = None
    stage: Optional[str] = None
    status: Optional[str] = None

    @field_validator("company_name")
    @classmethod
    def company_name_not_blank(cls, v):
        if v is not None and not v.strip():
            raise ValueError("company_name must not be blank")
        return v.strip() if v else v


class RenameRequest(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()


class SignedUrlResponse(BaseModel):
    url: str


# ---------------------------
# Portfolio companies & reports
# ---------------------------

class CompanyIn(BaseModel):
    company_name: str
    domain: Optional[str] = None
    sectors: List[str] = Field(default_factory=list)
    investment_type: Optional[str] = None
    amount_invested_cents: Optional[int] = None
    entry_valuation_cents: Optional[int] = None
    ownership_percentage: Optional[float] = None
    investment_date: Optional[date] = None


class CompanyOut(ORMModel):
    id: str
    company_name: str
    domain: Optional[str] = None
    sectors: Optional[List[str]] = None
    investment_type: Optional[str] = None
    amount_invested_cents: Optional[int] = None
    entry_valuation_cents: Optional[int] = None
    ownership_percentage: Optional[float] = None
    investment_date: Optional[date] = None
    created_at: Optional[datetime] = None


class ReportFileOut(ORMModel):
    id: str
    file_name: str
    storage_path: str
    mime_type: Optional[str] = "application/pdf"
    file_type: Optional[str] = "report"


class ReportOut(ORMModel):
    id: str
    company_id: str
    report_period: Optional[str] = None
    report_date: Optional[date] = None
    report_type: Optional[str] = None
    processing_status: Optional[str] = None
    headline: Optional[str] = None
    key_highlights: Optional[List[str]] = None
    metrics: Optional[Dict[str, Any]] = None
    cleaned_content: Optional[str] = None
    created_at: Optional[datetime] = None
    files: List[ReportFileOut] = Field(default_factory=list)


class ImportRowResult(BaseModel):
    success: bool
    company_name: str
    error: Optional[str] = None


class ImportSummary(BaseModel):
    total: int
    successful: int
    failed: int


class ImportResponse(BaseModel):
    success: bool
    summary: ImportSummary
    results: List[ImportRowResult]


# ---------------------------
# Documents
# ---------------------------

class FileKind(BaseModel):
    kind: str
    badge: Optional[str] = None
    color: Optional[str] = None
    icon: str = "file"
    preview: Optional[str] = None


class DocumentOut(ORMModel):
    id: str
    company_id: str
    type: Literal["file", "folder"]
    name: str
    parent_id: Optional[str] = None
    storage_path: Optional[str] = None
    mime_type: Optional[str] = None
    file_size_bytes: Optional[int] = None
    original_file_name: Optional[str] = None
    text_content: Optional[str] = None
    source_report_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # filled by documents.describe_document, files only
    file_kind: Optional[FileKind] = None
    previewable: bool = False


class DocumentTreeNode(DocumentOut):
    children: List["DocumentTreeNode"] = Field(default_factory=list)


class DocumentListing(BaseModel):
    documents: List[DocumentOut]
    tree: List[DocumentTreeNode]


class FolderCreate(BaseModel):
    name: str
    parent_id: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Folder name must not be blank")
        return v.strip()


class DocumentUpdate(BaseModel):
    """Rename and/or move. An explicit null parent_id moves to the root."""

    name: Optional[str] = None
    parent_id: Optional[str] = None


class ContentUpdate(BaseModel):
    content: str


class Breadcrumb(BaseModel):
    id: Optional[str] = None
    name: str


class TablePreview(BaseModel):
    sheet: str
    columns: List[str]
    rows: List[Dict[str, Any]]


class DocumentPreview(BaseModel):
    mode: Optional[str] = None
    file_kind: FileKind
    text: Optional[str] = None
    url: Optional[str] = None
    tables: List[TablePreview] = Field(default_factory=list)


# ---------------------------
# Domains
# ---------------------------

class DomainIn(BaseModel):
    domain: str


class DomainOut(ORMModel):
    id: str
    company_id: str
    domain: str
    is_primary: bool = False
    created_at: Optional[datetime] = None


# ---------------------------
# Chat
# ---------------------------

class ChatRequest(BaseModel):
    message: str
    conversation_id: Optional[str] = None

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v):
        if not v.strip():
            raise ValueError("Message must not be blank")
        return v.strip()


class ConversationOut(ORMModel):
    id: str
    deal_id: Optional[str] = None
    company_id: Optional[str] = None
    title: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ChatMessageOut(ORMModel):
    id: str
    conversation_id: str
    role: Literal["user", "assistant"]
    content: str
    attachments: Optional[List[Dict[str, Any]]] = None
    created_at: Optional[datetime] = None


class ChatReply(BaseModel):
    conversation: ConversationOut
    user_message: ChatMessageOut
    assistant_message: ChatMessageOut


# ---------------------------
# AI analysis
# ---------------------------

class HealthScore(BaseModel):
    score: float = 0
    label: str = ""
    rationale: Optional[str] = None
    good_points: List[str] = Field(default_factory=list)
    bad_points: List[str] = Field(default_factory=list)


class TopInsight(BaseModel):
    metric_key: str
    label: str
    current_value: str
    trend: str = ""
    trend_direction: Literal["up", "down", "stable"] = "stable"
    context: Optional[str] = None


class AIAlert(BaseModel):
    title: str
    message: str
    severity: Literal["critical", "warning", "info"] = "info"
    metric_key: Optional[str] = None


class CompanyAnalysis(BaseModel):
    executive_summary: str = ""
    health_score: HealthScore = Field(default_factory=HealthScore)
    top_insights: List[TopInsight] = Field(default_factory=list)
    alerts: List[AIAlert] = Field(default_factory=list)
    bp_vs_reality: List[Dict[str, Any]] = Field(default_factory=list)
    key_questions: List[Any] = Field(default_factory=list)
    raw_markdown: Optional[str] = None


class AnalysisResponse(BaseModel):
    available: bool
    analysis: Optional[CompanyAnalysis] = None
    health_color: Optional[str] = None
    updated_at: Optional[datetime] = None


class RunAnalysisRequest(BaseModel):
    force_refresh: bool = False

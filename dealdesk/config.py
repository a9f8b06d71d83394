# dealdesk/config.py

import os

# ---------------------------
# Database
# ---------------------------

DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"postgresql+psycopg2://"
    f"{os.getenv('POSTGRES_USER')}:{os.getenv('POSTGRES_PASSWORD')}@"
    f"{os.getenv('POSTGRES_HOST')}:{os.getenv('POSTGRES_PORT')}/"
    f"{os.getenv('POSTGRES_DB')}"
)

# ---------------------------
# Hosted backend (object storage + edge functions)
# ---------------------------

SUPABASE_URL = os.getenv("SUPABASE_URL", "http://localhost:54321").rstrip("/")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY", "")

REPORT_FILES_BUCKET = "report-files"
PORTFOLIO_DOCUMENTS_BUCKET = "portfolio-documents"
DECK_FILES_BUCKET = "deck-files"

# ---------------------------
# Automation webhooks
# ---------------------------

WEBHOOK_BASE_URL = os.getenv("WEBHOOK_BASE_URL", "https://n8n.alboteam.com/webhook").rstrip("/")
REPORT_WEBHOOK_URL = os.getenv("REPORT_WEBHOOK_URL", f"{WEBHOOK_BASE_URL}/upload_report_frontend")
DEAL_WEBHOOK_URL = os.getenv("DEAL_WEBHOOK_URL", f"{WEBHOOK_BASE_URL}/deal-analysis")
DECK_EMBEDDING_WEBHOOK_URL = os.getenv("DECK_EMBEDDING_WEBHOOK_URL", f"{WEBHOOK_BASE_URL}/deck-embedding")
DOMAIN_SCAN_WEBHOOK_URL = os.getenv("DOMAIN_SCAN_WEBHOOK_URL", f"{WEBHOOK_BASE_URL}/scan-new-domain")
DEAL_CHAT_WEBHOOK_URL = os.getenv("DEAL_CHAT_WEBHOOK_URL", f"{WEBHOOK_BASE_URL}/chat_with_your_deals")
PORTFOLIO_CHAT_WEBHOOK_URL = os.getenv(
    "PORTFOLIO_CHAT_WEBHOOK_URL", f"{WEBHOOK_BASE_URL}/6d0211b4-a08d-45b3-a20d-1b717f7713df"
)

HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "30"))

# ---------------------------
# Serving
# ---------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

MAX_DECK_SIZE_BYTES = 50 * 1024 * 1024

from __future__ import annotations

import os

DATABASE_URL = os.getenv("SENTENCE_BASE_DATABASE_URL", "sqlite:///./sentence_base.db")

SESSION_SECRET = os.getenv("SENTENCE_BASE_SESSION_SECRET", "dev-secret-change-me")
ENVIRONMENT = os.getenv("SENTENCE_BASE_ENVIRONMENT", "production").lower()
LOG_LEVEL = os.getenv("SENTENCE_BASE_LOG_LEVEL", "INFO").upper()

MAXIMUM_PENDING_SENTENCES = int(
    os.getenv("SENTENCE_BASE_MAXIMUM_PENDING_SENTENCES", "15")
)

EVENT_ID_RETENTION_SECONDS = int(
    os.getenv("SENTENCE_BASE_EVENT_ID_RETENTION_SECONDS", "3600")
)
EVENT_ID_SWEEP_PAGE_SIZE = int(os.getenv("SENTENCE_BASE_EVENT_ID_SWEEP_PAGE_SIZE", "100"))
EVENT_ID_SWEEP_INTERVAL_SECONDS = int(
    os.getenv("SENTENCE_BASE_EVENT_ID_SWEEP_INTERVAL_SECONDS", "3600")
)
COUNTER_DELIVERY_ATTEMPTS = int(os.getenv("SENTENCE_BASE_COUNTER_DELIVERY_ATTEMPTS", "3"))

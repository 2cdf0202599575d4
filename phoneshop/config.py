"""
Configuration

Environment-driven settings for the store backend, transactions and reports.
Values are read once at import time; a local .env file is honoured.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# Store backend: "supabase" for the hosted database, "memory" for local runs
STORE_BACKEND = os.getenv("STORE_BACKEND", "supabase").lower()

SUPABASE_URL = os.getenv("SUPABASE_URL")
# Service role key bypasses RLS; anon key is accepted as a fallback
SUPABASE_KEY = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY")

# Optimistic transactions (counter allocation, settlement payment)
TRANSACTION_MAX_ATTEMPTS = int(os.getenv("TRANSACTION_MAX_ATTEMPTS", "25"))
TRANSACTION_RETRY_DELAY = float(os.getenv("TRANSACTION_RETRY_DELAY", "0.01"))  # seconds

# Change subscriptions on backends without push notifications
SUBSCRIBE_POLL_SECONDS = float(os.getenv("SUBSCRIBE_POLL_SECONDS", "2.0"))

# Postgres / PostgREST error codes that mean "this query needs an index it doesn't have yet".
# 57014 = statement timeout on an unindexed jsonb scan.
INDEX_UNAVAILABLE_CODES = {
    code.strip()
    for code in os.getenv("INDEX_UNAVAILABLE_CODES", "57014,PGRST_INDEX").split(",")
    if code.strip()
}

# Business defaults
DEFAULT_TECH_COMMISSION_PERCENT = float(os.getenv("DEFAULT_TECH_COMMISSION_PERCENT", "0.5"))
UNKNOWN_NAME_PLACEHOLDER = os.getenv("UNKNOWN_NAME_PLACEHOLDER", "غير محدد")
DEFAULT_PART_NAME = os.getenv("DEFAULT_PART_NAME", "قطعة")
COUNTER_WIDTH = int(os.getenv("COUNTER_WIDTH", "6"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

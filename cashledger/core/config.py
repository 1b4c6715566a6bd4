# cashledger/core/config.py

import os
from dotenv import load_dotenv

load_dotenv()

DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_HOST = os.getenv("DB_HOST")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME")
if os.getenv("DATABASE_URL"):
    DATABASE_URL = os.getenv("DATABASE_URL")
elif DB_HOST:
    DATABASE_URL = f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}?sslmode=require"
else:
    DATABASE_URL = "sqlite:///./cashledger.db"

APP_ENV = os.getenv("APP_ENV", "development")
IS_PRODUCTION = APP_ENV == "production"
APP_URL = os.getenv("APP_URL", "http://localhost:3000")
CORS_ORIGINS = [origin.strip() for origin in os.getenv("CORS_ORIGINS", APP_URL).split(",") if origin.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Outbound mail API
MAIL_API_URL = os.getenv("MAIL_API_URL")
MAIL_API_KEY = os.getenv("MAIL_API_KEY")
MAIL_FROM = os.getenv("MAIL_FROM", "cashbook@localhost")

# Object storage API (signed URLs for receipts)
STORAGE_API_URL = os.getenv("STORAGE_API_URL", "http://localhost:54321/storage/v1")
STORAGE_SERVICE_KEY = os.getenv("STORAGE_SERVICE_KEY")
SIGNED_URL_DEFAULT_EXPIRY = int(os.getenv("SIGNED_URL_DEFAULT_EXPIRY", "60"))

HTTP_TIMEOUT = int(os.getenv("HTTP_TIMEOUT", "10"))

VOUCHER_MAX_ATTEMPTS = int(os.getenv("VOUCHER_MAX_ATTEMPTS", "3"))
VOUCHER_PAD_WIDTH = int(os.getenv("VOUCHER_PAD_WIDTH", "3"))
LOW_BALANCE_THRESHOLD = float(os.getenv("LOW_BALANCE_THRESHOLD", "500"))
# 0 disables amount-based auto approval
AUTO_APPROVE_LIMIT = float(os.getenv("AUTO_APPROVE_LIMIT", "0"))

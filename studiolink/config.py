import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./studiolink.db")

# Shared admin password - there is deliberately no default
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD")

# Public base URL used to build /download/<token> links
APP_URL = os.getenv("APP_URL", "http://localhost:8000").rstrip("/")

# Magic links
MAGIC_LINK_TTL_DAYS = int(os.getenv("MAGIC_LINK_TTL_DAYS", "7"))

# Cloudflare R2 Configuration
R2_ACCOUNT_ID = os.getenv("R2_ACCOUNT_ID")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_BUCKET_NAME = os.getenv("R2_BUCKET_NAME", "project-files")
# Public (r2.dev or custom domain) prefix the bucket is served from
R2_PUBLIC_URL = os.getenv("R2_PUBLIC_URL", "https://files.localhost/project-files").rstrip("/")
STORAGE_CONNECT_TIMEOUT = float(os.getenv("STORAGE_CONNECT_TIMEOUT", "10"))
STORAGE_READ_TIMEOUT = float(os.getenv("STORAGE_READ_TIMEOUT", "60"))
UPLOAD_MAX_ATTEMPTS = int(os.getenv("UPLOAD_MAX_ATTEMPTS", "3"))
UPLOAD_MAX_BYTES = int(os.getenv("UPLOAD_MAX_BYTES", str(2 * 1024 * 1024 * 1024)))  # 2GB

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Studio Files <files@localhost>")
INTERNAL_FROM_ADDRESS = os.getenv("INTERNAL_FROM_ADDRESS", "Studio Internal <internal@localhost>")
REPLY_TO_ADDRESS = os.getenv("REPLY_TO_ADDRESS")
NOTIFY_EMAILS = [e.strip() for e in os.getenv("NOTIFY_EMAILS", "").split(",") if e.strip()]
EMAIL_SEND_TIMEOUT = float(os.getenv("EMAIL_SEND_TIMEOUT", "15"))
# Svix signing secret from the Resend webhook settings (whsec_...)
RESEND_WEBHOOK_SECRET = os.getenv("RESEND_WEBHOOK_SECRET")
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Australia/Perth")

# Optional Redis for rate limiting; memory-only when unset
REDIS_URL = os.getenv("REDIS_URL")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", APP_URL).split(",") if o.strip()]

# scribeflow/config.py
import os
from pydantic import BaseModel
from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file

class Settings(BaseModel):
    # General app settings
    APP_NAME: str = "ScribeFlow Transcription Workflow API"
    env: str = os.getenv("ENV", "dev")

    # Host & Port settings
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))

    # CORS origins for frontend
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Auto-save debounce delay (milliseconds of quiet before a draft is saved)
    autosave_delay_ms: int = int(os.getenv("AUTOSAVE_DELAY_MS", "2000"))

    # Where segment snapshots go: "tortoise" (segment_snapshots table) or "memory"
    segment_sink: str = os.getenv("SEGMENT_SINK", "tortoise").lower()

    # Default super-admin created on first start (skipped without a password)
    superadmin_email: str = os.getenv("SUPERADMIN_EMAIL", "superadmin@example.com")
    superadmin_name: str = os.getenv("SUPERADMIN_NAME", "Super Administrator")
    superadmin_password: str | None = os.getenv("SUPERADMIN_PASSWORD")

settings = Settings()  # Instantiate configuration

# config.py
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env if present
load_dotenv()

BASE_DIR = Path(__file__).resolve().parent


class Config:
    # Flask
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-change-me")

    # Backend REST API (documents are persisted there, not here)
    # Example: http://localhost:4000/api
    API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:4000/api").rstrip("/")
    API_TOKEN = os.getenv("API_TOKEN", "")
    API_TIMEOUT = float(os.getenv("API_TIMEOUT", "15"))

    # Server-side "download" mode writes rendered PDFs here
    EXPORTS_DIR = os.getenv("EXPORTS_DIR", (BASE_DIR / "exports").as_posix())

    # Optional TTF fonts; Helvetica is used when unset
    PDF_FONT_PATH = os.getenv("PDF_FONT_PATH", "")
    PDF_BOLD_FONT_PATH = os.getenv("PDF_BOLD_FONT_PATH", "")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

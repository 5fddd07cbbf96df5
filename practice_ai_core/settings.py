# practice_ai_core/settings.py

import logging
import os
import pathlib
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

ROOT = pathlib.Path(__file__).resolve().parent.parent
ENV_FILE = ROOT / ".env"

LOG_FORMAT = "[%(asctime)s] %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    google_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    question_bank_dir: str = "data"
    question_bank_probability: float = 0.7
    history_file: str = "results/history.json"
    log_level: str = "INFO"
    app_id: str = "default-app-id"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logging.warning(f"⚠️ {name}={raw!r} không phải số, dùng mặc định {default}")
        return default


def load_settings(env_file: Optional[pathlib.Path] = None) -> Settings:
    """Đọc cấu hình từ .env (nếu có) + biến môi trường."""
    load_dotenv(dotenv_path=env_file or ENV_FILE)
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        google_api_key=os.getenv("GOOGLE_API_KEY"),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash"),
        question_bank_dir=os.getenv("QUESTION_BANK_DIR", "data"),
        question_bank_probability=min(1.0, max(0.0, _float_env("QUESTION_BANK_PROBABILITY", 0.7))),
        history_file=os.getenv("PRACTICE_HISTORY_FILE", "results/history.json"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        app_id=os.getenv("APP_ID", "default-app-id"),
    )


def configure_logging(settings: Settings, log_file: Optional[str] = None) -> None:
    handlers = [logging.StreamHandler()]
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT, handlers=handlers)

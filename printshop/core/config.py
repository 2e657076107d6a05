# printshop/core/config.py
import os
from typing import List, Optional
from pydantic import BaseModel
from dotenv import load_dotenv
from urllib.parse import quote_plus

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


class Settings(BaseModel):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Print Shop Orders")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api")

    # CORS (env takes priority)
    BACKEND_CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ))

    # ---------- MySQL ----------
    MYSQL_HOST: str = os.getenv("MYSQL_HOST", "localhost")
    MYSQL_PORT: int = int(os.getenv("MYSQL_PORT", "3306"))
    MYSQL_USER: str = os.getenv("MYSQL_USER", "printshop")
    MYSQL_PASSWORD: str = os.getenv("MYSQL_PASSWORD", "")
    MYSQL_DB: str = os.getenv("MYSQL_DB", "printshop")
    DB_DRIVER: str = os.getenv("DB_DRIVER", "pymysql")

    # Full URL wins over the MYSQL_* parts (sqlite for local runs)
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL") or None

    SQLALCHEMY_DATABASE_URI: str = DATABASE_URL or (
        f"mysql+{DB_DRIVER}://{quote_plus(MYSQL_USER)}:{quote_plus(MYSQL_PASSWORD)}"
        f"@{MYSQL_HOST}:{MYSQL_PORT}/{MYSQL_DB}?charset=utf8mb4")

    # ---------- Security ----------
    JWT_SECRET: str = os.getenv("JWT_SECRET", "change-this")
    JWT_ALG: str = os.getenv("JWT_ALG", "HS256")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # ---------- Workflow defaults ----------
    # percentage, used when the settings table has no tax_rate row
    DEFAULT_TAX_RATE: float = float(os.getenv("DEFAULT_TAX_RATE", "10") or 10)
    DISCOUNT_APPROVAL_THRESHOLD: float = float(
        os.getenv("DISCOUNT_APPROVAL_THRESHOLD", "15") or 15)
    JOB_DUE_DAYS: int = int(os.getenv("JOB_DUE_DAYS", "3"))
    DEFAULT_CREDIT_PERIOD_DAYS: int = int(
        os.getenv("DEFAULT_CREDIT_PERIOD_DAYS", "30"))
    QUOTATION_VALID_DAYS: int = int(os.getenv("QUOTATION_VALID_DAYS", "30"))


settings = Settings()

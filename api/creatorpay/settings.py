# api/creatorpay/settings.py
import os
from pathlib import Path
from dotenv import load_dotenv

# Always load the repo-root .env, regardless of CWD
ROOT_ENV = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(dotenv_path=ROOT_ENV)


def _bool(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # ----------------------------------------------------------------------
    # App
    # ----------------------------------------------------------------------
    ENV = os.getenv("ENV", "local")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON = _bool("LOG_JSON")
    CORS_ORIGINS = [
        o.strip()
        for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
        if o.strip()
    ]

    # ----------------------------------------------------------------------
    # Database
    # ----------------------------------------------------------------------
    DATABASE_URL = os.getenv("DATABASE_URL", "")
    PGHOST = os.getenv("PGHOST", "localhost")
    PGPORT = int(os.getenv("PGPORT", "5432"))
    PGUSER = os.getenv("PGUSER", "creatorpay")
    PGPASSWORD = os.getenv("PGPASSWORD", "creatorpay")
    PGDATABASE = os.getenv("PGDATABASE", "creatorpay")

    # ----------------------------------------------------------------------
    # Wallet payments (NovyPay)
    # ----------------------------------------------------------------------
    NOVYPAY_BASE_URL = os.getenv("NOVYPAY_BASE_URL", "https://burntpay-u44m.onrender.com")
    NOVYPAY_API_KEY = os.getenv("NOVYPAY_API_KEY", "")
    NOVYPAY_TIMEOUT = float(os.getenv("NOVYPAY_TIMEOUT", "15"))

    # ----------------------------------------------------------------------
    # Price quote
    # ----------------------------------------------------------------------
    COINGECKO_API_URL = os.getenv("COINGECKO_API_URL", "https://api.coingecko.com/api/v3/simple/price")
    COINGECKO_API_KEY = os.getenv("COINGECKO_API_KEY", "")
    PRICE_CACHE_TTL = int(os.getenv("PRICE_CACHE_TTL", "300"))

    # ----------------------------------------------------------------------
    # Worker / notifications
    # ----------------------------------------------------------------------
    EXPIRY_NOTICE_DAYS = int(os.getenv("EXPIRY_NOTICE_DAYS", "7"))
    WORKER_INTERVAL_SECONDS = int(os.getenv("WORKER_INTERVAL_SECONDS", "3600"))
    WORKER_EXPIRE_LAPSED = _bool("WORKER_EXPIRE_LAPSED")

    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.PGUSER}:{self.PGPASSWORD}"
            f"@{self.PGHOST}:{self.PGPORT}/{self.PGDATABASE}"
        )


settings = Settings()

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, min_value: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        value = default
    else:
        try:
            value = int(raw)
        except ValueError:
            value = default
    if min_value is not None:
        return max(min_value, value)
    return value


def _env_choice(name: str, default: str, choices: set[str]) -> str:
    value = os.getenv(name, default).strip().lower()
    return value if value in choices else default


@dataclass(frozen=True)
class Settings:
    app_name: str
    secret_key: str
    algorithm: str
    access_token_expire_minutes: int
    issuer: str
    cors_origins: tuple[str, ...]
    database_url: str
    auto_create_schema: bool
    approval_policy: str
    strict_approval: bool
    adjustment_no_prefix: str
    currency: str
    log_level: str
    log_file: str
    bootstrap_admin_username: str
    bootstrap_admin_email: str
    bootstrap_admin_password: str

    @property
    def auto_approve(self) -> bool:
        return self.approval_policy == "auto"


settings = Settings(
    app_name=os.getenv("APP_NAME", "Stock Adjustment Ledger API"),
    secret_key=os.getenv("SECRET_KEY", "CHANGE_ME_IN_PRODUCTION_32_CHAR_MIN_SECRET_KEY"),
    algorithm=os.getenv("ALGORITHM", "HS256"),
    access_token_expire_minutes=_env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60, min_value=1),
    issuer=os.getenv("TOKEN_ISSUER", "stockledger-api"),
    cors_origins=tuple(
        origin.strip().rstrip("/")
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
        if origin.strip()
    ),
    database_url=os.getenv("DATABASE_URL", "sqlite:///./stockledger.db"),
    auto_create_schema=_env_bool("AUTO_CREATE_SCHEMA", False),
    approval_policy=_env_choice("APPROVAL_POLICY", "manual", {"manual", "auto"}),
    strict_approval=_env_bool("STRICT_APPROVAL", True),
    adjustment_no_prefix=os.getenv("ADJUSTMENT_NO_PREFIX", "SA").strip() or "SA",
    currency=os.getenv("CURRENCY", "KES"),
    log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    log_file=os.getenv("LOG_FILE", ""),
    bootstrap_admin_username=os.getenv("BOOTSTRAP_ADMIN_USERNAME", "admin"),
    bootstrap_admin_email=os.getenv("BOOTSTRAP_ADMIN_EMAIL", "admin@stockledger.local"),
    bootstrap_admin_password=os.getenv("BOOTSTRAP_ADMIN_PASSWORD", ""),
)

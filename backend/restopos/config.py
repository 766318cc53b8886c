from decimal import Decimal
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, model_validator, field_validator
import secrets

BASE_DIR = Path(__file__).resolve().parent.parent  # backend/

class Settings(BaseSettings):
    # ===== ENTORNO =====
    environment: str = Field(default="development")
    debug: bool = Field(default=False)

    # ===== DATABASE =====
    database_url: str = Field(default="sqlite:///./data/restopos.db")

    # ===== SECURITY =====
    # Tokens emitidos por el servicio externo de autenticación
    secret_key: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    jwt_algorithm: str = Field(default="HS256")

    # ===== CORS =====
    allowed_origins: str = Field(default="http://localhost:5173,http://localhost:3000")

    # ===== CIERRE / REEMISIÓN =====
    lock_timeout_seconds: float = Field(default=5.0)
    large_negative_net_threshold: Decimal = Field(default=Decimal("500.00"))

    # ===== DOCUMENTOS =====
    default_currency: str = Field(default="PEN")
    default_exchange_rate: Decimal = Field(default=Decimal("1.0"))
    igv_percent: Decimal = Field(default=Decimal("18.0"))

    # ===== COLA DE IMPRESIÓN =====
    celery_broker_url: str = Field(default="redis://localhost:6379/0")
    celery_result_backend: str = Field(default="redis://localhost:6379/0")
    celery_task_always_eager: bool = Field(default=False)
    print_task_max_retries: int = Field(default=3)
    print_task_backoff_seconds: int = Field(default=10)
    printer_gateway_url: str = Field(default="http://localhost:9100")
    printer_gateway_timeout_seconds: float = Field(default=10.0)

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @field_validator("lock_timeout_seconds", mode="after")
    @classmethod
    def non_negative_timeout(cls, v: float) -> float:
        return max(v, 0.0)

    @model_validator(mode="after")
    def validate_secret_key(self):
        if self.environment == "production" and len(self.secret_key) < 32:
            raise ValueError("SECRET_KEY debe tener al menos 32 caracteres en producción.")
        return self

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]

    @property
    def logs_path(self) -> Path:
        if self.environment == "production":
            return Path("/app/logs")
        return BASE_DIR / "logs"


settings = Settings()

from pydantic import PrivateAttr
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "Card Application Portal"
    debug: bool = False
    log_level: str = "INFO"
    port: int = 3005

    # Local store for in-progress drafts only; the system of record is remote.
    database_url: str = "sqlite+aiosqlite:///./portal_drafts.db"
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    remote_api_url: str = "https://api.ndaid.help/api"
    asset_base_url: str = "https://api.ndaid.help"
    remote_timeout_seconds: float = 30.0
    # a draft left in "submitting" longer than this is handed back to the form
    submit_stale_seconds: int = 600

    currency: str = "AED"
    base_amount: int = 100
    lanyard_amount: int = 20

    card_number_prefix: str = "NDAid-"
    card_validity_days: int = 730

    bank_name: str = "Emirates NBD"
    bank_account_number: str = "1234567890"
    bank_iban: str = "AE070260001234567890"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    _is_sqlite: bool = PrivateAttr(default=False)

    def model_post_init(self, __context: object) -> None:
        _scheme = self.database_url.split(":")[0].lower()
        object.__setattr__(self, "_is_sqlite", "sqlite" in _scheme)

    @property
    def is_sqlite(self) -> bool:
        return self._is_sqlite


settings = Settings()

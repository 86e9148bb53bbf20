from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """
    Manages all application settings. It automatically reads from
    environment variables or a .env file.
    """
    # Tell pydantic to load variables from a .env file
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Where the patient ledger, the Excel mirror and the counter live
    DATA_DIR: Path = Path("data")
    LEDGER_CSV_FILE: str = "patient_data.csv"
    MIRROR_XLSX_FILE: str = "patient_data.xlsx"
    COUNTER_FILE: str = "patient_counter.json"

    # Drop updates whose seq is older than the last applied one for that device
    ENFORCE_SEQ_ORDER: bool = False

    CORS_ORIGINS: List[str] = ["*"]
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    LOG_LEVEL: str = "INFO"

    @property
    def ledger_csv_path(self) -> Path:
        return self.DATA_DIR / self.LEDGER_CSV_FILE

    @property
    def mirror_xlsx_path(self) -> Path:
        return self.DATA_DIR / self.MIRROR_XLSX_FILE

    @property
    def counter_path(self) -> Path:
        return self.DATA_DIR / self.COUNTER_FILE

# Create a single, reusable instance of the settings
settings = Settings()

from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    PROJECT_NAME: str = "ClinicShiftScheduler"
    # production hides stack traces in 500 responses
    ENVIRONMENT: str = "development"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./clinic_scheduler.db"
    DB_ECHO: bool = False

    # Token lifetime (minutes)
    TOKEN_EXPIRE_TIME: int = 60 * 24
    # Token signing key
    SECRET_KEY: str = "change-me-in-production"
    # HS256 symmetric, RS256 asymmetric
    TOKEN_ALGORITHM: str = "HS256"

    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:3000"]

    LOG_DIR: str = "logs"
    LOG_LEVEL: str = "INFO"

    # IPRESS header columns of the monthly report
    IPRESS_NAME: str = "CLINICA MUNDO SALUD SAC"
    IPRESS_CODE: str = "00009641"
    IPRESS_DISPLAY_NAME: Optional[str] = None
    IPRESS_RED: str = "NO PERTENECE A NINGUNA RED"
    DEFAULT_PROFESSION: str = "Medico"

    class Config:
        env_file = ".env"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def ipress_display_name(self) -> str:
        return self.IPRESS_DISPLAY_NAME or self.IPRESS_NAME

    # Success code
    SUCCESS_CODE: int = 0

    # Generic
    UNKNOWN_ERROR_CODE: int = 97  # unknown error
    HTTP_ERROR_CODE: int = 98  # HTTP error
    REQ_ERROR_CODE: int = 99  # bad request parameters

    # auth
    LOGIN_FAILED_CODE: int = 101
    INSUFFICIENT_AUTHORITY_CODE: int = 102
    USER_GET_FAILED_CODE: int = 103
    TOKEN_INVALID_CODE: int = 105

    # data
    DATA_GET_FAILED_CODE: int = 301  # lookup failed / not found
    CONFLICT_CODE: int = 302  # scheduling conflict
    DEPENDENCY_CODE: int = 303  # dependent rows block the operation
    REPORT_EMPTY_CODE: int = 401
    REPORT_FAILED_CODE: int = 402


settings = Settings()

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./quotes.db"
    LOG_LEVEL: str = "INFO"

    # Default company profile, seeded once and, editable through /api/company
    COMPANY_NAME: str = "Vortex Projetos"
    COMPANY_EMAIL: str = ""
    COMPANY_PHONE: str = ""

    # Costing
    HOURLY_RATE: float = 30.00  # printer hour
    DESIGN_FEE: float = 2500.00  # model drawn from scratch
    SCAN_FEE: float = 200.00

    # Generated quote documents
    ARTIFACT_DIR: str = "./artifacts"

    class Config:
        env_file = ".env"


settings = Settings()

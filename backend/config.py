from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./opsconsole.db"
    COMPANY_NAME: str = "Operations Console"

    # Analytics service - supplies worked hours per employee for a period
    ANALYTICS_URL: str = ""
    ANALYTICS_TIMEOUT_SECONDS: float = 10.0

    # Quote numbering
    QUOTE_NUMBER_PREFIX: str = "WYC"

    # Attachments
    ATTACHMENT_MAX_BYTES: int = 10 * 1024 * 1024
    UPLOAD_DIR: str = "uploads"

    # Cloudflare R2 - optional, local uploads/ used when unset
    CLOUDFLARE_R2_ACCOUNT_ID: str = ""
    CLOUDFLARE_R2_ACCESS_KEY_ID: str = ""
    CLOUDFLARE_R2_SECRET_ACCESS_KEY: str = ""
    CLOUDFLARE_R2_BUCKET: str = "opsconsole-attachments"

    class Config:
        env_file = ".env"


settings = Settings()

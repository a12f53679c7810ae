from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Video Upload Gateway"
    debug: bool = False
    log_level: str = "INFO"
    cors_allow_origins: list[str] = Field(default_factory=lambda: ["*"])

    minio_endpoint: str = "localhost:9000"
    minio_access_key: str = "minioadmin"
    minio_secret_key: str = "minioadmin"
    minio_secure: bool = False
    minio_region: str | None = None
    # Base used for returned object URLs; defaults to the endpoint itself.
    public_base_url: str | None = None
    # Grants anonymous s3:GetObject on buckets this service creates.
    public_read: bool = False

    video_bucket: str = "videos"
    media_bucket: str = "media"
    uploads_bucket: str = "uploads"
    max_video_size_bytes: int = Field(default=100 * MIB, ge=1)
    max_media_size_bytes: int = Field(default=100 * MIB, ge=1)
    uploads_unique_keys: bool = False

    @property
    def object_base_url(self) -> str:
        if self.public_base_url:
            return self.public_base_url.rstrip("/")
        scheme = "https" if self.minio_secure else "http"
        return f"{scheme}://{self.minio_endpoint}"


settings = Settings()

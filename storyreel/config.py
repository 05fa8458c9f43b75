"""
StoryReel Configuration
Centralized settings management using Pydantic Settings
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # ==========================================================================
    # Application
    # ==========================================================================
    app_name: str = "StoryReel"
    debug: bool = False
    app_version: str = "0.1.0"
    log_level: str = Field(default="INFO", description="Root log level for the storyreel logger")

    # ==========================================================================
    # AWS S3
    # ==========================================================================
    aws_access_key_id: str = Field(default="", description="AWS Access Key ID")
    aws_secret_access_key: str = Field(default="", description="AWS Secret Key")
    aws_region: str = Field(default="us-east-1", description="AWS Region")
    s3_bucket_name: str = Field(default="", description="S3 Bucket Name")
    upload_to_s3: bool = Field(default=False, description="Publish finished videos to S3 instead of /output")

    # ==========================================================================
    # Encoder
    # ==========================================================================
    ffmpeg_path: str = Field(default="ffmpeg", description="FFmpeg executable")
    ffprobe_path: str = Field(default="ffprobe", description="FFprobe executable")
    clip_timeout_seconds: float = Field(default=60, gt=0, le=600, description="Wall-clock limit per scene clip")
    concat_timeout_seconds: float = Field(default=600, gt=0, le=7200, description="Wall-clock limit for the final mux")
    min_output_bytes: int = Field(default=1000, ge=1, description="Smallest plausible final video size")

    # ==========================================================================
    # Scene Images
    # ==========================================================================
    public_base_url: str = Field(
        default="http://localhost:8000",
        description="Base address for relative image references that are not on local storage"
    )
    image_fetch_timeout_seconds: float = Field(default=20, gt=0, le=120)
    image_fetch_retries: int = Field(default=2, ge=0, le=5)

    # ==========================================================================
    # Security
    # ==========================================================================
    api_key: str = Field(default="", description="Optional API key for /api and /ws routes")
    cors_allowed_origins: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:8000",
            "http://127.0.0.1:8000"
        ],
        description="Allowed CORS origins"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================
    storage_root: str = Field(default=".", description="Root that '/uploads/...' style references resolve against")
    output_dir: str = Field(default="output", description="Published videos")
    temp_dir: str = Field(default="temp", description="Per-job render workspaces")
    data_dir: str = Field(default="data", description="Persistent application data directory")

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

"""
Configuration Management for Minabung

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MongoSettings(BaseSettings):
    """MongoDB document store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONGODB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    uri: str = Field(
        ...,
        description="MongoDB connection string"
    )
    database_name: str = Field(
        default="MINABUNG",
        description="Database holding the users and groups collections"
    )
    server_selection_timeout_ms: int = Field(
        default=5000,
        ge=100,
        description="How long to wait for a reachable server"
    )

    # Collection names
    users_collection: str = Field(default="users")
    groups_collection: str = Field(default="groups")
    audit_collection: str = Field(default="audit_log")


class SecuritySettings(BaseSettings):
    """Password hashing and token signing configuration."""

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    secret_key: str = Field(
        ...,
        min_length=8,
        description="Secret used to sign access tokens"
    )
    algorithm: str = Field(
        default="HS256",
        description="JWT signing algorithm"
    )
    bcrypt_rounds: int = Field(
        default=10,
        ge=4,
        le=15,
        description="bcrypt cost factor"
    )


class CloudinarySettings(BaseSettings):
    """Cloudinary media host configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CLOUDINARY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    cloud_name: str = Field(
        ...,
        description="Cloudinary cloud name"
    )
    api_key: str = Field(
        ...,
        description="Cloudinary API key"
    )
    api_secret: str = Field(
        ...,
        description="Cloudinary API secret"
    )
    folder: str = Field(
        default="minabung/profile_pictures",
        description="Folder profile pictures are uploaded into"
    )


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Upper bound for a single generation call"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Group caps
    max_owned_groups: int = Field(
        default=3,
        ge=1,
        description="How many groups one user may own at the same time"
    )
    max_joined_groups: int = Field(
        default=3,
        ge=1,
        description="How many groups one user may belong to, any role"
    )

    # AI-generated budgets
    budget_name_max_length: int = Field(
        default=15,
        ge=1,
        description="Longest budget name accepted from the language model"
    )
    default_group_name: str = Field(
        default="My Group",
        description="Name used when the language model omits one"
    )

    # File upload limits
    max_upload_size_mb: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum profile picture size in MB"
    )
    supported_image_formats: str = Field(
        default="jpeg,png,webp,gif",
        description="Comma-separated list of supported image formats"
    )

    @field_validator("supported_image_formats")
    @classmethod
    def validate_formats(cls, v: str) -> str:
        """At least one format must remain after splitting."""
        if not [fmt for fmt in v.split(",") if fmt.strip()]:
            raise ValueError("supported_image_formats cannot be empty")
        return v

    @property
    def supported_formats_list(self) -> list[str]:
        """Get supported formats as a list."""
        return [fmt.strip().lower() for fmt in self.supported_image_formats.split(",") if fmt.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        """Get max upload size in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def mongo(self) -> MongoSettings:
        return MongoSettings()

    @property
    def security(self) -> SecuritySettings:
        return SecuritySettings()

    @property
    def cloudinary(self) -> CloudinarySettings:
        return CloudinarySettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an extra
    "<name>_error" entry for each section that failed to load.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("mongo", "security", "cloudinary", "gemini", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results

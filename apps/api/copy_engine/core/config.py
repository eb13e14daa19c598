"""Application configuration."""

from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables and local env files."""

    # Share-link resolver
    resolver_api_url: str | None = Field(default=None, validation_alias=_env("VOLCENGINE_RESOLVER_API_URL", "RESOLVER_API_URL", "resolver_api_url"))
    resolver_api_key: str | None = Field(default=None, validation_alias=_env("VOLCENGINE_RESOLVER_API_KEY", "RESOLVER_API_KEY", "resolver_api_key"))
    resolver_video_url_field_path: str | None = Field(
        default=None,
        validation_alias=_env(
            "VOLCENGINE_RESOLVER_VIDEO_URL_FIELD_PATH",
            "RESOLVER_VIDEO_URL_FIELD_PATH",
            "resolver_video_url_field_path",
        ),
    )
    resolver_timeout: float = Field(default=15.0, gt=0, validation_alias=_env("RESOLVER_TIMEOUT_SECONDS", "resolver_timeout"))

    # Speech recognition
    asr_api_url: str | None = Field(default=None, validation_alias=_env("VOLCENGINE_ASR_API_URL", "ASR_API_URL", "asr_api_url"))
    asr_api_key: str | None = Field(default=None, validation_alias=_env("VOLCENGINE_ASR_API_KEY", "ASR_API_KEY", "asr_api_key"))
    asr_app_key: str | None = Field(default=None, validation_alias=_env("VOLCENGINE_ASR_APP_KEY", "asr_app_key"))
    asr_access_key: str | None = Field(default=None, validation_alias=_env("VOLCENGINE_ASR_ACCESS_KEY", "asr_access_key"))
    asr_resource_id: str | None = Field(default=None, validation_alias=_env("VOLCENGINE_ASR_RESOURCE_ID", "asr_resource_id"))
    asr_model: str | None = Field(default=None, validation_alias=_env("VOLCENGINE_ASR_MODEL", "asr_model"))
    asr_text_field_path: str | None = Field(
        default=None,
        validation_alias=_env("VOLCENGINE_ASR_TEXT_FIELD_PATH", "ASR_TEXT_FIELD_PATH", "asr_text_field_path"),
    )
    asr_timeout: float = Field(default=120.0, gt=0, validation_alias=_env("ASR_TIMEOUT_SECONDS", "asr_timeout"))
    asr_poll_interval: float = Field(default=1.5, ge=0, validation_alias=_env("ASR_POLL_INTERVAL_SECONDS", "asr_poll_interval"))
    asr_query_max_polls: int = Field(default=40, ge=1, validation_alias=_env("ASR_QUERY_MAX_POLLS", "asr_query_max_polls"))
    allow_mock_transcript: bool = Field(default=False, validation_alias=_env("ALLOW_MOCK_TRANSCRIPT", "allow_mock_transcript"))

    # Copy generation model
    llm_api_key: str | None = Field(default=None, validation_alias=_env("VOLCENGINE_LLM_API_KEY", "llm_api_key"))
    llm_model: str | None = Field(default=None, validation_alias=_env("VOLCENGINE_LLM_MODEL", "llm_model"))
    llm_base_url: str = Field(
        default="https://ark.cn-beijing.volces.com/api/v3",
        validation_alias=_env("VOLCENGINE_LLM_BASE_URL", "llm_base_url"),
    )
    llm_timeout: float = Field(default=30.0, gt=0, validation_alias=_env("VOLCENGINE_LLM_TIMEOUT_SECONDS", "llm_timeout"))

    # Quality gate
    style_similarity_threshold: float = Field(
        default=0.82,
        ge=0,
        le=1,
        validation_alias=_env("STYLE_SIMILARITY_THRESHOLD", "style_similarity_threshold"),
    )
    max_regenerate_count: int = Field(default=2, ge=0, validation_alias=_env("MAX_REGENERATE_COUNT", "max_regenerate_count"))

    # Media relay
    public_base_url: str | None = Field(default=None, validation_alias=_env("PUBLIC_BASE_URL", "public_base_url"))
    media_proxy_ttl: float = Field(default=600.0, gt=0, validation_alias=_env("MEDIA_PROXY_TTL_SECONDS", "media_proxy_ttl"))
    media_proxy_max_records: int = Field(default=200, ge=1, validation_alias=_env("MEDIA_PROXY_MAX_RECORDS", "media_proxy_max_records"))

    model_config = SettingsConfigDict(
        env_file=(".env.example", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def llm_configured(self) -> bool:
        return bool((self.llm_api_key or "").strip() and (self.llm_model or "").strip())


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()

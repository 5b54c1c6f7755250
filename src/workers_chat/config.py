"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful, friendly assistant. Provide concise and accurate "
    "responses and stay consistent with your earlier answers. Offer suggestions "
    "that help users with their next prompts. Your name is Chatre."
)


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    cloudflare_account_id: str = Field(
        ...,
        validation_alias=AliasChoices(
            "CLOUDFLARE_ACCOUNT_ID", "cloudflare_account_id"
        ),
    )
    cloudflare_api_token: SecretStr = Field(
        ...,
        validation_alias=AliasChoices("CLOUDFLARE_API_TOKEN", "cloudflare_api_token"),
    )
    workers_ai_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.cloudflare.com/client/v4"),
        validation_alias=AliasChoices("WORKERS_AI_BASE_URL", "base_url"),
    )

    chat_model_id: str = Field(
        default="@cf/meta/llama-3.3-70b-instruct-fp8-fast",
        validation_alias=AliasChoices("CHAT_MODEL_ID", "chat_model_id"),
    )
    txt2img_model_id: str = Field(
        default="@cf/runwayml/stable-diffusion-v1-5-txt2img",
        validation_alias=AliasChoices("TXT2IMG_MODEL_ID", "txt2img_model_id"),
    )
    img2img_model_id: str = Field(
        default="@cf/runwayml/stable-diffusion-v1-5-img2img",
        validation_alias=AliasChoices("IMG2IMG_MODEL_ID", "img2img_model_id"),
    )

    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        validation_alias=AliasChoices("SYSTEM_PROMPT", "system_prompt"),
    )
    chat_max_tokens: int = Field(
        default=1024,
        ge=1,
        validation_alias=AliasChoices("CHAT_MAX_TOKENS", "chat_max_tokens"),
    )
    img2img_default_strength: float = Field(
        default=0.75,
        ge=0,
        le=1,
        validation_alias=AliasChoices(
            "IMG2IMG_DEFAULT_STRENGTH",
            "img2img_default_strength",
        ),
    )

    # None disables the read timeout; a hung upstream call blocks the turn.
    request_timeout: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("WORKERS_AI_TIMEOUT", "timeout"),
        ge=1,
    )

    static_dir: Path = Field(
        default_factory=lambda: Path("public"),
        validation_alias=AliasChoices("STATIC_DIR", "static_dir"),
    )

    @property
    def account_run_url(self) -> str:
        """Base URL for `ai/run/{model}` calls on the configured account."""

        base = str(self.workers_ai_base_url).rstrip("/")
        return f"{base}/accounts/{self.cloudflare_account_id}/ai/run"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["DEFAULT_SYSTEM_PROMPT", "Settings", "get_settings"]

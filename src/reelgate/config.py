"""Configuration management."""

import os
from pathlib import Path
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "")
    return int(value) if value.strip() else default


class Config(BaseModel):
    """Application configuration."""

    # API Keys
    anthropic_api_key: str = Field(
        default_factory=lambda: os.getenv("ANTHROPIC_API_KEY", ""),
        description="Anthropic API key (content scoring)"
    )
    provider_api_key: str = Field(
        default_factory=lambda: os.getenv("PROVIDER_API_KEY", ""),
        description="API key for the generative task API"
    )
    provider_base_url: str = Field(
        default_factory=lambda: os.getenv("PROVIDER_BASE_URL", "https://api.piapi.ai/api/v1"),
        description="Base URL of the generative task API"
    )

    # Asset hosting
    public_asset_base_url: str = Field(
        default_factory=lambda: os.getenv("PUBLIC_ASSET_BASE_URL", ""),
        description="Public origin that root-relative asset paths are served from"
    )
    sound_effects_url: str = Field(
        default_factory=lambda: os.getenv(
            "SOUND_EFFECTS_URL",
            "https://reelgate-assets.s3.us-east-1.amazonaws.com/audio/sfx",
        ),
        description="Base URL of the stock sound effect library"
    )

    # Paths
    workspace: Path = Field(
        default_factory=lambda: Path(os.getenv("REELGATE_WORKSPACE", ".")),
        description="Workspace directory"
    )

    # Generation settings
    max_concurrent: int = Field(
        default_factory=lambda: _env_int("REELGATE_MAX_CONCURRENT", 3),
        description="Maximum concurrent provider calls across all scenes",
        ge=1,
    )
    default_model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Default Claude model for content scoring"
    )

    class Config:
        """Pydantic config."""
        frozen = False

    def validate_scorer_required(self) -> None:
        """Validate that content scoring credentials are set."""
        if not self.anthropic_api_key:
            raise ValueError("ANTHROPIC_API_KEY not set")

    def validate_provider_required(self) -> None:
        """Validate that generative provider configuration is set.

        Raises:
            ValueError: If any required provider configuration is missing.
        """
        missing: list[str] = []

        if not self.provider_api_key:
            missing.append("PROVIDER_API_KEY")
        if not self.provider_base_url:
            missing.append("PROVIDER_BASE_URL")

        if missing:
            raise ValueError(
                f"Missing required provider configuration: {', '.join(missing)}. "
                "Set the corresponding environment variables."
            )

        if not self.provider_base_url.startswith(("http://", "https://")):
            raise ValueError(
                f"PROVIDER_BASE_URL must be an http(s) URL. "
                f"Got: {self.provider_base_url}"
            )


# Global config instance
config = Config()

"""Runtime configuration for OrgPulse."""

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

DEFAULT_DATABASE = "orgpulse"
DEFAULT_CHECKPOINT_FILE = "checkpoint.json"


class OrgPulseConfig:
    """Configuration read from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        self.github_token: Optional[str] = os.getenv("GITHUB_TOKEN") or None
        self.mongo_uri: Optional[str] = os.getenv("MONGO_URI") or None
        self.mongo_database: str = os.getenv("MONGO_DATABASE", DEFAULT_DATABASE)
        self.checkpoint_path: Path = Path(
            os.getenv("ORGPULSE_CHECKPOINT_FILE", DEFAULT_CHECKPOINT_FILE)
        )
        self._raw_mongo_options: Optional[str] = os.getenv("MONGO_OPTIONS")

    def has_token(self) -> bool:
        """Check if a GitHub token is configured."""
        return self.github_token is not None

    @property
    def mongo_options(self) -> dict[str, Any]:
        """Extra MongoClient keyword arguments from MONGO_OPTIONS (JSON object)."""
        if not self._raw_mongo_options:
            return {}
        try:
            options = json.loads(self._raw_mongo_options)
        except json.JSONDecodeError as e:
            raise ValueError(f"MONGO_OPTIONS is not valid JSON: {e}") from e
        if not isinstance(options, dict):
            raise ValueError("MONGO_OPTIONS must be a JSON object")
        return options

    def validate(self) -> None:
        """Validate configuration and raise error if invalid."""
        missing = []
        if not self.mongo_uri:
            missing.append("MONGO_URI")

        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}"
            )
        # Surface a malformed MONGO_OPTIONS before connecting
        self.mongo_options


class FetchSettings(BaseModel):
    """Tunables for the fetch pipeline.

    Delays are in seconds. The defaults keep a single run under GitHub's
    secondary (abuse) rate limits for a token with the standard quota.
    """

    concurrency: int = Field(3, ge=1, description="Repositories fetched at once")
    batch_size: int = Field(5, ge=1, description="Repositories per batch")
    max_retries: int = Field(3, ge=0, description="Transient-error retry budget")
    request_timeout: float = Field(30.0, gt=0, description="HTTP timeout")
    repo_page_size: int = Field(100, ge=1, le=100)
    issue_page_size: int = Field(30, ge=1, le=100)
    issue_max_pages: int = Field(5, ge=1, description="Issue pages per repository")
    issue_checkpoint_every: int = Field(2, ge=1)
    item_delay: float = Field(0.3, ge=0, description="Stagger between batch items")
    batch_delay: float = Field(3.0, ge=0, description="Pause between batches")
    repo_page_delay: float = Field(0.2, ge=0)
    issue_page_delay: float = Field(0.15, ge=0)
    checkpoint_max_age: float = Field(
        3600.0, gt=0, description="Oldest checkpoint eligible for resumption"
    )

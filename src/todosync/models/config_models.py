"""Configuration models for todosync.

The store section selects the backing store adapter: a local SQLite vault or
a hosted (Supabase/PostgREST) backend.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class StoreConfig(BaseModel):
    """Backing store configuration."""

    type: Literal["local", "remote"] = Field(default="local", description="Store type")
    db_path: str | None = Field(
        default=None, description="SQLite vault path (local only)"
    )
    url: str = Field(default="", description="Backend base URL (remote only)")
    api_key: str = Field(default="", description="Backend API key (remote only)")
    table: str = Field(default="todos")
    timeout: int = Field(default=30)
    retry: int = Field(default=3)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Strip whitespace and trailing slashes."""
        return v.strip().rstrip("/")


class StorageConfig(BaseModel):
    """Attachment storage configuration."""

    bucket: str = Field(default="todo-attachments")
    local_dir: str | None = Field(
        default=None, description="Directory for locally stored attachments"
    )


class SyncConfig(BaseModel):
    """Sync driver timing configuration."""

    debounce_seconds: float = Field(default=1.0, ge=0)
    interval_seconds: float = Field(default=5.0, gt=0)
    initial_delay_seconds: float = Field(default=0.1, ge=0)
    max_consecutive_failures: int = Field(default=3, ge=1)


class OutputConfig(BaseModel):
    """Output configuration."""

    color: bool = Field(default=True)


class AppConfig(BaseModel):
    """Main todosync configuration."""

    user_id: str | None = Field(
        default=None, description="User recorded as creator of new todos"
    )
    store: StoreConfig = Field(default_factory=StoreConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

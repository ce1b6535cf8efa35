from typing import Any

from pydantic import BaseModel, Field, field_validator

from tinyblog.domain.entities import SiteMetaData


class StorageRules(BaseModel):
    db_path: str = "tinyblog.db"
    root_bucket: str = Field(default="BLOG", min_length=1)
    posts_bucket: str = Field(default="POSTS", min_length=1)
    file_mode: int = 0o600
    lock_timeout_seconds: float = Field(default=1.0, ge=0)
    busy_timeout_ms: int = Field(default=5000, ge=0)

    @field_validator("file_mode", mode="before")
    @classmethod
    def parse_octal_mode(cls, value: Any) -> Any:
        # "0600" / "600" in YAML strings are octal permission bits
        if isinstance(value, str):
            return int(value.removeprefix("0o"), 8)
        return value


class SlugRules(BaseModel):
    separator: str = Field(default="-", pattern=r"^[-_.~]$")


class RenderRules(BaseModel):
    """Overrides for the renderer; anything left unset keeps the built-in allow-list."""

    allowed_tags: list[str] | None = None
    allowed_attributes: dict[str, list[str]] | None = None
    allowed_protocols: list[str] | None = None
    link_rel: list[str] | None = None
    markdown_extensions: list[str] | None = None


class Rules(BaseModel):
    site: SiteMetaData = Field(default_factory=SiteMetaData)
    storage: StorageRules = Field(default_factory=StorageRules)
    slugs: SlugRules = Field(default_factory=SlugRules)
    render: RenderRules = Field(default_factory=RenderRules)

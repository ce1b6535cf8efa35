from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

# --- Posts ---


class Post(BaseModel):
    """
    A single blog post.

    Serialized field names are the stored record's tags: author, body,
    datePosted, title, slug. Every field may be empty.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    author: str = ""
    body: str = ""
    date_posted: datetime | None = Field(default=None, alias="datePosted")
    title: str = ""
    slug: str = ""


class SiteMetaData(BaseModel):
    """General information about the site."""

    title: str = "Tiny Blog"
    description: str = "A small, simple to reason about blog."

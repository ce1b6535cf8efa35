from pydantic import BaseModel, ConfigDict

from tinyblog.domain.entities import Post, SiteMetaData


# --- Requests ---
class PostWriteRequest(BaseModel):
    # slug and datePosted are assigned by the server; anything else is ignored
    model_config = ConfigDict(extra="ignore")

    title: str = ""
    author: str = ""
    body: str = ""


# --- Responses ---
class PostListResponse(BaseModel):
    site: SiteMetaData
    posts: list[Post]


class PostDetailResponse(BaseModel):
    post: Post
    html: str


class DeleteResponse(BaseModel):
    deleted: bool

"""
Posts component - Transactional post storage and the entry points built on it.
"""

from ._impl import (
    PostStore,
    create_post_store,
    decode_post,
    encode_post,
    resolve_db_path,
)
from .component import (
    run,
    run_create,
    run_delete,
    run_get,
    run_list,
    run_update,
)
from .models import (
    CreatePostInput,
    DeletePostInput,
    GetPostInput,
    ListPostsInput,
    PostDecodingError,
    PostEncodingError,
    PostListOutput,
    PostNotFoundError,
    PostOperationOutput,
    PostOutput,
    PostStoreError,
    PostValidationError,
    StorageUnavailableError,
    StorageWriteError,
    UpdatePostInput,
)
from .ports import PostStorePort, TimePort

__all__ = [
    # Entry points
    "run",
    "run_create",
    "run_delete",
    "run_get",
    "run_list",
    "run_update",
    # Input models
    "CreatePostInput",
    "DeletePostInput",
    "GetPostInput",
    "ListPostsInput",
    "UpdatePostInput",
    # Output models
    "PostListOutput",
    "PostOperationOutput",
    "PostOutput",
    "PostValidationError",
    # Errors
    "PostDecodingError",
    "PostEncodingError",
    "PostNotFoundError",
    "PostStoreError",
    "StorageUnavailableError",
    "StorageWriteError",
    # Ports
    "PostStorePort",
    "TimePort",
    # Store
    "PostStore",
    "create_post_store",
    "decode_post",
    "encode_post",
    "resolve_db_path",
]

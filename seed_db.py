import os
import sys
from pathlib import Path

# Add root to pythonpath
sys.path.append(os.getcwd())

from tinyblog.adapters.clock import SystemClock
from tinyblog.components.posts import (
    CreatePostInput,
    ListPostsInput,
    create_post_store,
    run_create,
    run_list,
)
from tinyblog.rules.loader import load_rules_or_default

SAMPLE_POSTS = [
    CreatePostInput(
        title="Hello World",
        author="Admin",
        body="Welcome to **Tiny Blog**.\n\nPosts are written in Markdown.",
    ),
    CreatePostInput(
        title="Formatting Cheatsheet",
        author="Admin",
        body=(
            "## Lists\n\n- one\n- two\n\n"
            "## Code\n\n```python\nprint('hello')\n```\n\n"
            "## Links\n\n[Markdown](https://daringfireball.net/projects/markdown/)"
        ),
    ),
]


def seed():
    data_dir = os.environ.get("TINYBLOG_DATA_DIR", "./data")
    rules = load_rules_or_default(Path(os.environ.get("TINYBLOG_RULES", "rules.yaml")))
    store = create_post_store(rules.storage, data_dir)
    print(f"Seeding to {store.path}")

    with store:
        existing = run_list(ListPostsInput(), store)
        if existing.total:
            print(f"Store already holds {existing.total} posts, nothing to do")
            return

        clock = SystemClock()
        for inp in SAMPLE_POSTS:
            result = run_create(inp, store, clock=clock, separator=rules.slugs.separator)
            if result.post is not None:
                print(f"Created post: {result.post.slug}")


if __name__ == "__main__":
    seed()

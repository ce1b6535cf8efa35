import argparse
import logging
import os
import sys
from pathlib import Path

from tinyblog.components.posts import (
    DeletePostInput,
    GetPostInput,
    ListPostsInput,
    PostStore,
    PostStoreError,
    create_post_store,
    run_delete,
    run_get,
    run_list,
)
from tinyblog.components.render import RenderPostInput, build_config, run_render
from tinyblog.rules.loader import load_rules_or_default
from tinyblog.rules.models import Rules

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cli")

RULES_PATH = os.environ.get("TINYBLOG_RULES", "rules.yaml")
DATA_DIR = os.environ.get("TINYBLOG_DATA_DIR", "./data")


def handle_init(store: PostStore, rules: Rules, args: argparse.Namespace) -> int:
    print(f"Post store ready at {store.path}")
    return 0


def handle_list(store: PostStore, rules: Rules, args: argparse.Namespace) -> int:
    result = run_list(ListPostsInput(), store)
    for post in result.items:
        posted = post.date_posted.isoformat() if post.date_posted else "-"
        print(f"{post.slug}\t{posted}\t{post.title}")
    print(f"{result.total} posts.")
    return 0


def handle_show(store: PostStore, rules: Rules, args: argparse.Namespace) -> int:
    result = run_get(GetPostInput(slug=args.slug), store)
    if not result.success or result.post is None:
        logger.error("Post %s not found.", args.slug)
        return 1

    post = result.post
    if args.html:
        rendered = run_render(RenderPostInput(body=post.body), config=build_config(rules.render))
        print(rendered.html)
    else:
        print(f"Title:  {post.title}")
        print(f"Author: {post.author}")
        print(f"Posted: {post.date_posted.isoformat() if post.date_posted else '-'}")
        print()
        print(post.body)
    return 0


def handle_delete(store: PostStore, rules: Rules, args: argparse.Namespace) -> int:
    result = run_delete(DeletePostInput(slug=args.slug), store)
    if not result.success:
        for error in result.errors:
            logger.error(error.message)
        return 1
    print(f"Deleted {args.slug}.")
    return 0


HANDLERS = {
    "init": handle_init,
    "list": handle_list,
    "show": handle_show,
    "delete": handle_delete,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tiny Blog CLI")
    parser.add_argument("--rules", default=RULES_PATH, help="Path to the rules file")
    parser.add_argument("--data-dir", default=DATA_DIR, help="Directory holding the database")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # init
    subparsers.add_parser("init", help="Create the database and its buckets")

    # list
    subparsers.add_parser("list", help="List every post")

    # show
    show_parser = subparsers.add_parser("show", help="Show a post")
    show_parser.add_argument("slug", help="Slug of the post")
    show_parser.add_argument("--html", action="store_true", help="Print the rendered HTML")

    # delete
    delete_parser = subparsers.add_parser("delete", help="Delete a post")
    delete_parser.add_argument("slug", help="Slug of the post")

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        rules = load_rules_or_default(Path(args.rules))
    except ValueError as e:
        logger.error("Rules file %s is invalid: %s", args.rules, e)
        return 1

    store = create_post_store(rules.storage, args.data_dir)
    try:
        with store:
            return HANDLERS[args.command](store, rules, args)
    except PostStoreError as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
Management commands.

    blogcms-manage hash-password [password]
    blogcms-manage import-content [directory]
    blogcms-manage check-storage
    blogcms-manage serve [--host HOST] [--port PORT] [--reload]
"""

import argparse
import getpass
import logging
import sys
from pathlib import Path

import uvicorn

from blogcms.config import configure_logging, get_settings
from blogcms.errors import BlogError, ConflictError
from blogcms.services.auth import hash_password
from blogcms.storage import build_storage
from blogcms.storage.filesystem import read_posts_dir

logger = logging.getLogger("blogcms.manage")


def cmd_hash_password(args) -> int:
    password = args.password or getpass.getpass("Admin password: ")
    if not password:
        print("Password must not be empty", file=sys.stderr)
        return 1
    print(hash_password(password))
    return 0


def cmd_import_content(args) -> int:
    settings = get_settings()
    source = Path(args.directory) if args.directory else settings.posts_dir
    if not source.is_dir():
        print(f"Not a directory: {source}", file=sys.stderr)
        return 1

    try:
        storage = build_storage(settings)
    except ValueError as exc:
        print(f"{settings.storage_backend} storage error: {exc}", file=sys.stderr)
        return 1

    imported = skipped = 0
    try:
        storage.open()
        for post in read_posts_dir(source):
            try:
                storage.posts.create(post)
                imported += 1
            except ConflictError:
                logger.info(f"Skipping existing post {post.id}")
                skipped += 1
    except BlogError as exc:
        print(f"{storage.name} storage error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        storage.close()

    print(f"Imported {imported} posts into {storage.name} storage ({skipped} already present)")
    return 0


def cmd_check_storage(args) -> int:
    settings = get_settings()
    storage = None
    try:
        storage = build_storage(settings)
        storage.open()
        if not storage.ping():
            print(f"{storage.name} storage is not reachable", file=sys.stderr)
            return 1
        count = len(storage.posts.list())
    except (BlogError, ValueError) as exc:
        print(f"{settings.storage_backend} storage error: {exc}", file=sys.stderr)
        return 1
    finally:
        if storage is not None:
            storage.close()

    print(f"{storage.name} storage OK ({count} posts)")
    return 0


def cmd_serve(args) -> int:
    uvicorn.run("blogcms.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blogcms-manage", description="Blog CMS management commands")
    commands = parser.add_subparsers(dest="command", required=True)

    hash_cmd = commands.add_parser("hash-password", help="print a bcrypt hash for ADMIN_PASSWORD_HASH")
    hash_cmd.add_argument("password", nargs="?", help="password to hash (prompted when omitted)")
    hash_cmd.set_defaults(func=cmd_hash_password)

    import_cmd = commands.add_parser("import-content", help="load .mdx posts into the configured storage")
    import_cmd.add_argument("directory", nargs="?", help="source directory (default: content/posts)")
    import_cmd.set_defaults(func=cmd_import_content)

    check_cmd = commands.add_parser("check-storage", help="verify the configured storage is reachable")
    check_cmd.set_defaults(func=cmd_check_storage)

    serve_cmd = commands.add_parser("serve", help="run the API with uvicorn")
    serve_cmd.add_argument("--host", default="127.0.0.1")
    serve_cmd.add_argument("--port", type=int, default=8000)
    serve_cmd.add_argument("--reload", action="store_true")
    serve_cmd.set_defaults(func=cmd_serve)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().log_level if args.command != "hash-password" else "WARNING")
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Form reference management.

    python manage_forms.py validate contact.json
    python manage_forms.py push contact contact.json
    python manage_forms.py show contact

Form references are only ever written through this tool; the web app reads
them. Storage settings come from the same environment / .env as the app.
"""

import argparse
import asyncio
import json
import sys

from pydantic import ValidationError as PydanticValidationError

from config import StorageSettings
from errors import FormNotFoundError
from infrastructure.storage.factory import create_storage_backend
from schemas.models.form import FormReference
from services.form_registry import FormRegistry


def load_form_reference(path: str) -> FormReference:
    """Parse and validate a FormReference JSON document from *path* ("-" = stdin)."""
    if path == "-":
        raw = sys.stdin.read()
    else:
        with open(path, encoding="utf-8") as fh:
            raw = fh.read()
    return FormReference.model_validate_json(raw)


async def _push(key: str, form: FormReference) -> None:
    storage, close = await create_storage_backend(StorageSettings())
    try:
        await FormRegistry(storage).push_form(key, form)
    finally:
        await close()


async def _show(key: str) -> FormReference:
    storage, close = await create_storage_backend(StorageSettings())
    try:
        return await FormRegistry(storage).get_form(key)
    finally:
        await close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage form references")
    sub = parser.add_subparsers(dest="command", required=True)

    p_validate = sub.add_parser("validate", help="validate a form reference JSON file")
    p_validate.add_argument("path")

    p_push = sub.add_parser("push", help="store a form reference under a key")
    p_push.add_argument("key")
    p_push.add_argument("path")

    p_show = sub.add_parser("show", help="print the form reference stored under a key")
    p_show.add_argument("key")

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "show":
        try:
            form = asyncio.run(_show(args.key))
        except FormNotFoundError:
            print(f"Form not found: {args.key}", file=sys.stderr)
            return 1
        print(json.dumps(form.model_dump(exclude_none=True), indent=2))
        return 0

    try:
        form = load_form_reference(args.path)
    except (OSError, PydanticValidationError) as e:
        print(f"Invalid form reference: {e}", file=sys.stderr)
        return 1

    if args.command == "validate":
        print("Form reference validated successfully.")
        return 0

    asyncio.run(_push(args.key, form))
    print(f"Form pushed: {args.key}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

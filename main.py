from __future__ import annotations

import argparse
from pathlib import Path
import sys

from loguru import logger

from app.share import MessageShareTarget
from app.viewmodels.library_vm import LibraryVM
from core.errors import InvariantViolation
from core.services.sync_engine import LibraryContext, SyncEngine
from infrastructure.cache_repository import JsonCacheRepository
from infrastructure.credential_repository import CredentialRepository
from infrastructure.kv_store import JsonKeyValueStore
from infrastructure.logging import find_latest_log_file, init_logging
from infrastructure.media_client import HttpMediaServiceClient
from infrastructure.media_utils import pending_file_from_path
from infrastructure.settings import JsonSettings

BASE_DIR = Path(__file__).parent
DELETE_PROMPT = "Are you sure you want to delete the selected files?"


def build_client(settings: JsonSettings) -> HttpMediaServiceClient:
    return HttpMediaServiceClient(
        upload_path=str(settings.get("server.upload_path")),
        delete_path=str(settings.get("server.delete_path")),
        timeout_secs=float(settings.get("server.timeout_secs", 60)),
    )


def build_engine(settings: JsonSettings, client: HttpMediaServiceClient) -> SyncEngine:
    """Wire store, repositories and `client` into a hydrated engine."""
    store = JsonKeyValueStore(settings.path("storage.path"))
    context = LibraryContext(
        cache_repository=JsonCacheRepository(store),
        credential_store=CredentialRepository(store),
        media_service=client,
        share_target=MessageShareTarget(),
    )
    engine = SyncEngine(context)
    engine.hydrate()
    return engine


def _apply_selection(vm: LibraryVM, selections: list[str]) -> None:
    """Toggle `DATE` or `DATE:INDEX` selections."""
    for selection in selections:
        date_key, sep, index = selection.partition(":")
        if sep:
            vm.toggle_entry(date_key, int(index))
        else:
            vm.toggle_date(date_key)


def _print_library(vm: LibraryVM) -> None:
    if not vm.groups:
        print("No uploaded files.")
        return
    for group in vm.groups:
        print(group.date_key)
        for item in group.items:
            mark = "x" if item.selected else " "
            kind = "video" if item.is_video else "image"
            print(f"  [{mark}] {item.index:>3} {kind:<5} {item.uri}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pix", description="PiX media library client")
    parser.add_argument("--settings", default=str(BASE_DIR / "settings.json"))
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="store a scanned {token, serverUrl} payload")
    scan.add_argument("payload")

    sub.add_parser("list", help="show uploaded files grouped by date")
    sub.add_parser("logs", help="print the latest log file path")

    upload = sub.add_parser("upload", help="upload files as one batch")
    upload.add_argument("paths", nargs="+")

    delete = sub.add_parser("delete", help="delete the given DATE or DATE:INDEX entries")
    delete.add_argument("selections", nargs="+")
    delete.add_argument("--yes", action="store_true", help="skip confirmation")

    share = sub.add_parser("share", help="share the given DATE or DATE:INDEX entries")
    share.add_argument("selections", nargs="+")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = JsonSettings(args.settings)
    log_dir = init_logging(
        settings.path("logging.dir"), str(settings.get("logging.level", "INFO"))
    )

    if args.command == "logs":
        latest = find_latest_log_file(log_dir)
        print(latest or "No log files.")
        return 0

    client = build_client(settings)
    try:
        return _run_command(args, LibraryVM(build_engine(settings, client)))
    finally:
        client.close()


def _run_command(args: argparse.Namespace, vm: LibraryVM) -> int:
    if args.command == "scan":
        ok = vm.scan(args.payload)
        print(vm.message)
        return 0 if ok else 1

    if args.command == "list":
        _print_library(vm)
        return 0

    if args.command == "upload":
        try:
            vm.pick([pending_file_from_path(p) for p in args.paths])
        except FileNotFoundError as ex:
            print(ex, file=sys.stderr)
            return 1
        outcome = vm.upload()
        print(vm.message)
        return 0 if outcome is not None and outcome.ok else 1

    try:
        _apply_selection(vm, args.selections)
    except (InvariantViolation, ValueError) as ex:
        logger.warning("Invalid selection {}: {}", args.selections, ex)
        print(f"Invalid selection: {ex}", file=sys.stderr)
        return 1
    print(vm.status_message)

    if args.command == "share":
        return 0 if vm.share() else 1

    if not args.yes:
        answer = input(f"{DELETE_PROMPT} [y/N] ")
        if answer.strip().lower() not in {"y", "yes"}:
            return 1
    outcome = vm.delete()
    print(vm.message)
    return 0 if outcome is not None and outcome.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())

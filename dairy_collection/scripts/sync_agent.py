"""Command line entrypoint for the collection ledger and its sheet sync."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from aiohttp import ClientSession

from ..cloudsync import ConnectivityMonitor, SheetsGateway, SQLiteKeyValueStore
from ..config import SyncConfig, load_config
from ..const import ALCOHOL_OPTIONS, COLLECTORS, DEFAULT_ALCOHOL
from ..coordinator import CollectionCoordinator, OperationResult
from ..derived import sort_batches_recent_first

_LOGGER = logging.getLogger(__name__)


def _add_collection_fields(parser: argparse.ArgumentParser, *, required: bool) -> None:
    parser.add_argument("--batch", required=required, help="Batch id, e.g. M-010124")
    parser.add_argument("--quantity", required=required, help="Litres received")
    # Edits leave unset flags alone, so only new records get defaults.
    parser.add_argument("--collector", choices=COLLECTORS, default=COLLECTORS[0] if required else None)
    parser.add_argument("--arrival", help="Arrival time as HH:MM or ISO timestamp")
    for name in ("clr", "fat", "snf", "water", "mbrt"):
        parser.add_argument(f"--{name}", help=f"{name.upper()} reading")
    parser.add_argument("--alcohol", choices=ALCOHOL_OPTIONS, default=DEFAULT_ALCOHOL if required else None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Record milk collections offline and sync them with the sheet")
    parser.add_argument("--config", type=Path, help="YAML settings file")
    parser.add_argument("--db", type=Path, help="SQLite path for the local ledger")
    parser.add_argument("--url", help="Sheet web app URL")
    parser.add_argument("--offline", action="store_true", help="Do not contact the sheet")
    parser.add_argument("--log-level", help="Logging level")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("status", help="Show sync status")
    sub.add_parser("sync", help="Push pending changes and pull the sheet")
    sub.add_parser("refresh", help="Reload local data and pull when nothing is pending")
    sub.add_parser("totals", help="Show net litres per batch")

    add = sub.add_parser("add-collection", help="Record a collection")
    _add_collection_fields(add, required=True)

    edit = sub.add_parser("edit-collection", help="Edit a recorded collection")
    edit.add_argument("record_id")
    _add_collection_fields(edit, required=False)

    deduction = sub.add_parser("add-deduction", help="Deduct litres from a batch")
    deduction.add_argument("batch")
    deduction.add_argument("--reason", required=True)
    deduction.add_argument("--quantity", required=True)

    dispatch = sub.add_parser("dispatch", help="Mark a batch dispatched")
    dispatch.add_argument("batch")
    dispatch.add_argument("--undo", action="store_true", help="Mark the batch pending again")
    return parser


def resolve_config(args: argparse.Namespace) -> SyncConfig:
    config = load_config(args.config)
    if args.db:
        config.db_path = args.db
    if args.url:
        config.sheets_url = args.url
    if args.log_level:
        config.log_level = args.log_level.upper()
    return config


def _collection_input(args: argparse.Namespace) -> dict[str, Any]:
    fields = {
        "collector_name": args.collector,
        "arrival_time": args.arrival,
        "quantity": args.quantity,
        "clr": args.clr,
        "fat": args.fat,
        "snf": args.snf,
        "water": args.water,
        "mbrt": args.mbrt,
        "alcohol": args.alcohol,
        "batch": args.batch,
    }
    return {key: value for key, value in fields.items() if value is not None}


def render_result(result: OperationResult) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": result.success}
    if result.error:
        payload["error"] = result.error
        payload["reason"] = result.reason
    if result.record_id:
        payload["id"] = result.record_id
    if result.sync is not None:
        payload["sync"] = result.sync.as_dict()
    payload["totals"] = render_totals(result.totals)
    return payload


def render_totals(totals) -> dict[str, Any]:
    """Most recently started batch first, as on the collection screen."""

    return {
        batch_id: {"net_liters": round(totals[batch_id].net_liters, 3), "dispatched": totals[batch_id].dispatched}
        for batch_id in sort_batches_recent_first(totals)
    }


async def run_command(args: argparse.Namespace, coordinator: CollectionCoordinator) -> dict[str, Any]:
    command = args.command
    if command == "status":
        return coordinator.status()
    if command == "totals":
        return render_totals(coordinator.get_batch_totals())
    if command == "sync":
        return render_result(await coordinator.async_request_sync())
    if command == "refresh":
        return render_result(await coordinator.async_refresh())
    if command == "add-collection":
        return render_result(coordinator.add_collection(_collection_input(args)))
    if command == "edit-collection":
        return render_result(coordinator.edit_collection(args.record_id, _collection_input(args)))
    if command == "add-deduction":
        return render_result(
            coordinator.add_deduction(args.batch, {"reason": args.reason, "quantity": args.quantity})
        )
    if command == "dispatch":
        return render_result(coordinator.set_batch_dispatched(args.batch, not args.undo))
    raise ValueError(f"unknown command {command}")


async def main_async(args: argparse.Namespace) -> int:
    config = resolve_config(args)
    logging.basicConfig(level=getattr(logging, config.log_level, logging.INFO))
    store = SQLiteKeyValueStore(config.db_path)
    connectivity = ConnectivityMonitor(online=config.ready and not args.offline)
    async with ClientSession() as session:
        gateway = SheetsGateway(session, config.sheets_url, timeout=config.timeout)
        coordinator = CollectionCoordinator(store, gateway, connectivity)
        # sync and refresh make their own round trip.
        pull_on_start = config.sync_on_start and args.command not in {"sync", "refresh"}
        await coordinator.async_setup(pull=pull_on_start)
        try:
            payload = await run_command(args, coordinator)
        finally:
            coordinator.close()
            store.close()
    print(json.dumps(payload, indent=2, default=str))
    if isinstance(payload, dict) and payload.get("success") is False:
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(main_async(args))
    except KeyboardInterrupt:  # pragma: no cover - manual interruption
        _LOGGER.info("Interrupted")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())

"""AuditMCP — FastMCP v2 server exposing the audit lifecycle as MCP tools.

Tools delegate to ``AuditLifecycleManager`` and ``CatalogService``, both
built over one Redis document store.  Call ``configure(...)`` before using
the server; until then every tool answers with status ``unavailable``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv
from fastmcp import FastMCP
from redis.asyncio import Redis  # type: ignore[import-untyped]

from auditmcp.audits import AUDITS_SCOPE
from auditmcp.audits import AuditLifecycleManager
from auditmcp.audits import AuditState
from auditmcp.audits import DRAFTS_SCOPE
from auditmcp.audits import SequenceGenerator
from auditmcp.catalog import CatalogService
from auditmcp.config import JournalConfig
from auditmcp.config import ReconnectConfig
from auditmcp.config import SequenceConfig
from auditmcp.config import StoreConfig
from auditmcp.errors import AuditMCPError
from auditmcp.errors import NotFoundError
from auditmcp.errors import StoreUnavailableError
from auditmcp.errors import ValidationError
from auditmcp.journal import EventJournal
from auditmcp.observability import latency_metrics_snapshot
from auditmcp.observability import timed
from auditmcp.schemas import AuditHistoryResult
from auditmcp.schemas import AuditListResult
from auditmcp.schemas import AuditResult
from auditmcp.schemas import CatalogItemResult
from auditmcp.schemas import CatalogListResult
from auditmcp.schemas import StoreStatusResult
from auditmcp.schemas import ToolResult
from auditmcp.schemas import ToolStatus
from auditmcp.store import StoreConnection

logger = logging.getLogger(__name__)

mcp = FastMCP("AuditMCP")

# ---------------------------------------------------------------------------
# Service context (set via configure())
# ---------------------------------------------------------------------------


@dataclass
class ServiceContext:
    """Everything the tools need, built once per ``configure`` call."""

    connection: StoreConnection
    sequences: SequenceGenerator
    lifecycle: AuditLifecycleManager
    catalog: CatalogService
    journal: EventJournal


_context: ServiceContext | None = None


async def configure(
    redis_url: str | None = None,
    *,
    client: Redis | None = None,
    store_config: StoreConfig | None = None,
    reconnect_config: ReconnectConfig | None = None,
    sequence_config: SequenceConfig | None = None,
    journal_config: JournalConfig | None = None,
) -> ServiceContext:
    """Connect to the store and wire the services.

    Raises ``StoreUnavailableError`` when the store stays unreachable after
    the reconnection policy gives up.
    """
    global _context
    await shutdown()

    cfg = store_config or StoreConfig()
    if redis_url is not None:
        cfg = StoreConfig(
            redis_url=redis_url,
            key_prefix=cfg.key_prefix,
            socket_timeout_seconds=cfg.socket_timeout_seconds,
        )
    connection = StoreConnection(cfg, reconnect_config, client=client)
    store = await connection.connect()

    journal = EventJournal(journal_config)
    sequences = SequenceGenerator(store, sequence_config, journal=journal)
    _context = ServiceContext(
        connection=connection,
        sequences=sequences,
        lifecycle=AuditLifecycleManager(store, sequences, journal=journal),
        catalog=CatalogService(store),
        journal=journal,
    )
    return _context


async def shutdown() -> None:
    """Close the store connection and drop the service context."""
    global _context
    if _context is None:
        return
    try:
        await _context.connection.close()
    except RuntimeError:
        # Tests may reconfigure across event loops.
        pass
    _context = None


def _get_context() -> ServiceContext:
    if _context is None:
        raise StoreUnavailableError("Service not configured. Call configure() first.")
    return _context


async def _reset_store() -> None:
    """Remove every stored document (test cleanup)."""
    if _context is not None:
        await _context.connection.store.clear()


# ---------------------------------------------------------------------------
# Failure mapping
# ---------------------------------------------------------------------------


def _failure(exc: AuditMCPError) -> tuple[ToolStatus, str, str]:
    """Map a raised failure to ``(status, error_code, message)``."""
    if isinstance(exc, NotFoundError):
        return "not_found", exc.code, exc.detail
    if isinstance(exc, ValidationError):
        return "rejected", exc.code, exc.detail
    if isinstance(exc, StoreUnavailableError):
        return "unavailable", exc.code, exc.detail
    return "rejected", exc.code, exc.detail


def _audit_failure(exc: AuditMCPError) -> AuditResult:
    status, code, message = _failure(exc)
    logger.info("Audit operation failed (%s): %s", code, message)
    return AuditResult(status=status, error_code=code, message=message)


def _list_failure(exc: AuditMCPError) -> AuditListResult:
    status, code, message = _failure(exc)
    return AuditListResult(status=status, error_code=code, message=message)


# ---------------------------------------------------------------------------
# Lifecycle tools
# ---------------------------------------------------------------------------


@mcp.tool
async def start_audit(owner: dict, answers: dict | None = None) -> AuditResult:
    """Start a new audit in progress.

    Args:
        owner: Client reference; ``id`` is required (name, email, company optional).
        answers: Optional initial answers keyed by category.
    """
    async with timed("mcp.start_audit") as outcome:
        try:
            record = await _get_context().lifecycle.start_in_progress(owner, answers)
        except AuditMCPError as exc:
            return _audit_failure(exc)
        outcome["ok"] = True
        return AuditResult(audit=record)


@mcp.tool
async def save_draft(
    owner: dict | None = None,
    answers: dict | None = None,
    metadata: dict | None = None,
) -> AuditResult:
    """Save a draft of a questionnaire. All three arguments are required.

    Args:
        owner: Client reference with ``id``.
        answers: Answers keyed by category.
        metadata: Free-form draft metadata (questionnaire step, version...).
    """
    async with timed("mcp.save_draft") as outcome:
        try:
            record = await _get_context().lifecycle.save_draft(owner, answers, metadata)
        except AuditMCPError as exc:
            return _audit_failure(exc)
        outcome["ok"] = True
        return AuditResult(audit=record)


@mcp.tool
async def update_audit(audit_id: str, answers: dict) -> AuditResult:
    """Merge answers into an audit; categories not sent are kept.

    Args:
        audit_id: Audit or draft identifier.
        answers: Categories to add or overwrite.
    """
    async with timed("mcp.update_audit") as outcome:
        try:
            record = await _get_context().lifecycle.merge_answers(audit_id, answers)
        except AuditMCPError as exc:
            return _audit_failure(exc)
        outcome["ok"] = True
        return AuditResult(audit=record)


@mcp.tool
async def finalize_audit(audit_id: str) -> AuditResult:
    """Complete an audit and compute its summary."""
    async with timed("mcp.finalize_audit") as outcome:
        try:
            record = await _get_context().lifecycle.finalize(audit_id)
        except AuditMCPError as exc:
            return _audit_failure(exc)
        outcome["ok"] = True
        return AuditResult(audit=record)


@mcp.tool
async def submit_audit(owner: dict | None = None, answers: dict | None = None) -> AuditResult:
    """Record an audit that is already complete, summary included."""
    async with timed("mcp.submit_audit") as outcome:
        try:
            record = await _get_context().lifecycle.submit_completed(owner, answers)
        except AuditMCPError as exc:
            return _audit_failure(exc)
        outcome["ok"] = True
        return AuditResult(audit=record)


@mcp.tool
async def draft_from_audit(audit_id: str, metadata: dict | None = None) -> AuditResult:
    """Copy an audit in progress or a completed audit out as a new draft."""
    async with timed("mcp.draft_from_audit") as outcome:
        try:
            record = await _get_context().lifecycle.snapshot_to_draft(audit_id, metadata)
        except AuditMCPError as exc:
            return _audit_failure(exc)
        outcome["ok"] = True
        return AuditResult(audit=record)


@mcp.tool
async def get_audit(audit_id: str) -> AuditResult:
    """Fetch one audit or draft by id."""
    async with timed("mcp.get_audit") as outcome:
        try:
            record = await _get_context().lifecycle.get(audit_id)
        except AuditMCPError as exc:
            return _audit_failure(exc)
        outcome["ok"] = True
        return AuditResult(audit=record)


@mcp.tool
async def get_in_progress(owner_id: str) -> AuditResult:
    """Return the owner's most recently modified audit in progress."""
    async with timed("mcp.get_in_progress") as outcome:
        try:
            record = await _get_context().lifecycle.find_in_progress(owner_id)
        except AuditMCPError as exc:
            return _audit_failure(exc)
        outcome["ok"] = True
        if record is None:
            return AuditResult(
                status="not_found",
                error_code=NotFoundError.code,
                message="No audit in progress for this owner",
            )
        return AuditResult(audit=record)


@mcp.tool
async def audit_history(audit_id: str) -> AuditHistoryResult:
    """Return the journaled lifecycle events of one audit or draft, oldest first."""
    async with timed("mcp.audit_history") as outcome:
        try:
            context = _get_context()
            record = await context.lifecycle.get(audit_id)
            events = await context.journal.history(record.id)
        except AuditMCPError as exc:
            status, code, message = _failure(exc)
            return AuditHistoryResult(
                status=status, error_code=code, message=message, audit_id=audit_id
            )
        outcome["ok"] = True
        return AuditHistoryResult(audit_id=record.id, events=events)


async def _list_by_owner(owner_id: str, state: str, operation: str) -> AuditListResult:
    async with timed(operation) as outcome:
        try:
            records = await _get_context().lifecycle.list_by_owner(owner_id, state)
        except AuditMCPError as exc:
            return _list_failure(exc)
        outcome["ok"] = True
        return AuditListResult(audits=records, total=len(records))


@mcp.tool
async def list_drafts(owner_id: str) -> AuditListResult:
    """List the owner's drafts, newest first."""
    return await _list_by_owner(owner_id, AuditState.draft.value, "mcp.list_drafts")


@mcp.tool
async def list_owner_audits(owner_id: str, state: str) -> AuditListResult:
    """List the owner's records in one state, newest first.

    Args:
        owner_id: Client identifier.
        state: One of ``en_progreso``, ``borrador``, ``completada``.
    """
    return await _list_by_owner(owner_id, state, "mcp.list_owner_audits")


@mcp.tool
async def list_audits() -> AuditListResult:
    """List every audit, highest sequence first."""
    async with timed("mcp.list_audits") as outcome:
        try:
            records = await _get_context().lifecycle.list_audits()
        except AuditMCPError as exc:
            return _list_failure(exc)
        outcome["ok"] = True
        return AuditListResult(audits=records, total=len(records))


# ---------------------------------------------------------------------------
# Catalog tools
# ---------------------------------------------------------------------------


def _catalog_failure(exc: AuditMCPError, collection: str) -> CatalogItemResult:
    status, code, message = _failure(exc)
    return CatalogItemResult(
        status=status, error_code=code, message=message, collection=collection
    )


@mcp.tool
async def list_catalog(collection: str) -> CatalogListResult:
    """List every item of a reference collection (Activos, Amenazas...)."""
    async with timed("mcp.list_catalog") as outcome:
        try:
            items = await _get_context().catalog.list_items(collection)
        except AuditMCPError as exc:
            status, code, message = _failure(exc)
            return CatalogListResult(
                status=status, error_code=code, message=message, collection=collection
            )
        outcome["ok"] = True
        return CatalogListResult(collection=collection, items=items, total=len(items))


@mcp.tool
async def create_catalog_item(collection: str, item: dict) -> CatalogItemResult:
    """Insert an item into a reference collection."""
    async with timed("mcp.create_catalog_item") as outcome:
        try:
            created = await _get_context().catalog.create_item(collection, item)
        except AuditMCPError as exc:
            return _catalog_failure(exc, collection)
        outcome["ok"] = True
        return CatalogItemResult(collection=collection, item=created)


@mcp.tool
async def update_catalog_item(
    collection: str, item_id: str, fields: dict
) -> CatalogItemResult:
    """Overlay fields onto an item of a reference collection."""
    async with timed("mcp.update_catalog_item") as outcome:
        try:
            updated = await _get_context().catalog.update_item(
                collection, item_id, fields
            )
        except AuditMCPError as exc:
            return _catalog_failure(exc, collection)
        outcome["ok"] = True
        return CatalogItemResult(collection=collection, item=updated)


@mcp.tool
async def delete_catalog_item(collection: str, item_id: str) -> ToolResult:
    """Delete an item from a reference collection."""
    async with timed("mcp.delete_catalog_item") as outcome:
        try:
            await _get_context().catalog.delete_item(collection, item_id)
        except AuditMCPError as exc:
            status, code, message = _failure(exc)
            return ToolResult(status=status, error_code=code, message=message)
        outcome["ok"] = True
        return ToolResult()


@mcp.tool
async def store_status() -> StoreStatusResult:
    """Report store readiness, collection sizes and sequence counters."""
    async with timed("mcp.store_status") as outcome:
        try:
            context = _get_context()
            if not await context.connection.ready():
                raise StoreUnavailableError("Document store is not answering pings")
            collections = await context.catalog.overview()
            sequences = {
                scope: await context.sequences.current(scope)
                for scope in (AUDITS_SCOPE, DRAFTS_SCOPE)
            }
        except AuditMCPError as exc:
            status, code, message = _failure(exc)
            return StoreStatusResult(status=status, error_code=code, message=message)
        outcome["ok"] = True
        return StoreStatusResult(
            ready=True,
            collections=collections,
            sequences=sequences,
            latency=latency_metrics_snapshot(),
        )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="auditmcp")
    parser.add_argument("--transport", choices=("stdio", "http"), default="stdio")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=5000)
    return parser.parse_args()


async def _serve(args: argparse.Namespace) -> None:
    await configure(
        store_config=StoreConfig.from_env(),
        journal_config=JournalConfig.from_env(),
    )
    try:
        if args.transport == "http":
            await mcp.run_async(transport="http", host=args.host, port=args.port)
        else:
            await mcp.run_async(transport="stdio")
    finally:
        await shutdown()


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("AUDITMCP_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    asyncio.run(_serve(_parse_args()))


if __name__ == "__main__":
    main()

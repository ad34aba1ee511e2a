"""Internal API routers — /engines control surface.

No business logic. Delegates to the injected ``EngineManager`` and reports
failures in the response body rather than as HTTP errors.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

from curvemm.config import EngineSpec
from curvemm.errors import ConfigInvalid
from curvemm.models.engine_config import PRESETS, merge_config
from curvemm.models.wallet import WalletInfo

logger = logging.getLogger("curvemm")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_engine_manager = None  # Set via configure_routers()
_engine_specs: dict[tuple[str, str], EngineSpec] = {}  # persisted engines by (owner, mint)


def configure_routers(
    engine_manager,
    engine_specs: Optional[list[EngineSpec]] = None,
) -> None:
    """Inject dependencies from the application startup.

    Args:
        engine_manager: An ``EngineManager`` instance (or duck-type for tests).
        engine_specs: Persisted engine entries; supply stored config and
            wallets for ``/engines/start`` requests that omit them.
    """
    global _engine_manager  # noqa: PLW0603
    _engine_manager = engine_manager
    _engine_specs.clear()
    for spec in engine_specs or []:
        _engine_specs[(spec.owner, spec.token_mint)] = spec


def _no_manager() -> dict:
    return {"success": False, "error": "engine manager not configured"}


# ── Engines ──────────────────────────────────────────────────────────────


@router.get("/engines")
async def list_engines():
    """Compact status of every engine in this process."""
    if _engine_manager is None:
        return _no_manager()
    return {"engines": _engine_manager.statuses()}


@router.get("/presets")
async def list_presets():
    return {"presets": PRESETS}


@router.post("/engines/start")
async def start_engine(body: dict):
    """Merge config layers and start an engine.

    Body fields: ``token_mint`` (required), ``owner``, ``preset``,
    ``config`` (explicit overrides) and ``wallets``. Persisted values for
    the same owner and mint fill anything the body leaves out.
    """
    if _engine_manager is None:
        return _no_manager()
    mint = body.get("token_mint")
    if not mint:
        return {"success": False, "error": "token_mint is required"}
    owner = body.get("owner", "default")

    spec = _engine_specs.get((owner, mint))
    persisted = spec.config if spec else None
    preset = body.get("preset") or (spec.preset if spec else None)
    try:
        config = merge_config(mint, persisted, body.get("config"), preset)
    except ConfigInvalid as exc:
        return {"success": False, "error": str(exc), "errors": exc.errors}

    try:
        if body.get("wallets"):
            wallets = [WalletInfo.from_dict(w) for w in body["wallets"]]
        else:
            wallets = list(spec.wallets) if spec else []
    except (KeyError, TypeError) as exc:
        return {"success": False, "error": f"malformed wallet entry: {exc}"}
    if not wallets:
        return {"success": False, "error": "at least one wallet is required"}

    result = await _engine_manager.start(config, wallets, owner=owner)
    logger.info("Start %s/%s: %s", owner, mint, result.message or result.error)
    return result.to_dict()


@router.post("/engines/{owner}/{mint}/stop")
async def stop_engine(owner: str, mint: str):
    if _engine_manager is None:
        return _no_manager()
    result = await _engine_manager.stop(owner, mint)
    return result.to_dict()


@router.get("/engines/{owner}/{mint}/status")
async def engine_status(owner: str, mint: str):
    """Full state snapshot of one engine."""
    if _engine_manager is None:
        return _no_manager()
    state = _engine_manager.status(owner, mint)
    if state is None:
        return {"error": f"Unknown engine: {owner}/{mint}"}
    return state.to_dict()


@router.post("/engines/{owner}/{mint}/config")
async def update_engine_config(owner: str, mint: str, body: dict):
    """Apply a partial config update from the next tick on."""
    if _engine_manager is None:
        return _no_manager()
    result = _engine_manager.update_config(owner, mint, body)
    return result.to_dict()


@router.get("/engines/{owner}/{mint}/logs")
async def engine_logs(
    owner: str,
    mint: str,
    limit: int = Query(50, ge=1, le=500),
):
    """Activity feed, most recent first."""
    if _engine_manager is None:
        return _no_manager()
    entries = _engine_manager.logs(owner, mint, limit)
    return {"logs": [e.to_dict() for e in entries], "count": len(entries)}


@router.post("/engines/{owner}/{mint}/trade")
async def manual_trade(owner: str, mint: str, body: dict):
    """Queue a manual buy, sell, claim or swap for the next tick."""
    if _engine_manager is None:
        return _no_manager()
    action = body.get("action")
    if not action:
        return {"success": False, "error": "action is required"}
    try:
        amount = float(body.get("amount", 0) or 0)
    except (TypeError, ValueError):
        return {"success": False, "error": "amount must be a number"}

    result = _engine_manager.submit_trade(
        owner,
        mint,
        action,
        amount=amount,
        wallet_id=body.get("wallet_id"),
        input_mint=body.get("input_mint"),
        output_mint=body.get("output_mint"),
    )
    return result.to_dict()

"""EngineManager — registry and lifecycle facade for running engines.

One ``StrategyEngine`` per ``(owner, token_mint)`` pair, each running as its
own supervised ``asyncio`` task. Callers never see exceptions from the
lifecycle operations: ``start``, ``stop``, ``update_config`` and
``submit_trade`` return an ``OpResult``, and anything that ends a loop is
surfaced through ``status()``.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional

from curvemm.chain.adapter import ChainAdapter, ChainReader
from curvemm.engine import EngineState, LogEntry, ManualOrder, StrategyEngine
from curvemm.errors import ConfigInvalid, Fatal, ValidationRejected
from curvemm.market.observer import MarketObserver
from curvemm.models.engine_config import EngineConfig, validate_config
from curvemm.models.trade import Action
from curvemm.models.wallet import WalletInfo
from curvemm.strategy.base import StrategyProtocol
from curvemm.strategy.registry import build_strategies
from curvemm.wallets.keystore import KeyStore
from curvemm.wallets.pool import WalletPool

logger = logging.getLogger("curvemm.engine_manager")

EngineKey = tuple[str, str]  # (owner, token_mint)


@dataclass(frozen=True)
class OpResult:
    """Outcome of a lifecycle operation."""

    success: bool
    message: str = ""
    error: Optional[str] = None
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        data: dict = {"success": self.success, "message": self.message}
        if self.error is not None:
            data["error"] = self.error
        if self.warnings:
            data["warnings"] = list(self.warnings)
        return data


class EngineManager:
    """Owns every engine in the process.

    Args:
        observer: Shared market observer.
        reader: Balance reader handed to each wallet pool.
        adapter: Chain adapter for live dispatch (``None`` = dry run only).
        key_store: Key store for live dispatch.
        tick_timeout: Per-call budget passed to engines and pools.
        log_capacity: Ring buffer size for each engine.
        strategy_factory: Builds a fresh strategy list per engine.
    """

    def __init__(
        self,
        observer: MarketObserver,
        reader: Optional[ChainReader] = None,
        adapter: Optional[ChainAdapter] = None,
        key_store: Optional[KeyStore] = None,
        tick_timeout: float = 15.0,
        log_capacity: int = 100,
        strategy_factory: Callable[[], list[StrategyProtocol]] = build_strategies,
    ) -> None:
        self._observer = observer
        self._reader = reader
        self._adapter = adapter
        self._key_store = key_store
        self._tick_timeout = tick_timeout
        self._log_capacity = log_capacity
        self._strategy_factory = strategy_factory
        self._engines: dict[EngineKey, StrategyEngine] = {}
        self._tasks: dict[EngineKey, asyncio.Task] = {}

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def engines(self) -> dict[EngineKey, StrategyEngine]:
        return dict(self._engines)

    def status(self, owner: str, token_mint: str) -> Optional[EngineState]:
        """Snapshot of one engine, or ``None`` if it was never started."""
        engine = self._engines.get((owner, token_mint))
        if engine is None:
            return None
        return engine.snapshot()

    def statuses(self) -> dict[str, dict]:
        """Compact status of every engine keyed ``"owner/mint"``."""
        result: dict[str, dict] = {}
        for (owner, mint), engine in self._engines.items():
            state = engine.snapshot()
            result[f"{owner}/{mint}"] = {
                "owner": owner,
                "token_mint": mint,
                "status": state.status.value,
                "phase": state.phase.value if state.phase else None,
                "tick_count": state.tick_count,
                "dry_run": state.config.dry_run,
                "last_error": state.last_error.to_dict() if state.last_error else None,
            }
        return result

    def logs(self, owner: str, token_mint: str, limit: int = 50) -> list[LogEntry]:
        engine = self._engines.get((owner, token_mint))
        if engine is None:
            return []
        return engine.logs(limit)

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def start(
        self,
        config: EngineConfig,
        wallets: Iterable[WalletInfo],
        owner: str = "default",
        max_ticks: int = 0,
    ) -> OpResult:
        """Create and launch an engine for ``(owner, config.token_mint)``.

        Fails when an engine for the same key is still running, when the
        wallets are unusable, or when live mode has no adapter.
        """
        key = (owner, config.token_mint)
        existing = self._engines.get(key)
        previous = self._tasks.get(key)
        if (existing is not None and existing.is_running) or (
            previous is not None and not previous.done()
        ):
            return OpResult(
                False, error=f"engine already running for {owner}/{config.token_mint}"
            )

        errors, warnings = validate_config(config)
        if errors:
            return OpResult(False, error="; ".join(errors))

        try:
            pool = WalletPool(
                wallets,
                key_store=self._key_store,
                adapter=self._adapter,
                reader=self._reader,
                call_timeout=self._tick_timeout,
            )
        except ValueError as exc:
            return OpResult(False, error=str(exc))

        engine = StrategyEngine(
            config,
            pool,
            self._observer,
            strategies=self._strategy_factory(),
            tick_timeout=self._tick_timeout,
            log_capacity=self._log_capacity,
        )
        self._engines[key] = engine
        try:
            await engine.initialize()
        except Fatal as exc:
            logger.error("Engine %s/%s failed to start: %s", owner, config.token_mint, exc)
            return OpResult(False, error=str(exc))

        task = asyncio.create_task(engine.run(max_ticks=max_ticks))
        task.add_done_callback(functools.partial(self._on_task_done, key))
        self._tasks[key] = task
        logger.info(
            "Started engine %s/%s (%s)",
            owner, config.token_mint, "dry run" if config.dry_run else "live",
        )
        return OpResult(True, message="started", warnings=tuple(warnings))

    async def stop(self, owner: str, token_mint: str, timeout: Optional[float] = None) -> OpResult:
        """Stop an engine after its in-flight tick. Idempotent.

        Waits up to *timeout* seconds (default: twice the tick budget) for
        the loop to finish; the loop is never cancelled.
        """
        key = (owner, token_mint)
        engine = self._engines.get(key)
        if engine is None:
            return OpResult(True, message="not running")

        engine.stop()
        task = self._tasks.get(key)
        if task is not None and not task.done():
            wait_for = timeout if timeout is not None else self._tick_timeout * 2
            await asyncio.wait({task}, timeout=wait_for)
            if not task.done():
                return OpResult(True, message="stopping; in-flight tick still running")
        logger.info("Stopped engine %s/%s", owner, token_mint)
        return OpResult(True, message=engine.status.value)

    async def stop_all(self) -> None:
        for owner, mint in list(self._engines):
            await self.stop(owner, mint)

    async def wait_all(self) -> None:
        """Wait until every engine task has finished."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        if tasks:
            await asyncio.wait(tasks)

    def _on_task_done(self, key: EngineKey, task: asyncio.Task) -> None:
        engine = self._engines.get(key)
        if engine is None or self._tasks.get(key) is not task:
            return
        if task.cancelled():
            engine.mark_stopped()
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Engine %s/%s crashed: %s", key[0], key[1], exc)
            engine.record_crash(exc)

    # ── Updates ──────────────────────────────────────────────────────────

    def update_config(
        self, owner: str, token_mint: str, partial: Mapping[str, Any]
    ) -> OpResult:
        """Merge *partial* into the engine's config from the next tick on."""
        engine = self._engines.get((owner, token_mint))
        if engine is None:
            return OpResult(False, error=f"no engine for {owner}/{token_mint}")
        try:
            updated = engine.update_config(partial)
        except ConfigInvalid as exc:
            return OpResult(False, error=str(exc))
        _, warnings = validate_config(updated)
        return OpResult(True, message="config updated", warnings=tuple(warnings))

    def submit_trade(
        self,
        owner: str,
        token_mint: str,
        action: str,
        amount: float = 0.0,
        wallet_id: Optional[str] = None,
        input_mint: Optional[str] = None,
        output_mint: Optional[str] = None,
    ) -> OpResult:
        """Queue a manual trade for the engine's next tick.

        Swaps must trade SOL against the engine's token in either direction.
        """
        engine = self._engines.get((owner, token_mint))
        if engine is None or not engine.is_running:
            return OpResult(False, error=f"no running engine for {owner}/{token_mint}")
        try:
            parsed = Action(action)
        except ValueError:
            return OpResult(
                False,
                error=f"unknown action '{action}'; use one of "
                      f"{', '.join(a.value for a in Action)}",
            )
        if wallet_id is not None and engine.pool.get(wallet_id) is None:
            return OpResult(False, error=f"unknown wallet {wallet_id}")

        try:
            engine.submit_manual(
                ManualOrder(
                    action=parsed,
                    amount=float(amount),
                    wallet_id=wallet_id,
                    input_mint=input_mint,
                    output_mint=output_mint,
                )
            )
        except ValidationRejected as exc:
            return OpResult(False, error=str(exc))
        mode = "simulated" if engine.config.dry_run else "live"
        return OpResult(True, message=f"{parsed.value} queued for next tick ({mode})")

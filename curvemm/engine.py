"""CurveMM — strategy engine (control loop).

One engine manages one token. Each tick polls the market, classifies the
phase, lets every enabled strategy propose at most one trade, validates
each proposal and dispatches it (or simulates it in dry-run mode), then
folds the result back into positions, cooldowns and the bounded logs.
"""

import asyncio
import logging
import random
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional

from curvemm.chain.adapter import SOL_MINT
from curvemm.errors import (
    ConfigInvalid,
    EngineError,
    Fatal,
    TransientUpstream,
    ValidationRejected,
    WalletDisabled,
)
from curvemm.market.indicators import classify_phase, compute_indicators
from curvemm.market.models import Indicators, MarketPhase, MarketSnapshot
from curvemm.market.observer import MarketObserver
from curvemm.models.engine_config import EngineConfig, apply_update
from curvemm.models.trade import (
    Action,
    TradeIntent,
    TradeResult,
    Venue,
    route_venue,
    trade_deltas,
)
from curvemm.models.wallet import WalletBalance, WalletInfo
from curvemm.risk.cooldown import CooldownTracker
from curvemm.risk.position import Position, PositionBook
from curvemm.risk.validator import validate_trade
from curvemm.strategy.base import StrategyProtocol, TickContext, randomized_delay
from curvemm.strategy.registry import build_strategies
from curvemm.wallets.pool import WalletPool

logger = logging.getLogger("curvemm")

MANUAL_STRATEGY = "manual"


def resolve_swap_mints(
    token_mint: str, input_mint: Optional[str] = None, output_mint: Optional[str] = None
) -> tuple[str, str]:
    """Fill in the missing side of a manual swap and check the pair.

    A swap trades SOL against *token_mint*, in either direction; with no
    mints given it buys the token with SOL.

    Raises:
        ValidationRejected: For any other pair.
    """
    if not input_mint:
        input_mint = token_mint if output_mint == SOL_MINT else SOL_MINT
    if not output_mint:
        output_mint = token_mint if input_mint == SOL_MINT else SOL_MINT
    if {input_mint, output_mint} != {SOL_MINT, token_mint}:
        raise ValidationRejected(
            f"swap {input_mint[:8]} -> {output_mint[:8]} is not SOL against "
            f"{token_mint[:8]}"
        )
    return input_mint, output_mint


class EngineStatus(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERRORED = "errored"  # running, but the last tick hit an upstream error


@dataclass(frozen=True)
class LogEntry:
    """One line of the engine's activity feed."""

    timestamp: datetime
    kind: str  # info, analysis, decision, trade, simulated, warning, error
    message: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind,
            "message": self.message,
            "data": self.data,
        }


@dataclass(frozen=True)
class ErrorRecord:
    timestamp: datetime
    kind: str
    message: str
    strategy: Optional[str] = None
    wallet_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind,
            "message": self.message,
            "strategy": self.strategy,
            "wallet_id": self.wallet_id,
        }


@dataclass(frozen=True)
class ManualOrder:
    """A caller-requested trade queued for the next tick."""

    action: Action
    amount: float = 0.0
    wallet_id: Optional[str] = None
    input_mint: Optional[str] = None
    output_mint: Optional[str] = None


@dataclass(frozen=True)
class EngineState:
    """Read-only copy of an engine's state at one instant."""

    status: EngineStatus
    token_mint: str
    start_time: Optional[datetime]
    phase: Optional[MarketPhase]
    positions: dict[str, Position]
    total_position: Position
    trade_log: tuple[TradeResult, ...]  # oldest first
    error_log: tuple[ErrorRecord, ...]  # oldest first
    last_trade: Optional[TradeResult]
    last_error: Optional[ErrorRecord]
    tick_count: int
    disabled_wallets: dict[str, str]
    config: EngineConfig
    market: Optional[MarketSnapshot] = None
    indicators: Optional[Indicators] = None

    @property
    def is_running(self) -> bool:
        return self.status in (
            EngineStatus.STARTING, EngineStatus.RUNNING, EngineStatus.ERRORED
        )

    def to_dict(self) -> dict:
        market = None
        if self.market is not None:
            market = {
                "price": self.market.price,
                "market_cap_usd": self.market.market_cap_usd,
                "volume_24h": self.market.volume_24h,
                "net_volume_short": self.market.net_volume_short,
                "net_volume_long": self.market.net_volume_long,
                "holder_count": self.market.holder_count,
                "bonding_complete": self.market.bonding_complete,
                "timestamp": self.market.timestamp.isoformat(),
            }
        return {
            "status": self.status.value,
            "is_running": self.is_running,
            "token_mint": self.token_mint,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "phase": self.phase.value if self.phase else None,
            "positions": {
                wid: {"tokens": p.tokens, "sol_deployed": p.sol_deployed,
                      "trade_count": p.trade_count}
                for wid, p in self.positions.items()
            },
            "total_position": {
                "tokens": self.total_position.tokens,
                "sol_deployed": self.total_position.sol_deployed,
                "trade_count": self.total_position.trade_count,
            },
            "trade_log": [t.to_dict() for t in self.trade_log],
            "error_log": [e.to_dict() for e in self.error_log],
            "last_trade": self.last_trade.to_dict() if self.last_trade else None,
            "last_error": self.last_error.to_dict() if self.last_error else None,
            "tick_count": self.tick_count,
            "disabled_wallets": dict(self.disabled_wallets),
            "config": self.config.to_dict(),
            "market": market,
            "indicators": self.indicators.to_dict() if self.indicators else None,
        }


class StrategyEngine:
    """Runs the tick loop for one token.

    Args:
        config: Validated engine config.
        pool: Wallet pool holding this engine's wallets.
        observer: Market observer (or compatible duck-type / mock).
        strategies: Strategy instances in tick order. Defaults to every
            registered strategy; the config's flags decide which act.
        tick_timeout: Budget in seconds for one market poll.
        log_capacity: Size of the trade, error and activity ring buffers, and
            the most manual orders that may wait for a tick.
        rng: Random source for the poll-interval jitter.
    """

    def __init__(
        self,
        config: EngineConfig,
        pool: WalletPool,
        observer: MarketObserver,
        strategies: Optional[list[StrategyProtocol]] = None,
        tick_timeout: float = 15.0,
        log_capacity: int = 100,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._config = config
        self._pending_config: Optional[EngineConfig] = None
        self._pool = pool
        self._observer = observer
        self._strategies = strategies if strategies is not None else build_strategies()
        self._tick_timeout = tick_timeout
        self._rng = rng or random.Random()

        self._status = EngineStatus.STOPPED
        self._running: bool = False
        self._loop_active: bool = False
        self._tick_active: bool = False
        self._stop_event = asyncio.Event()
        self._start_time: Optional[datetime] = None
        self._tick_count: int = 0

        self._market: Optional[MarketSnapshot] = None
        self._indicators: Optional[Indicators] = None
        self._phase: Optional[MarketPhase] = None
        self._venue: Optional[Venue] = None

        self._positions = PositionBook(max_tracked=log_capacity * 10)
        self._cooldowns = CooldownTracker()
        self._manual: deque[ManualOrder] = deque()
        self._manual_capacity = log_capacity
        self._announced_disabled: set[str] = set()

        self._trade_log: deque[TradeResult] = deque(maxlen=log_capacity)
        self._error_log: deque[ErrorRecord] = deque(maxlen=log_capacity)
        self._activity: deque[LogEntry] = deque(maxlen=log_capacity)
        self._last_trade: Optional[TradeResult] = None
        self._last_error: Optional[ErrorRecord] = None

    # ── Properties ───────────────────────────────────────────────────────

    @property
    def token_mint(self) -> str:
        return self._config.token_mint

    @property
    def status(self) -> EngineStatus:
        return self._status

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def config(self) -> EngineConfig:
        """The config in force for the current tick."""
        return self._config

    @property
    def pool(self) -> WalletPool:
        return self._pool

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """Check wallets and execution capability, then mark running.

        Raises:
            Fatal: When no wallet is usable, or live mode lacks an adapter.
                The engine stays stopped with the error as ``last_error``.
        """
        self._status = EngineStatus.STARTING
        now = datetime.now(timezone.utc)
        try:
            if self._pool.usable_count() == 0:
                raise Fatal("no active wallets available")
            if not self._config.dry_run and not self._pool.has_adapter:
                raise Fatal("live trading needs a chain adapter and key store")
        except Fatal as exc:
            self._record_error(exc, now)
            self._status = EngineStatus.STOPPED
            raise

        self._running = True
        self._stop_event.clear()
        self._start_time = now
        self._status = EngineStatus.RUNNING
        mode = "dry run" if self._config.dry_run else "LIVE"
        self._log(
            "info",
            f"Engine started for {self.token_mint[:8]} ({mode}), strategies: "
            f"{', '.join(self._config.enabled_strategies()) or 'none'}",
        )

    def stop(self) -> None:
        """Signal the engine to stop after the current tick. Idempotent."""
        if not self._running and self._status in (
            EngineStatus.STOPPED, EngineStatus.STOPPING
        ):
            return
        self._running = False
        self._stop_event.set()
        if not self._loop_active:
            self.mark_stopped()
            return
        self._status = EngineStatus.STOPPING
        self._log("info", "Stop requested")

    def mark_stopped(self) -> None:
        """Finalize a stop when no loop is running to do it."""
        self._running = False
        if not self._tick_active:
            self._apply_pending()
        if self._status is not EngineStatus.STOPPED:
            self._status = EngineStatus.STOPPED
            self._log("info", "Engine stopped")

    def record_crash(self, exc: BaseException) -> None:
        """Record a loop-terminating exception raised outside ``run_once``."""
        self._record_error(Fatal(f"engine loop crashed: {exc}"), datetime.now(timezone.utc))
        self.mark_stopped()

    # ── Polling loop ─────────────────────────────────────────────────────

    async def run(self, max_ticks: int = 0) -> list[dict]:
        """Run ticks until stopped.

        The sleep between ticks re-reads ``poll_interval_seconds`` so config
        updates apply without a restart, and wakes early on ``stop()``.

        Args:
            max_ticks: Stop after this many ticks (0 = unlimited).

        Returns:
            List of per-tick result dicts.
        """
        results: list[dict] = []
        ticks = 0
        self._loop_active = True
        try:
            while self._running:
                ticks += 1
                try:
                    result = await self.run_once()
                except Exception as exc:
                    logger.exception("Tick %d for %s crashed", ticks, self.token_mint[:8])
                    self._record_error(exc, datetime.now(timezone.utc))
                    result = {"action": "error", "reason": str(exc)}
                results.append(result)
                logger.debug("Tick %d: %s", ticks, result.get("action", "unknown"))

                if max_ticks > 0 and ticks >= max_ticks:
                    break
                if not self._running:
                    break
                try:
                    await asyncio.wait_for(
                        self._stop_event.wait(), timeout=self.next_poll_delay()
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self._loop_active = False
            self.mark_stopped()
        return results

    # ── Single tick ──────────────────────────────────────────────────────

    async def run_once(self, utc_now: Optional[datetime] = None) -> dict:
        """Execute one tick.

        Returns a dict describing the tick:

        - ``{"action": "halted", "reason": "not_running"}``
        - ``{"action": "skipped", "reason": "<error kind>"}``
        - ``{"action": "tick", "phase": ..., "venue": ..., "strategies": [...]}``

        Args:
            utc_now: Current UTC datetime. Defaults to ``datetime.now(UTC)``.
        """
        if not self._running:
            return {"action": "halted", "reason": "not_running"}
        if utc_now is None:
            utc_now = datetime.now(timezone.utc)
        self._tick_active = True
        try:
            return await self._tick(utc_now)
        finally:
            self._tick_active = False
            if not self._running:
                self._apply_pending()

    async def _tick(self, utc_now: datetime) -> dict:
        self._tick_count += 1

        # 0 ── Config staged by update_config() takes effect here
        if self._apply_pending():
            self._log("info", "Config update applied")
        config = self._config

        # 1 ── Market
        try:
            snapshot = await asyncio.wait_for(
                self._observer.poll(config.token_mint), timeout=self._tick_timeout
            )
        except asyncio.TimeoutError:
            error = TransientUpstream(f"market poll timed out after {self._tick_timeout:.0f}s")
            self._record_error(error, utc_now)
            self._status = EngineStatus.ERRORED
            return {"action": "skipped", "reason": error.kind}
        except Exception as exc:
            self._record_error(exc, utc_now)
            self._status = EngineStatus.ERRORED
            return {"action": "skipped", "reason": getattr(exc, "kind", "market_error")}

        # 2 ── Phase
        indicators = compute_indicators(list(snapshot.prices))
        phase = classify_phase(indicators)
        self._market = snapshot
        self._indicators = indicators
        self._phase = phase
        venue = route_venue(snapshot.bonding_complete)
        if venue is not self._venue:
            self._log("info", f"Routing trades via {venue.value}")
            self._venue = venue
        self._log(
            "analysis",
            f"MC ${snapshot.market_cap_usd:,.0f} | phase {phase.value} | "
            f"trend {indicators.trend.value} | RSI {indicators.rsi:.1f}",
            price=snapshot.price,
            net_volume_short=snapshot.net_volume_short,
        )

        used_wallets: set[str] = set()
        outcomes: list[dict] = []

        # 3 ── Manual orders queued since the last tick
        while self._manual and self._running:
            order = self._manual.popleft()
            outcomes.append(
                await self._run_manual(order, snapshot, venue, utc_now, used_wallets)
            )

        # 4 ── Strategies, one at a time, never sharing a wallet
        enabled = set(config.enabled_strategies())
        for strategy in self._strategies:
            if strategy.name not in enabled:
                continue
            outcomes.append(
                await self._run_strategy(
                    strategy, snapshot, indicators, phase, venue, utc_now, used_wallets
                )
            )

        self._announce_disabled(utc_now)
        if self._pool.usable_count() == 0:
            self._fatal(Fatal("all wallets disabled"), utc_now)
        elif self._status is EngineStatus.ERRORED:
            self._status = EngineStatus.RUNNING

        return {
            "action": "tick",
            "phase": phase.value,
            "venue": venue.value,
            "strategies": outcomes,
        }

    async def _run_strategy(
        self,
        strategy: StrategyProtocol,
        snapshot: MarketSnapshot,
        indicators: Indicators,
        phase: MarketPhase,
        venue: Venue,
        now: datetime,
        used_wallets: set[str],
    ) -> dict:
        config = self._config
        name = strategy.name
        cooldown = strategy.cooldown_seconds(config)

        remaining = self._cooldowns.remaining(name, now, cooldown)
        if remaining > 0:
            return {"strategy": name, "action": "cooldown", "remaining": round(remaining, 1)}

        if not strategy.licensed(snapshot, phase, config):
            return {"strategy": name, "action": "idle", "reason": f"not licensed ({phase.value})"}

        wallet = self._pool.select(
            name,
            exclude_ids=used_wallets,
            now=now,
            cooldown_seconds=cooldown,
            predicate=strategy.accepts_wallet,
            prefer=strategy.prefers_wallet,
        )
        if wallet is None:
            self._log("decision", f"{name}: no eligible wallet")
            return {"strategy": name, "action": "idle", "reason": "no_wallet"}

        balance = await self._read_balance(wallet, now, name)
        if balance is None:
            return {"strategy": name, "action": "error", "reason": "balance_unavailable"}

        ctx = TickContext(
            snapshot=snapshot,
            indicators=indicators,
            phase=phase,
            config=config,
            wallet=wallet,
            balance=balance,
            venue=venue,
            now=now,
        )
        intent = strategy.propose(ctx)
        if intent is None:
            return {"strategy": name, "action": "idle", "reason": "no_trade"}

        used_wallets.add(wallet.wallet_id)
        self._log(
            "decision",
            f"{name}: {intent.action.value} {intent.amount:,.4f} via {wallet.wallet_id} "
            f"({intent.reason})",
        )
        result = await self._execute(intent, wallet, balance, snapshot, now)
        if result is None:
            return {"strategy": name, "action": "rejected"}
        strategy.on_result(result)
        return {
            "strategy": name,
            "action": intent.action.value,
            "success": result.success,
            "simulated": result.simulated,
            "dispatch_id": result.dispatch_id,
        }

    async def _run_manual(
        self,
        order: ManualOrder,
        snapshot: MarketSnapshot,
        venue: Venue,
        now: datetime,
        used_wallets: set[str],
    ) -> dict:
        input_mint, output_mint = order.input_mint, order.output_mint
        if order.action is Action.SWAP:
            try:
                input_mint, output_mint = resolve_swap_mints(
                    self.token_mint, input_mint, output_mint
                )
            except ValidationRejected as exc:
                self._record_error(exc, now, strategy=MANUAL_STRATEGY,
                                   wallet_id=order.wallet_id)
                return {"strategy": MANUAL_STRATEGY, "action": "rejected",
                        "reason": "unsupported_pair"}

        if order.wallet_id:
            wallet = self._pool.get(order.wallet_id)
            if wallet is not None and (
                not self._pool.is_usable(wallet) or wallet.wallet_id in used_wallets
            ):
                wallet = None
        else:
            predicate = (lambda w: w.is_creator) if order.action is Action.CLAIM else None
            wallet = self._pool.select(
                MANUAL_STRATEGY, exclude_ids=used_wallets, now=now, predicate=predicate
            )
        if wallet is None:
            self._record_error(
                ValidationRejected(f"no usable wallet for manual {order.action.value}"), now,
                strategy=MANUAL_STRATEGY, wallet_id=order.wallet_id,
            )
            return {"strategy": MANUAL_STRATEGY, "action": "rejected", "reason": "no_wallet"}

        balance = await self._read_balance(wallet, now, MANUAL_STRATEGY)
        if balance is None:
            return {"strategy": MANUAL_STRATEGY, "action": "error",
                    "reason": "balance_unavailable"}

        intent = TradeIntent(
            strategy=MANUAL_STRATEGY,
            action=order.action,
            wallet_id=wallet.wallet_id,
            amount=order.amount,
            venue=Venue.AMM if order.action is Action.SWAP else venue,
            reason="manual order",
            input_mint=input_mint,
            output_mint=output_mint,
        )
        used_wallets.add(wallet.wallet_id)
        result = await self._execute(intent, wallet, balance, snapshot, now, manual=True)
        if result is None:
            return {"strategy": MANUAL_STRATEGY, "action": "rejected"}
        return {
            "strategy": MANUAL_STRATEGY,
            "action": intent.action.value,
            "success": result.success,
            "simulated": result.simulated,
            "dispatch_id": result.dispatch_id,
        }

    async def _read_balance(
        self, wallet: WalletInfo, now: datetime, strategy: str
    ) -> Optional[WalletBalance]:
        try:
            return await self._pool.balance(wallet, self.token_mint)
        except Exception as exc:
            self._record_error(exc, now, strategy=strategy, wallet_id=wallet.wallet_id)
            return None

    # ── Execution ────────────────────────────────────────────────────────

    async def _execute(
        self,
        intent: TradeIntent,
        wallet: WalletInfo,
        balance: WalletBalance,
        snapshot: MarketSnapshot,
        now: datetime,
        manual: bool = False,
    ) -> Optional[TradeResult]:
        """Validate *intent*, then dispatch or simulate it.

        Returns ``None`` when validation rejects the intent.
        """
        config = self._config
        for warning in intent.warnings:
            self._log("warning", f"{intent.strategy}: {warning}")

        verdict = validate_trade(
            intent,
            balance,
            config,
            token_price=snapshot.price,
            total_supply=snapshot.total_supply,
        )
        for warning in verdict.warnings:
            self._log("warning", f"{intent.strategy}: {warning}")
        if not verdict.valid:
            self._record_error(
                ValidationRejected(verdict.error), now,
                strategy=intent.strategy, wallet_id=wallet.wallet_id,
            )
            self._log("decision", f"{intent.strategy}: {intent.action.value} rejected "
                                  f"({verdict.error})")
            return None

        if config.dry_run:
            result = self._simulate(intent, snapshot.price, now)
        else:
            result = await self._pool.dispatch(
                intent, wallet, config.token_mint,
                price=snapshot.price, slippage_bps=config.slippage_bps,
            )
        self._apply_result(result, now, manual=manual)
        return result

    @staticmethod
    def _simulate(intent: TradeIntent, price: float, now: datetime) -> TradeResult:
        token_delta, sol_delta = trade_deltas(intent, price, SOL_MINT)
        return TradeResult(
            dispatch_id=intent.dispatch_id,
            strategy=intent.strategy,
            action=intent.action,
            wallet_id=intent.wallet_id,
            venue=intent.venue,
            success=True,
            amount=intent.amount,
            signature=f"SIMULATED-{intent.dispatch_id}",
            simulated=True,
            token_delta=token_delta,
            sol_delta=sol_delta,
            timestamp=now,
        )

    def _apply_result(self, result: TradeResult, now: datetime, manual: bool = False) -> None:
        self._positions.apply(result)
        self._trade_log.append(result)
        self._last_trade = result
        if not manual:
            self._cooldowns.record(result.strategy, now)
            self._pool.record_attempt(result.strategy, result.wallet_id, now)

        label = f"{result.strategy}: {result.action.value} {result.amount:,.4f} " \
                f"via {result.venue.value}"
        if result.success:
            kind = "simulated" if result.simulated else "trade"
            self._log(kind, f"{label} ok ({result.signature})",
                      dispatch_id=result.dispatch_id, wallet_id=result.wallet_id)
        else:
            self._record_error(
                _ResultError(result.error or "dispatch failed", result.error_kind),
                now, strategy=result.strategy, wallet_id=result.wallet_id,
            )
            if result.error_kind == WalletDisabled.kind:
                # the failed result already names the disablement
                self._announced_disabled.add(result.wallet_id)

    # ── Updates from the facade ──────────────────────────────────────────

    def _current_config(self) -> EngineConfig:
        return self._pending_config or self._config

    def _apply_pending(self) -> bool:
        if self._pending_config is None:
            return False
        self._config = self._pending_config
        self._pending_config = None
        return True

    def next_poll_delay(self) -> float:
        """Seconds to sleep before the next tick, jitter included."""
        config = self._current_config()
        return randomized_delay(
            config.poll_interval_seconds, config.interval_variance_percent, self._rng
        )

    def update_config(self, partial: Mapping[str, Any]) -> EngineConfig:
        """Stage a config update for the next tick.

        While the engine runs, or a tick is still finishing after a stop,
        the update is held until the next tick begins or the tick ends.

        Raises:
            ConfigInvalid: The update is rejected; the old config stays.
        """
        updated = apply_update(self._current_config(), partial)
        if not updated.dry_run and not self._pool.has_adapter:
            raise ConfigInvalid(["dry_run cannot be disabled without a chain adapter "
                                 "and key store"])
        if self._running or self._loop_active or self._tick_active:
            self._pending_config = updated
        else:
            self._config = updated
        self._log("info", f"Config update staged: {', '.join(sorted(partial))}")
        return updated

    def submit_manual(self, order: ManualOrder) -> None:
        """Queue *order* for the next tick.

        Raises:
            ValidationRejected: The queue is full or the swap pair is not
                SOL against this engine's token.
        """
        if order.action is Action.SWAP:
            resolve_swap_mints(self.token_mint, order.input_mint, order.output_mint)
        if len(self._manual) >= self._manual_capacity:
            raise ValidationRejected(
                f"manual order queue is full ({self._manual_capacity} waiting)"
            )
        self._manual.append(order)
        self._log("info", f"Manual {order.action.value} queued", amount=order.amount)

    # ── Snapshots ────────────────────────────────────────────────────────

    def snapshot(self) -> EngineState:
        """Return an immutable copy of the current state."""
        return EngineState(
            status=self._status,
            token_mint=self.token_mint,
            start_time=self._start_time,
            phase=self._phase,
            positions=self._positions.snapshot(),
            total_position=self._positions.total,
            trade_log=tuple(self._trade_log),
            error_log=tuple(self._error_log),
            last_trade=self._last_trade,
            last_error=self._last_error,
            tick_count=self._tick_count,
            disabled_wallets=self._pool.disabled,
            config=self._config,
            market=self._market,
            indicators=self._indicators,
        )

    def logs(self, limit: int = 50) -> list[LogEntry]:
        """Most recent activity entries first."""
        entries = list(self._activity)
        entries.reverse()
        return entries[:max(0, limit)]

    # ── Helpers ──────────────────────────────────────────────────────────

    def _log(self, kind: str, message: str, **data) -> None:
        entry = LogEntry(datetime.now(timezone.utc), kind, message, data)
        self._activity.append(entry)
        level = logging.WARNING if kind in ("warning", "error") else logging.INFO
        if kind == "analysis":
            level = logging.DEBUG
        logger.log(level, "[%s] %s", self.token_mint[:8], message)

    def _record_error(
        self,
        exc: BaseException,
        now: datetime,
        strategy: Optional[str] = None,
        wallet_id: Optional[str] = None,
    ) -> None:
        record = ErrorRecord(
            timestamp=now,
            kind=getattr(exc, "kind", None) or "internal",
            message=str(exc) or type(exc).__name__,
            strategy=strategy,
            wallet_id=wallet_id,
        )
        self._error_log.append(record)
        self._last_error = record
        self._log("error", f"{record.kind}: {record.message}")

    def _announce_disabled(self, now: datetime) -> None:
        for wallet_id, reason in self._pool.disabled.items():
            if wallet_id in self._announced_disabled:
                continue
            self._announced_disabled.add(wallet_id)
            self._record_error(WalletDisabled(wallet_id, reason), now, wallet_id=wallet_id)

    def _fatal(self, exc: Fatal, now: datetime) -> None:
        logger.error("[%s] Fatal: %s", self.token_mint[:8], exc)
        self._record_error(exc, now)
        self._running = False
        self._stop_event.set()
        if self._loop_active:
            self._status = EngineStatus.STOPPING
        else:
            self.mark_stopped()


class _ResultError(EngineError):
    """Carries a failed result's error text and kind into the error log."""

    def __init__(self, message: str, kind: Optional[str]) -> None:
        super().__init__(message)
        self.kind = kind or TransientUpstream.kind

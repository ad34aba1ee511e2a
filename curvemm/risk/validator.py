"""Trade validation — pure checks, no I/O.

Every intent passes through ``validate_trade`` before dispatch. A trade is
rejected when its amount is non-positive, exceeds the per-trade cap, would
push the wallet past an exposure limit, or is not covered by the wallet's
balance. Everything else that looks risky is reported as a warning.
"""

import math
from dataclasses import dataclass, field

from curvemm.chain.adapter import SOL_MINT
from curvemm.models.engine_config import EngineConfig
from curvemm.models.trade import Action, TradeIntent
from curvemm.models.wallet import WalletBalance

DEFAULT_FEE_BUFFER_SOL = 0.002
MIN_SOL_RESERVE = 0.01
RECOMMENDED_MIN_SLIPPAGE_BPS = 100


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None
    warnings: list[str] = field(default_factory=list)


def validate_trade(
    intent: TradeIntent,
    balance: WalletBalance,
    config: EngineConfig,
    token_price: float = 0.0,
    total_supply: float = 0.0,
    fee_buffer: float = DEFAULT_FEE_BUFFER_SOL,
) -> ValidationResult:
    """Check *intent* against *balance* and the limits in *config*.

    Args:
        intent: The proposed trade.
        balance: SOL and token balance of the intent's wallet.
        config: Active engine config (caps and exposure limits).
        token_price: SOL per token; ``0`` when unknown, which skips the
            checks that need a price.
        total_supply: Circulating supply in whole tokens; ``0`` skips the
            supply-share check.
        fee_buffer: SOL reserved for network fees.

    Returns:
        ``ValidationResult`` with ``valid``, the joined rejection reasons
        in ``error``, and non-fatal ``warnings``.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if config.slippage_bps < RECOMMENDED_MIN_SLIPPAGE_BPS:
        warnings.append(
            f"slippage tolerance {config.slippage_bps} bps is below the "
            f"recommended minimum of {RECOMMENDED_MIN_SLIPPAGE_BPS} bps"
        )

    if intent.action is Action.CLAIM:
        if balance.sol < fee_buffer:
            errors.append(
                f"insufficient SOL for fees: have {balance.sol:.4f}, "
                f"need {fee_buffer:.4f}"
            )
        return _result(errors, warnings)

    amount = intent.amount
    if not math.isfinite(amount) or amount <= 0:
        errors.append("amount must be greater than 0")
        return _result(errors, warnings)

    buying = intent.action is Action.BUY or (
        intent.action is Action.SWAP and intent.input_mint == SOL_MINT
    )
    if buying:
        _check_buy(amount, balance, config, token_price, total_supply, fee_buffer,
                   errors, warnings)
    else:
        _check_sell(amount, balance, config, token_price, fee_buffer,
                    errors, warnings)

    return _result(errors, warnings)


def _check_buy(
    amount: float,
    balance: WalletBalance,
    config: EngineConfig,
    token_price: float,
    total_supply: float,
    fee_buffer: float,
    errors: list[str],
    warnings: list[str],
) -> None:
    if amount > config.max_buy_per_trade:
        errors.append(
            f"buy of {amount:.4f} SOL exceeds max_buy_per_trade "
            f"{config.max_buy_per_trade:.4f}"
        )
    if amount < config.min_trade_size:
        warnings.append(
            f"buy of {amount:.4f} SOL is below min_trade_size {config.min_trade_size}"
        )

    required = amount + fee_buffer
    if balance.sol < required:
        errors.append(
            f"insufficient SOL: have {balance.sol:.4f}, need {required:.4f} "
            f"including fees"
        )
    elif balance.sol - required < MIN_SOL_RESERVE:
        warnings.append("wallet will hold less than 0.01 SOL after this buy")

    if token_price > 0:
        exposure = balance.tokens * token_price + amount
        if exposure > config.max_sol_per_wallet:
            errors.append(
                f"projected exposure {exposure:.4f} SOL exceeds max_sol_per_wallet "
                f"{config.max_sol_per_wallet:.4f}"
            )
        if total_supply > 0:
            share = (balance.tokens + amount / token_price) / total_supply * 100.0
            if share > config.max_supply_percent:
                errors.append(
                    f"projected holding {share:.3f}% of supply exceeds "
                    f"max_supply_percent {config.max_supply_percent}"
                )
    elif amount > config.max_sol_per_wallet:
        errors.append(
            f"buy of {amount:.4f} SOL exceeds max_sol_per_wallet "
            f"{config.max_sol_per_wallet:.4f}"
        )


def _check_sell(
    amount: float,
    balance: WalletBalance,
    config: EngineConfig,
    token_price: float,
    fee_buffer: float,
    errors: list[str],
    warnings: list[str],
) -> None:
    if token_price > 0:
        value = amount * token_price
        if value > config.max_sell_per_trade:
            errors.append(
                f"sell worth {value:.4f} SOL exceeds max_sell_per_trade "
                f"{config.max_sell_per_trade:.4f}"
            )
        if value < config.min_trade_size:
            warnings.append(
                f"sell worth {value:.4f} SOL is below min_trade_size "
                f"{config.min_trade_size}"
            )
    else:
        warnings.append("token price unknown; sell cap not checked")

    if balance.tokens < amount:
        errors.append(
            f"insufficient tokens: have {balance.tokens:,.2f}, need {amount:,.2f}"
        )
    elif balance.tokens > 0 and amount >= balance.tokens * 0.99:
        warnings.append("selling nearly the entire token balance")

    if balance.sol < fee_buffer:
        errors.append(
            f"insufficient SOL for fees: have {balance.sol:.4f}, need {fee_buffer:.4f}"
        )


def is_overweight(tokens: float, total_supply: float, max_supply_percent: float) -> bool:
    """Whether a wallet holding *tokens* is above its share of supply."""
    if total_supply <= 0:
        return False
    return tokens / total_supply * 100.0 > max_supply_percent


def _result(errors: list[str], warnings: list[str]) -> ValidationResult:
    if errors:
        return ValidationResult(valid=False, error="; ".join(errors), warnings=warnings)
    return ValidationResult(valid=True, warnings=warnings)

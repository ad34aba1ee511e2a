"""CLI dashboard — prints engine status to the console."""


def print_status(status: dict) -> str:
    """Format and print one engine's status.

    Args:
        status: Dict produced by ``EngineState.to_dict()``.

    Returns:
        The formatted string (also printed to stdout).
    """
    mint = status.get("token_mint", "N/A")
    state = status.get("status", "unknown")
    phase = status.get("phase") or "N/A"
    market = status.get("market") or {}
    total = status.get("total_position") or {}
    config = status.get("config") or {}
    last_trade = status.get("last_trade")
    last_error = status.get("last_error")

    mc = market.get("market_cap_usd")
    mc_str = f"${mc:,.0f}" if mc is not None else "N/A"
    venue = "N/A"
    if market:
        venue = "AMM" if market.get("bonding_complete") else "bonding curve"
    trade_str = "none"
    if last_trade:
        flag = " (sim)" if last_trade.get("simulated") else ""
        outcome = "ok" if last_trade.get("success") else "failed"
        trade_str = f"{last_trade['strategy']} {last_trade['action']} {outcome}{flag}"
    error_str = f"{last_error['kind']}: {last_error['message']}" if last_error else "none"

    lines = [
        "──────────────── CurveMM Status ───────────────────",
        f"  Token:           {mint}",
        f"  State:           {state}",
        f"  Mode:            {'dry run' if config.get('dry_run', True) else 'LIVE'}",
        f"  Phase:           {phase}",
        f"  Market Cap:      {mc_str}",
        f"  Venue:           {venue}",
        f"  Tokens Held:     {total.get('tokens', 0.0):,.2f}",
        f"  SOL Deployed:    {total.get('sol_deployed', 0.0):,.4f}",
        f"  Ticks:           {status.get('tick_count', 0)}",
        f"  Disabled:        {len(status.get('disabled_wallets') or {})} wallet(s)",
        f"  Last Trade:      {trade_str}",
        f"  Last Error:      {error_str}",
        "──────────────────────────────────────────────────",
    ]
    output = "\n".join(lines)
    print(output)
    return output

"""CurveMM — application entry point.

Boots the FastAPI control server and provides the CLI entry point that
starts every engine listed in the engines file.
"""

import logging
import sys

from fastapi import FastAPI

from curvemm.api.routers import router

app = FastAPI(title="CurveMM Control API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("curvemm")


@app.get("/health")
async def health():
    return {"status": "ok"}


def warn_if_live(live: bool) -> bool:
    """Log a prominent warning when real transactions will be sent.

    Returns *live* unchanged.
    """
    if live:
        logger.warning(
            "LIVE TRADING MODE: real transactions will be signed and sent."
        )
    return live


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments, build collaborators and run the engines."""
    import argparse
    import asyncio

    from curvemm.chain.rpc import SolanaRpcReader
    from curvemm.config import load_engine_specs, load_settings
    from curvemm.engine_manager import EngineManager
    from curvemm.market.observer import MarketObserver
    from curvemm.wallets.keystore import load_object

    parser = argparse.ArgumentParser(description="CurveMM market-making engine")
    parser.add_argument(
        "--live",
        action="store_true",
        help="Send real transactions (default: dry run)",
    )
    parser.add_argument(
        "--api",
        action="store_true",
        help="Serve the control API alongside the engines",
    )
    parser.add_argument(
        "--max-ticks",
        type=int,
        default=0,
        help="Stop each engine after N ticks (0 = run until interrupted)",
    )
    parser.add_argument("--env", default=None, help="Path to a .env file")
    parser.add_argument("--engines", default=None, help="Path to the engines JSON file")
    args = parser.parse_args()

    try:
        settings = load_settings(args.env)
    except ValueError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    specs = load_engine_specs(args.engines or settings.engines_path)
    if not specs:
        logger.error("No engines configured in %s", args.engines or settings.engines_path)
        sys.exit(2)

    adapter = load_object(settings.chain_adapter) if settings.chain_adapter else None
    key_store = load_object(settings.key_store) if settings.key_store else None
    if args.live and (adapter is None or key_store is None):
        logger.error("--live needs CHAIN_ADAPTER and KEY_STORE to be set")
        sys.exit(2)
    warn_if_live(args.live)

    reader = SolanaRpcReader(settings.rpc_url, timeout=settings.tick_timeout_seconds)
    observer = MarketObserver(
        settings.market_api_url,
        holder_counter=reader,
        timeout=settings.tick_timeout_seconds,
    )
    manager = EngineManager(
        observer,
        reader=reader,
        adapter=adapter,
        key_store=key_store,
        tick_timeout=settings.tick_timeout_seconds,
        log_capacity=settings.log_capacity,
    )

    from curvemm.api.routers import configure_routers

    configure_routers(manager, specs)
    asyncio.run(_run_engines(manager, specs, args, settings.api_port))


async def _run_engines(manager, specs, args, port: int = 8080) -> None:
    """Start every engine, optionally serve the API, and wait for shutdown."""
    import asyncio
    import signal

    from curvemm.cli.dashboard import print_status
    from curvemm.errors import ConfigInvalid
    from curvemm.models.engine_config import merge_config

    for spec in specs:
        try:
            config = merge_config(
                spec.token_mint, spec.config, {"dry_run": not args.live}, spec.preset
            )
        except ConfigInvalid as exc:
            logger.error("Engine %s/%s has invalid config: %s",
                         spec.owner, spec.token_mint, exc)
            continue
        result = await manager.start(
            config, spec.wallets, owner=spec.owner, max_ticks=args.max_ticks
        )
        if not result.success:
            logger.error("Engine %s/%s did not start: %s",
                         spec.owner, spec.token_mint, result.error)

    if args.api:
        import uvicorn

        server = uvicorn.Server(
            uvicorn.Config(app, host="0.0.0.0", port=port, log_level="info")
        )
        logger.info("Control API available at http://localhost:%d", port)
        await server.serve()
        await manager.stop_all()
    else:
        loop = asyncio.get_running_loop()

        def handle_shutdown() -> None:
            logger.info("Shutdown signal received, stopping all engines.")
            loop.create_task(manager.stop_all())

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, handle_shutdown)
            except NotImplementedError:
                logger.debug("Signal handlers unavailable on this platform")
        await manager.wait_all()

    for (owner, mint) in manager.engines:
        state = manager.status(owner, mint)
        if state is not None:
            print_status(state.to_dict())
    logger.info("CurveMM stopped.")


def main() -> None:
    _run_cli()


if __name__ == "__main__":
    main()

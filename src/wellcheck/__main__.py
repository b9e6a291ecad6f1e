"""
Main entrypoint: starts the event API, APScheduler and (optionally) the
family Telegram bot in one process, all sharing one MonitorService.

Usage:
    python -m wellcheck setup       # one-time pairing / account recovery
    python -m wellcheck             # starts API + scheduler (+ bot if configured)
"""
import asyncio
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def _run_setup() -> None:
    from wellcheck.scripts.setup import run_setup
    run_setup()


async def _run_service() -> None:
    import uvicorn

    from wellcheck.api.main import create_app
    from wellcheck.bot.app import build_bot_app
    from wellcheck.config import get_settings
    from wellcheck.db.engine import get_engine
    from wellcheck.monitor.service import MonitorService
    from wellcheck.notify.telegram_sink import build_telegram_sinks
    from wellcheck.recovery.service import AccountRecoveryService
    from wellcheck.scheduler.jobs import build_scheduler

    settings = get_settings()
    engine = get_engine()

    # Bot (optional)
    bot_app = None
    if settings.telegram_bot_token:
        bot_app = build_bot_app(
            token=settings.telegram_bot_token,
            monitor=None,
            family_chat_id=settings.telegram_family_chat_id,
        )
    else:
        logger.info("TELEGRAM_BOT_TOKEN not set — family bot disabled.")

    sinks = build_telegram_sinks(settings, bot=bot_app.bot if bot_app else None)
    monitor = MonitorService.from_settings(settings, engine, sinks=sinks)
    monitor.init()
    if bot_app:
        bot_app.bot_data["monitor"] = monitor

    profile = monitor.store.get_profile()
    if profile is None or not profile.setup_complete:
        logger.warning("Device is not paired. Run `python -m wellcheck setup`; events are refused until then.")

    recovery = AccountRecoveryService(monitor.remote, monitor.store, settings)

    # Scheduler
    scheduler = build_scheduler(monitor)
    scheduler.start()
    logger.info(
        "Scheduler started (usage check every %d min, alert check every %d min)",
        settings.usage_check_minutes,
        settings.alert_check_minutes,
    )

    # API
    api = create_app(monitor=monitor, recovery=recovery, scheduler=scheduler)
    server = uvicorn.Server(uvicorn.Config(api, host=settings.api_host, port=settings.api_port))

    try:
        if bot_app:
            async with bot_app:
                await bot_app.start()
                await bot_app.updater.start_polling(drop_pending_updates=True)
                logger.info("Bot is running.")
                try:
                    await server.serve()
                finally:
                    await bot_app.updater.stop()
                    await bot_app.stop()
        else:
            await server.serve()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down...")
    finally:
        scheduler.shutdown(wait=False)
        await monitor.close()
        logger.info("Goodbye.")


if __name__ == "__main__":
    # Dispatch on first argument: `python -m wellcheck setup` or just `python -m wellcheck`
    if len(sys.argv) > 1 and sys.argv[1] == "setup":
        _run_setup()
    else:
        asyncio.run(_run_service())

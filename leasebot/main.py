import asyncio
import logging
import sys

from aiogram import Bot, Dispatcher
from aiogram.enums import ParseMode
from aiogram.client.default import DefaultBotProperties

from leasebot.config import config
from leasebot.handlers import common, landlord, tenant
from leasebot.middlewares.auth import AuthMiddleware
from leasebot.middlewares.db import DbSessionMiddleware
from leasebot.middlewares.error import GlobalErrorMiddleware
from leasebot.services.notification_service import setup_notifications
from leasebot.cron import scheduler_loop


async def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        stream=sys.stdout,
    )

    bot = Bot(
        token=config.require_bot_token(),
        default=DefaultBotProperties(parse_mode=ParseMode.HTML)
    )
    dp = Dispatcher()

    setup_notifications(bot)

    # Order: Error -> DB -> Auth (uses session)
    dp.update.outer_middleware(GlobalErrorMiddleware())
    dp.update.middleware(DbSessionMiddleware())
    dp.update.middleware(AuthMiddleware())

    # Commands first so /cancel wins over FSM input handlers;
    # LandlordFilter lets tenants fall through to the tenant router
    dp.include_router(common.router)
    dp.include_router(landlord.router)
    dp.include_router(tenant.router)

    asyncio.create_task(scheduler_loop())

    logging.info("Starting bot...")
    await dp.start_polling(bot)

if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        logging.info("Bot stopped.")

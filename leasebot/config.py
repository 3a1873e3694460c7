import os
import logging
from dotenv import load_dotenv

load_dotenv()

class Config:
    # Bot Token (REQUIRED to run the bot, checked in main)
    BOT_TOKEN = os.getenv("BOT_TOKEN")
    BOT_USERNAME = os.getenv("BOT_USERNAME", "")

    # Database Configuration
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASS = os.getenv("DB_PASS", "postgres")
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "leasebot")

    @property
    def DATABASE_URL(self):
        # Prefer DATABASE_URL env var if set (for SQLite support)
        url = os.getenv("DATABASE_URL")
        if url:
            return url

        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASS}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # Invites
    INVITE_BASE_URL = os.getenv("INVITE_BASE_URL", "https://leasebot.app")
    INVITE_TOKEN_TTL_HOURS = int(os.getenv("INVITE_TOKEN_TTL_HOURS", "24"))

    # Billing defaults
    DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "NGN")

    # Daily jobs (UTC hour)
    SCHEDULER_HOUR = int(os.getenv("SCHEDULER_HOUR", "9"))

    def require_bot_token(self) -> str:
        if not self.BOT_TOKEN:
            raise ValueError(
                "BOT_TOKEN is required! Set it in .env file.\n"
                "Get token from @BotFather on Telegram."
            )
        return self.BOT_TOKEN

config = Config()

logging.info(f"Database: {config.DATABASE_URL.split('@')[1] if '@' in config.DATABASE_URL else 'SQLite'}")

# adapters/twitter/config.py
"""
Configuration for the Twitter adapter
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

class TwitterSettings(BaseSettings):
    """
    Twitter-specific settings

    These settings can be configured via environment variables
    prefixed with TWITTER_, e.g., TWITTER_WEBHOOK_ENV
    """
    # OAuth1 credentials of the bot account
    CONSUMER_KEY: str = ""
    CONSUMER_SECRET: str = ""
    ACCESS_TOKEN: str = ""
    ACCESS_TOKEN_SECRET: str = ""

    # API location, overridable for mocking or proxies
    API_HOST: str = "api.twitter.com"
    API_VERSION: str = "1.1"

    # Account Activity webhook
    WEBHOOK_ENV: str = ""
    WEBHOOK_URL: str = ""  # public https base, e.g. https://bot.example.com
    WEBHOOK_URI: str = "/api/messages"
    REGISTER_WEBHOOK_ON_STARTUP: bool = True

    # Resolved from verify_credentials at startup when not set
    USER_ID: Optional[str] = None

    # Tweet settings
    MAX_TWEET_LENGTH: int = 280

    model_config = SettingsConfigDict(env_prefix="TWITTER_", env_file=".env", extra="ignore")

@lru_cache()
def get_twitter_settings():
    """
    Get the Twitter settings, cached to avoid reloading
    """
    return TwitterSettings()

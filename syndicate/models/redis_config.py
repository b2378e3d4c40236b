from pydantic import RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="")

    redis_url: RedisDsn = "redis://localhost:6379/0"  # type: ignore[assignment]
    event_stream: str = "syndicate:events"
    command_stream: str = "syndicate:commands"
    snapshot_key: str = "syndicate:snapshot"


REDIS_SETTINGS = RedisSettings()

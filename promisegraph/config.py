from typing import Literal

from pydantic import PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    async_backend: Literal["asyncio", "trio"] = "asyncio"
    """Backend used when a graph is run from synchronous code."""

    warn_on_bare_result: bool = True
    """Warn when a computation returns a plain value instead of an awaitable."""

    max_concurrency: PositiveInt | None = None
    """ Max number of computations running at once in a single execution."""

    model_config = SettingsConfigDict(env_prefix="PROMISEGRAPH_", frozen=True)

"""
Pledge Configuration

Environment-driven settings for the default reactor and logging.
"""

import logging
import os
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .core.reactor import AsyncioReactor, ManualReactor, Reactor, set_reactor

logger = logging.getLogger(__name__)


class PledgeConfig(BaseModel):
    """
    Pledge settings.
    
    Attributes:
        reactor: Default reactor kind ("asyncio" or "manual")
        max_turns: Turn limit for ManualReactor.run_until_idle()
        raise_unhandled: Re-raise done() rejections from a ManualReactor
        log_level: Level for the "pledge" logger
    """
    reactor: Literal["asyncio", "manual"] = "asyncio"
    max_turns: int = Field(default=10000, ge=1)
    raise_unhandled: bool = True
    log_level: str = "WARNING"
    
    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level
    
    @classmethod
    def from_env(cls) -> "PledgeConfig":
        """
        Load settings from PLEDGE_* environment variables.
        
        Unset variables keep their defaults.
        
        Raises:
            pydantic.ValidationError: on invalid values
        """
        env = {
            "reactor": os.getenv("PLEDGE_REACTOR"),
            "max_turns": os.getenv("PLEDGE_MAX_TURNS"),
            "raise_unhandled": os.getenv("PLEDGE_RAISE_UNHANDLED"),
            "log_level": os.getenv("PLEDGE_LOG_LEVEL"),
        }
        return cls(**{k: v for k, v in env.items() if v is not None})
    
    def make_reactor(self) -> Reactor:
        """Build the configured reactor."""
        if self.reactor == "manual":
            return ManualReactor(
                max_turns=self.max_turns,
                raise_unhandled=self.raise_unhandled,
            )
        return AsyncioReactor()


def configure(config: Optional[PledgeConfig] = None) -> Reactor:
    """
    Apply settings: set the package log level and install the default reactor.
    
    Args:
        config: Settings to apply (default: PledgeConfig.from_env())
        
    Returns:
        The installed reactor
    """
    if config is None:
        config = PledgeConfig.from_env()
    
    logging.getLogger("pledge").setLevel(config.log_level)
    reactor = config.make_reactor()
    set_reactor(reactor)
    logger.debug(f"Configured pledge: {config.model_dump()}")
    return reactor

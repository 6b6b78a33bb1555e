"""
gitfiles.config - Settings from the environment

Variables (a .env file in the working directory is loaded first):

    GITFILES_PORT            plumb port to serve            (gitfileedit)
    GITFILES_STAT            stat helper command            (9 gitfilestat)
    GITFILES_GET             content helper command         (9 gitfileget)
    GITFILES_LISTING_FILTER  filter for directory listings  (9 mc)
    GITFILES_TAG             text added to new window tags  ("Get Look ")
    GITFILES_TYPE_CACHE      type cache entries             (64)
    GITFILES_MAX_MESSAGE     plumb payload limit in bytes   (1024)
    NAMESPACE                plan9port namespace directory
"""

import os
import shlex
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple


@dataclass(frozen=True)
class Settings:
    port: str = "gitfileedit"
    stat_command: Tuple[str, ...] = ("9", "gitfilestat")
    get_command: Tuple[str, ...] = ("9", "gitfileget")
    listing_filter: Tuple[str, ...] = ("9", "mc")
    tag: str = "Get Look "
    type_cache_size: int = 64
    max_message_size: int = 1024
    namespace: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """Build settings from environ (default os.environ)."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def command(var: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
            if var not in env:
                return default
            return tuple(shlex.split(env[var]))

        def integer(var: str, default: int) -> int:
            if var not in env:
                return default
            try:
                value = int(env[var])
            except ValueError:
                raise ValueError(f"{var}: not a number: {env[var]!r}") from None
            if value < 1:
                raise ValueError(f"{var}: must be positive: {value}")
            return value

        stat_command = command("GITFILES_STAT", defaults.stat_command)
        get_command = command("GITFILES_GET", defaults.get_command)
        if not stat_command or not get_command:
            raise ValueError("GITFILES_STAT and GITFILES_GET must name a command")

        return cls(
            port=env.get("GITFILES_PORT", defaults.port),
            stat_command=stat_command,
            get_command=get_command,
            listing_filter=command("GITFILES_LISTING_FILTER", defaults.listing_filter),
            tag=env.get("GITFILES_TAG", defaults.tag),
            type_cache_size=integer("GITFILES_TYPE_CACHE", defaults.type_cache_size),
            max_message_size=integer("GITFILES_MAX_MESSAGE", defaults.max_message_size),
            namespace=env.get("NAMESPACE") or None,
        )

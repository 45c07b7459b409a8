from __future__ import annotations

from dataclasses import dataclass
import os


@dataclass
class ClientConfig:
    """Connection settings and protocol safety caps."""
    host: str = "127.0.0.1"
    port: int = 6379
    connect_timeout: float = 5.0
    read_size: int = 4096
    # Longest +/-/:/$/* line accepted before its CRLF shows up.
    max_inline_length: int = 64 * 1024
    max_bulk_length: int = 512 * 1024 * 1024
    max_nesting_depth: int = 512
    # Sum of declared array arities within one top-level reply.
    max_array_elements: int = 16_777_216

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "ClientConfig":
        env = os.environ if environ is None else environ
        cfg = cls()
        if env.get("RESPIPE_HOST"):
            cfg.host = env["RESPIPE_HOST"]
        if env.get("RESPIPE_PORT"):
            try:
                cfg.port = int(env["RESPIPE_PORT"])
            except ValueError:
                raise ValueError(f"RESPIPE_PORT must be an integer, got {env['RESPIPE_PORT']!r}") from None
        return cfg

"""Configuration schema — validates pageaudit.yml."""

from __future__ import annotations

from urllib.parse import urlparse

from pydantic import BaseModel, field_validator, model_validator

AXE_CDN_URL = "https://cdnjs.cloudflare.com/ajax/libs/axe-core/4.10.2/axe.min.js"


class ServiceConfig(BaseModel):
    """Top-level service configuration.

    Every field has a default, so an empty or missing config file yields a
    working local setup on port 4000.
    """

    # HTTP server
    host: str = "127.0.0.1"
    port: int = 4000
    max_body_bytes: int = 2_000_000

    # Base URL Lighthouse uses to fetch published sessions.
    # Empty means http://<host>:<port>.
    exposure_base_url: str = ""

    # Accessibility engine; a local file wins over the CDN URL
    axe_script_url: str = AXE_CDN_URL
    axe_script_path: str = ""

    # Performance tool
    lighthouse_command: list[str] = ["lighthouse"]
    audit_urls_directly: bool = False

    # Browser
    headless: bool = True
    chromium_args: list[str] = ["--no-sandbox", "--disable-dev-shm-usage"]
    settle_delay_ms: int = 200
    navigation_timeout_ms: int = 30_000

    # Stage timeouts, in seconds
    lighthouse_timeout: float = 120.0
    scan_timeout: float = 90.0
    performance_timeout: float = 150.0

    @field_validator("port")
    @classmethod
    def check_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {v}")
        return v

    @field_validator(
        "max_body_bytes",
        "navigation_timeout_ms",
        "lighthouse_timeout",
        "scan_timeout",
        "performance_timeout",
    )
    @classmethod
    def check_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("settle_delay_ms")
    @classmethod
    def check_settle_delay(cls, v: int) -> int:
        if v < 0:
            raise ValueError("settle_delay_ms cannot be negative")
        return v

    @field_validator("lighthouse_command")
    @classmethod
    def check_command(cls, v: list[str]) -> list[str]:
        if not v or not v[0]:
            raise ValueError("lighthouse_command must name an executable")
        return v

    @model_validator(mode="after")
    def check_exposure_base_url(self) -> "ServiceConfig":
        if self.exposure_base_url:
            parsed = urlparse(self.exposure_base_url)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError(
                    f"exposure_base_url must be an http(s) URL: {self.exposure_base_url}"
                )
        return self

    @property
    def resolved_exposure_base_url(self) -> str:
        """Base URL for session exposure, without a trailing slash."""
        if self.exposure_base_url:
            return self.exposure_base_url.rstrip("/")
        # A wildcard bind address is not fetchable; use loopback instead.
        host = "127.0.0.1" if self.host in ("", "0.0.0.0", "::") else self.host
        return f"http://{host}:{self.port}"

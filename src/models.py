"""Domain models for balance observations.

Credential, ExtractionResult variants and Observation are immutable pydantic
models. ExtractionResult is a tagged union discriminated on ``kind``.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


class Credential(BaseModel):
    """Session cookies for the monitored platform.

    Attributes:
        cookies: Ordered (name, value) pairs.
        domain: Domain the cookies are scoped to in the browser.
        source: Where the cookie was resolved from ("file" or "env").
    """

    model_config = ConfigDict(frozen=True)

    cookies: tuple[tuple[str, str], ...] = Field(..., min_length=1)
    domain: str
    source: str

    @classmethod
    def from_cookie_header(cls, raw: str, domain: str, source: str) -> "Credential":
        """Parse a raw ``name=value; name2=value2`` cookie header.

        Raises:
            ValueError: If the header contains no cookie pairs.
        """
        pairs = []
        for fragment in raw.split(";"):
            fragment = fragment.strip()
            if not fragment:
                continue
            name, _, value = fragment.partition("=")
            name = name.strip()
            if name:
                pairs.append((name, value.strip()))

        if not pairs:
            raise ValueError("Cookie header contains no name=value pairs")

        return cls(cookies=tuple(pairs), domain=domain, source=source)

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.cookies]

    def to_browser_cookies(self) -> list[dict[str, str]]:
        """Convert to Playwright ``BrowserContext.add_cookies`` entries."""
        return [
            {"name": name, "value": value, "domain": self.domain, "path": "/"}
            for name, value in self.cookies
        ]


class StructuredBalance(BaseModel):
    """A balance figure found on the page or in an intercepted response."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["structured_balance"] = "structured_balance"
    amount: Decimal | None
    currency: str | None = None
    source: str
    strategy: Literal["dom", "network"]
    url: str | None = None


class RawContentSample(BaseModel):
    """Truncated page text kept for manual inspection."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["raw_content"] = "raw_content"
    content_preview: str
    note: str = "no structured balance found; manual inspection required"


class Empty(BaseModel):
    """The page yielded no text at all."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["empty"] = "empty"


ExtractionResult = Annotated[
    StructuredBalance | RawContentSample | Empty,
    Field(discriminator="kind"),
]


class Observation(BaseModel):
    """One timestamped extraction outcome, the unit of record in the log."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    result: ExtractionResult

    @field_validator("timestamp")
    @classmethod
    def _to_utc_seconds(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(microsecond=0)

    @classmethod
    def now(cls, result: StructuredBalance | RawContentSample | Empty) -> "Observation":
        return cls(timestamp=datetime.now(timezone.utc), result=result)

    @property
    def formatted_timestamp(self) -> str:
        return self.timestamp.strftime(TIMESTAMP_FORMAT)

    def to_record(self) -> dict[str, Any]:
        """Structured body written under the log section header."""
        return {
            "timestamp": self.formatted_timestamp,
            "data": self.result.model_dump(mode="json"),
        }

"""Chronicle configuration models.

See Also:
    [RefreshScheduler][chronicle.services.refresher.RefreshScheduler]: The
        service class that consumes these configurations.
    [BaseServiceConfig][chronicle.core.base_service.BaseServiceConfig]:
        Base class providing ``interval``, ``max_consecutive_failures``,
        and ``metrics`` fields.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from chronicle.core.base_service import BaseServiceConfig
from chronicle.utils.keys import normalize_relay_url, parse_pubkey


#: Relays queried for profiles, contact lists, backfills and archival passes.
SEED_RELAYS: list[str] = [
    "wss://nos.lol",
    "wss://nostr.mom",
    "wss://purplepag.es",
    "wss://purplerelay.com",
    "wss://relay.damus.io",
    "wss://relay.nostr.band",
    "wss://relay.snort.social",
    "wss://relayable.org",
    "wss://relay.primal.net",
    "wss://relay.nostr.bg",
    "wss://no.str.cr",
    "wss://nostr21.com",
    "wss://nostrue.com",
    "wss://relay.siamstr.com",
]


class RelayInfoConfig(BaseModel):
    """Public description of the relay (NIP-11 document)."""

    name: str = Field(default="chronicle", description="Relay display name")
    description: str = Field(default="", description="Relay description")
    url: str = Field(default="", description="Public relay URL")
    contact: str = Field(default="", description="Operator contact")
    icon: str = Field(default="", description="Icon URL")


class TimeoutsConfig(BaseModel):
    """Per-operation time limits for remote relay access (seconds)."""

    backfill: float = Field(default=30.0, ge=1.0, description="Conversation backfill budget")
    backup: float = Field(default=5.0, ge=0.5, description="Publish to one backup relay")
    follows: float = Field(default=30.0, ge=1.0, description="One contact-list batch")
    profile: float = Field(default=30.0, ge=1.0, description="Owner profile refresh")
    connect: float = Field(default=10.0, ge=0.5, description="Relay connection")


class ArchiveConfig(BaseModel):
    """Archival pass settings."""

    time_budget: float | None = Field(
        default=None,
        ge=10.0,
        description="Seconds per archival pass (default: refresh_interval minutes)",
    )


class ChronicleConfig(BaseServiceConfig):
    """Top-level Chronicle configuration.

    ``interval`` is derived from ``refresh_interval`` (hours) unless set
    explicitly.
    """

    relay: RelayInfoConfig = Field(default_factory=RelayInfoConfig)
    owner_pubkeys: list[str] = Field(min_length=1, description="Owner keys (npub or hex)")
    refresh_interval: int = Field(default=24, ge=1, le=168, description="Hours between refreshes")
    min_followers: int = Field(default=3, ge=0, description="Follower threshold for members")
    hops: int = Field(default=2, ge=1, le=4, description="Follow-graph depth")
    follow_batch_size: int = Field(default=500, ge=1, le=5000, description="Authors per request")
    fetch_sync: bool = Field(default=True, description="Run archival passes")
    backup_relays: list[str] = Field(default_factory=list, description="Replication targets")
    seed_relays: list[str] = Field(
        default_factory=lambda: list(SEED_RELAYS),
        min_length=1,
        description="Relays used for remote lookups",
    )
    registry_path: Path = Field(default=Path("data/root_notes"), description="Registry file")
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    archive: ArchiveConfig = Field(default_factory=ArchiveConfig)

    @field_validator("owner_pubkeys")
    @classmethod
    def normalize_owner_pubkeys(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(parse_pubkey(value) for value in v))

    @field_validator("backup_relays", "seed_relays")
    @classmethod
    def normalize_relay_urls(cls, v: list[str]) -> list[str]:
        return list(dict.fromkeys(normalize_relay_url(url) for url in v))

    @model_validator(mode="after")
    def derive_interval(self) -> ChronicleConfig:
        if "interval" not in self.model_fields_set:
            self.interval = float(self.refresh_interval * 3600)
        return self

    @property
    def archive_time_budget(self) -> float:
        """Archival pass budget: explicit value, else ``refresh_interval`` minutes."""
        if self.archive.time_budget is not None:
            return self.archive.time_budget
        return float(self.refresh_interval * 60)

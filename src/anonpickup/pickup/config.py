"""
Configuration for the pickup authority.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from ..errors import ConfigurationError
from .package import PICKUP_VALIDITY_DAYS, SECONDS_PER_DAY, ChallengeLink
from .storage import InMemoryLedgerStore, LedgerStore, SQLiteLedgerStore


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class AuthorityConfig:
    """Configuration for a ``PickupAuthority``."""

    # Pickup windows, in seconds
    default_pickup_window: float = PICKUP_VALIDITY_DAYS * SECONDS_PER_DAY
    max_pickup_window: float = 365 * SECONDS_PER_DAY

    # Record value a pickup proof's expected commitment is checked against
    challenge_link: ChallengeLink = ChallengeLink.CREDENTIAL

    # Only stores added with authorize_store may receive packages
    require_store_authorization: bool = True

    # SQLite ledger path; None keeps the ledger in memory
    database_path: Optional[str] = None

    # Size of the pool behind submit_pickup
    verification_workers: int = 4

    environment_overrides: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self._apply_environment_overrides()

    def _apply_environment_overrides(self) -> None:
        """Apply ``ANONPICKUP_*`` environment variables."""
        env_mappings = {
            "ANONPICKUP_PICKUP_WINDOW": ("default_pickup_window", float),
            "ANONPICKUP_MAX_PICKUP_WINDOW": ("max_pickup_window", float),
            "ANONPICKUP_CHALLENGE_LINK": ("challenge_link", ChallengeLink),
            "ANONPICKUP_REQUIRE_STORE_AUTH": ("require_store_authorization", bool),
            "ANONPICKUP_DATABASE_PATH": ("database_path", str),
            "ANONPICKUP_WORKERS": ("verification_workers", int),
        }

        for env_var, (attr_name, attr_type) in env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is None:
                continue
            try:
                if attr_type is bool:
                    converted = _parse_bool(env_value)
                elif attr_type is ChallengeLink:
                    converted = ChallengeLink(env_value.lower())
                else:
                    converted = attr_type(env_value)
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid value for {env_var}: {e}", config_key=env_var
                ) from e
            setattr(self, attr_name, converted)
            self.environment_overrides[attr_name] = converted

    def validate(self) -> None:
        """Validate configuration parameters."""
        if self.default_pickup_window <= 0:
            raise ConfigurationError(
                "default_pickup_window must be positive", config_key="default_pickup_window"
            )
        if self.max_pickup_window < self.default_pickup_window:
            raise ConfigurationError(
                "max_pickup_window must not be shorter than default_pickup_window",
                config_key="max_pickup_window",
            )
        if not isinstance(self.challenge_link, ChallengeLink):
            raise ConfigurationError(
                "challenge_link must be a ChallengeLink", config_key="challenge_link"
            )
        if self.verification_workers <= 0:
            raise ConfigurationError(
                "verification_workers must be positive", config_key="verification_workers"
            )

    def create_storage(self) -> LedgerStore:
        if self.database_path:
            return SQLiteLedgerStore(self.database_path)
        return InMemoryLedgerStore()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "default_pickup_window": self.default_pickup_window,
            "max_pickup_window": self.max_pickup_window,
            "challenge_link": self.challenge_link.value,
            "require_store_authorization": self.require_store_authorization,
            "database_path": self.database_path,
            "verification_workers": self.verification_workers,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AuthorityConfig":
        data = dict(data)
        if "challenge_link" in data:
            try:
                data["challenge_link"] = ChallengeLink(data["challenge_link"])
            except ValueError as e:
                raise ConfigurationError(str(e), config_key="challenge_link") from e
        return cls(**data)

"""
QuickUnlock Configuration — Validity periods, modes and validated settings.

Reads settings from environment variables:
    QUICKUNLOCK_VALID_PERIOD = <seconds, 0 = unlimited>
    QUICKUNLOCK_MODE = entry | entry_or_part_of
    QUICKUNLOCK_AUTO_PROMPT = true | false
    QUICKUNLOCK_PART_OF_ORIGIN = front | end
    QUICKUNLOCK_PART_OF_LENGTH = <characters, at least 2>

Security Note:
    Never log the master password or the PIN cut from it.
"""
import os
import logging
from enum import Enum

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import InvalidArgumentError
from .memory import as_secret

logger = logging.getLogger("quickunlock")

# Valid periods in seconds.
VALID_UNLIMITED = 0
VALID_1MINUTE = 60
VALID_5MINUTES = VALID_1MINUTE * 5
VALID_10MINUTES = VALID_5MINUTES * 2
VALID_15MINUTES = VALID_5MINUTES * 3
VALID_30MINUTES = VALID_15MINUTES * 2
VALID_1HOUR = VALID_30MINUTES * 2
VALID_2HOURS = VALID_1HOUR * 2
VALID_6HOURS = VALID_2HOURS * 3
VALID_12HOURS = VALID_6HOURS * 2
VALID_1DAY = VALID_12HOURS * 2
VALID_DEFAULT = VALID_10MINUTES

MINIMUM_PART_OF_LENGTH = 2

_ENV_PREFIX = "QUICKUNLOCK_"


class Mode(str, Enum):
    """Where the PIN comes from when a key is cached."""

    ENTRY = "entry"
    ENTRY_OR_PART_OF = "entry_or_part_of"


class PartOfOrigin(str, Enum):
    """Which end of the master password the PIN is cut from."""

    FRONT = "front"
    END = "end"


class QuickUnlockConfig(BaseModel):
    """Validated QuickUnlock settings."""

    valid_period: int = Field(default=VALID_DEFAULT, ge=0)
    mode: Mode = Mode.ENTRY
    auto_prompt: bool = True
    part_of_origin: PartOfOrigin = PartOfOrigin.FRONT
    part_of_length: int = Field(default=4, ge=MINIMUM_PART_OF_LENGTH)

    @field_validator("mode", "part_of_origin", mode="before")
    @classmethod
    def normalize_choice(cls, v):
        """Accept enum names and values case-insensitively."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @property
    def unlimited(self) -> bool:
        return self.valid_period == VALID_UNLIMITED

    def part_of_pin(self, password) -> bytearray:
        """Cut a PIN from the master password.

        Takes the first or last ``part_of_length`` characters, depending on
        ``part_of_origin``, and returns them UTF-8 encoded in a fresh
        bytearray the caller must wipe.

        Raises:
            InvalidArgumentError: If the password is missing or shorter than
                ``part_of_length`` characters.
        """
        if password is None:
            raise InvalidArgumentError("password must not be None")
        if isinstance(password, (bytes, bytearray)):
            password = password.decode("utf-8")
        if len(password) < self.part_of_length:
            raise InvalidArgumentError(
                f"password is shorter than part_of_length ({self.part_of_length})"
            )
        if self.part_of_origin is PartOfOrigin.END:
            return as_secret(password[-self.part_of_length:])
        return as_secret(password[:self.part_of_length])

    @classmethod
    def from_env(cls) -> "QuickUnlockConfig":
        """Create QuickUnlockConfig by loading values from environment.

        Unset variables keep their defaults.

        Raises:
            InvalidArgumentError: If a variable holds an invalid value.
        """
        values = {}
        for field in cls.model_fields:
            raw = os.environ.get(f"{_ENV_PREFIX}{field.upper()}")
            if raw is not None:
                values[field] = raw
        try:
            config = cls(**values)
        except ValidationError as err:
            raise InvalidArgumentError(
                f"Invalid QuickUnlock configuration: {err}"
            ) from err
        logger.debug(
            "Loaded QuickUnlock config: valid_period=%s mode=%s",
            config.valid_period, config.mode.value,
        )
        return config

"""Database-level enumerations."""

import enum


class Device(str, enum.Enum):
    """Target device an instruction must be executed on."""

    DESKTOP = "desktop"
    MOBILE = "mobile"

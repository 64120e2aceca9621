from enum import Enum


class Platform(Enum):
    """Delivery platforms whose transaction exports are ingested"""
    UBER_EATS = "ubereats"
    DOORDASH = "doordash"
    GRUBHUB = "grubhub"

    @classmethod
    def from_string(cls, value: str) -> "Platform":
        """Parse a platform tag, tolerating case, spaces, dashes and underscores"""
        if isinstance(value, Platform):
            return value
        key = ''.join(ch for ch in str(value).lower() if ch.isalnum())
        for platform in cls:
            if platform.value == key:
                return platform
        raise ValueError(f"Unknown platform: {value}. Must be one of: {', '.join(p.value for p in cls)}")

    @property
    def display_name(self) -> str:
        return {
            Platform.UBER_EATS: "Uber Eats",
            Platform.DOORDASH: "DoorDash",
            Platform.GRUBHUB: "Grubhub",
        }[self]

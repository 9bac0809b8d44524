from dataclasses import dataclass
from typing import Any, Dict

DEFAULT_ICON = "🌱"
XP_PER_LEVEL = 100


@dataclass
class UserProfile:
    """The internal representation of a gardener's profile."""
    user_id: str
    username: str = ""
    icon: str = DEFAULT_ICON
    xp: int = 0

    def get_level(self, xp_per_level: int = XP_PER_LEVEL) -> int:
        return 1 + self.xp // xp_per_level

    def add_xp(self, amount: int) -> int:
        if amount > 0:
            self.xp += amount
        return self.xp

    def to_plain_object(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "username": self.username, "icon": self.icon, "xp": self.xp}

    @classmethod
    def from_plain_object(cls, plain_object: Any, default_user_id: str = "Dummy User") -> "UserProfile":
        if not isinstance(plain_object, dict):
            return cls(default_user_id)

        user_id = plain_object.get("user_id")
        username = plain_object.get("username")
        icon = plain_object.get("icon")
        xp = plain_object.get("xp")

        return cls(
            user_id=user_id if isinstance(user_id, str) and user_id else default_user_id,
            username=username if isinstance(username, str) else "",
            icon=icon if isinstance(icon, str) and icon else DEFAULT_ICON,
            xp=xp if isinstance(xp, int) and not isinstance(xp, bool) and xp >= 0 else 0,
        )


# --- External Immutable View ---

@dataclass(frozen=True)
class UserProfileView:
    """The external read-only view of a user's profile."""
    user_id: str
    username: str
    icon: str
    xp: int
    level: int

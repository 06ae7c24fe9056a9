from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True, frozen=True)
class Account:
    """Roster member as returned by the community membership endpoint."""

    account_id: str
    name: str = ""


@dataclass(slots=True, frozen=True)
class Profile:
    """Snapshot of the profile fields checked during onboarding."""

    account_id: str
    name: str = ""
    cover: str | None = None
    picture_is_silhouette: bool = True
    department: str | None = None
    title: str | None = None
    manager_ids: tuple[str, ...] = field(default=())

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0] if self.name else ""


@dataclass(slots=True)
class ActivityRecord:
    """Ledger row: last observed activity for one account."""

    account_id: str
    last_activity: int
    warning_sent: bool = False

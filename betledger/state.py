"""Per-session dashboard state.

One DashboardState lives under a single key of ``st.session_state`` and is
passed explicitly to the render functions.
"""

from dataclasses import dataclass, field
from typing import Optional

NOTIFICATION_KINDS = ("success", "error", "info")


@dataclass
class DashboardState:
    user: Optional[dict] = None
    active_bankroll_id: Optional[str] = None
    notifications: list = field(default_factory=list)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def sign_in(self, user: dict) -> None:
        self.user = user

    def sign_out(self) -> None:
        """Forget the user, the bankroll selection and any queued messages."""
        self.user = None
        self.clear_bankroll()
        self.notifications = []

    def resolve_active_bankroll(self, bankrolls: list[dict]) -> Optional[dict]:
        """Pick the bankroll to show.

        Keeps the previous selection if it is still in ``bankrolls``, otherwise
        falls back to the first one. Returns None when there are no bankrolls.
        """
        if not bankrolls:
            self.clear_bankroll()
            return None

        for bankroll in bankrolls:
            if bankroll["id"] == self.active_bankroll_id:
                return bankroll

        self.active_bankroll_id = bankrolls[0]["id"]
        return bankrolls[0]

    def select_bankroll(self, bankroll_id: str) -> None:
        self.active_bankroll_id = bankroll_id

    def clear_bankroll(self) -> None:
        self.active_bankroll_id = None

    def push(self, kind: str, message: str) -> None:
        if kind not in NOTIFICATION_KINDS:
            raise ValueError(f"Unknown notification kind: {kind}")
        self.notifications.append((kind, message))

    def drain_notifications(self) -> list[tuple[str, str]]:
        """Return queued (kind, message) pairs in order and empty the queue."""
        drained = list(self.notifications)
        self.notifications.clear()
        return drained

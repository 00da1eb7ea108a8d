"""Client-side holder for the signed-in user."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .client import ReleaseCalClient
from .errors import BackendError
from .schemas import UserRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    variant: str = "default"


@dataclass
class Notifier:
    """Collects user-facing notifications in the order they were raised."""

    notifications: list[Notification] = field(default_factory=list)

    def notify(self, title: str, description: str, variant: str = "default") -> Notification:
        notification = Notification(title, description, variant)
        self.notifications.append(notification)
        log = logger.warning if variant == "destructive" else logger.info
        log("%s: %s", title, description)
        return notification

    @property
    def last(self) -> Notification | None:
        return self.notifications[-1] if self.notifications else None


def _describe(exc: Exception) -> str:
    if isinstance(exc, BackendError):
        return exc.message
    return str(exc) or exc.__class__.__name__


class AuthSession:
    """Tracks the current user and drives sign-in, sign-up and sign-out.

    Failures never propagate: they become destructive notifications and
    ``is_loading`` always returns to False.
    """

    def __init__(self, client: ReleaseCalClient, notifier: Notifier | None = None) -> None:
        self.client = client
        self.notifier = notifier or Notifier()
        self.current_user: UserRecord | None = None
        self.is_loading = False

    @property
    def access_token(self) -> str | None:
        return self.client.access_token

    @property
    def is_authenticated(self) -> bool:
        return self.current_user is not None

    def sign_up(self, email: str, password: str) -> bool:
        self.is_loading = True
        try:
            self.client.sign_up(email, password)
            # New accounts confirm first; the user signs in afterwards.
            self.client.access_token = None
            self.notifier.notify(
                "Account created", "Please check your email to confirm your account"
            )
            return True
        except Exception as exc:
            self.notifier.notify("Sign up failed", _describe(exc), "destructive")
            return False
        finally:
            self.is_loading = False

    def sign_in(self, email: str, password: str) -> bool:
        self.is_loading = True
        try:
            self.current_user = self.client.sign_in(email, password)
            self.notifier.notify("Welcome back", "You've successfully signed in")
            return True
        except Exception as exc:
            self.notifier.notify("Sign in failed", _describe(exc), "destructive")
            return False
        finally:
            self.is_loading = False

    def sign_out(self) -> bool:
        self.is_loading = True
        try:
            self.client.sign_out()
            self.current_user = None
            self.notifier.notify("Signed out", "You've been successfully signed out")
            return True
        except Exception as exc:
            self.notifier.notify("Sign out failed", _describe(exc), "destructive")
            return False
        finally:
            self.is_loading = False

    def restore(self, access_token: str | None) -> UserRecord | None:
        """Re-read the current user for a stored token; a stale token is dropped."""
        if not access_token:
            return None
        self.is_loading = True
        self.client.access_token = access_token
        try:
            self.current_user = self.client.get_user()
        except BackendError as exc:
            logger.info("Stored session could not be restored: %s", exc.message)
            self.client.access_token = None
            self.current_user = None
        finally:
            self.is_loading = False
        return self.current_user

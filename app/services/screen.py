# app/services/screen.py
import threading
import time
from dataclasses import dataclass
from functools import partial
from typing import Callable, Dict, List, Optional

from app.core.config import get_settings
from app.core.logger import logger
from app.schemas.file import FileRead
from app.services.auth import SIGNED_OUT, AuthEvent, AuthEventBus, UserSession, auth_events


@dataclass
class Notification:
    title: str
    message: str
    variant: str = "default"  # or "destructive"


class ScreenState:
    """What one signed-in browser currently sees on the files screen."""

    def __init__(self, session: UserSession):
        self.session = session
        self.files: List[FileRead] = []
        self.share_target: Optional[str] = None
        self.uploading = False
        self.last_seen = 0.0
        self._notification: Optional[Notification] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    def notify(self, title: str, message: str, variant: str = "default"):
        self._notification = Notification(title, message, variant)

    def notify_error(self, title: str, message: str):
        self.notify(title, message, variant="destructive")

    def pop_notification(self) -> Optional[Notification]:
        notification, self._notification = self._notification, None
        return notification


class ScreenRegistry:
    """
    Screen states keyed by session token.

    A state is created on the first successful auth check and removed as
    soon as its session publishes SIGNED_OUT, or once it has not been opened
    for ``idle_timeout`` seconds (a dropped cookie never signs out).
    """

    def __init__(self, events: AuthEventBus, idle_timeout: float = 3600, clock: Callable[[], float] = time.monotonic):
        self._events = events
        self.idle_timeout = idle_timeout
        self._clock = clock
        self._screens: Dict[str, ScreenState] = {}
        self._lock = threading.RLock()

    def open(self, session: UserSession) -> ScreenState:
        self.evict_idle()
        with self._lock:
            state = self._screens.get(session.token)
            if state is None:
                state = ScreenState(session)
                state._unsubscribe = self._events.subscribe(partial(self._on_auth_event, session.token))
                self._screens[session.token] = state
            state.last_seen = self._clock()
            return state

    def evict_idle(self) -> int:
        cutoff = self._clock() - self.idle_timeout
        with self._lock:
            idle = [token for token, state in self._screens.items() if state.last_seen < cutoff]
        for token in idle:
            self.close(token)
        return len(idle)

    def get(self, token: str) -> Optional[ScreenState]:
        return self._screens.get(token)

    def close(self, token: str):
        with self._lock:
            state = self._screens.pop(token, None)
        if state is not None and state._unsubscribe is not None:
            state._unsubscribe()
            logger.debug(f"Screen for user {state.session.user_id} torn down")

    def _on_auth_event(self, token: str, event: AuthEvent):
        if event.name == SIGNED_OUT and event.session.token == token:
            self.close(token)

    def __contains__(self, token: str) -> bool:
        return token in self._screens

    def __len__(self):
        return len(self._screens)


screens = ScreenRegistry(auth_events, idle_timeout=get_settings().screen_idle_minutes * 60)

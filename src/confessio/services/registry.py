"""Registry of loaded per-client view-models."""

from __future__ import annotations

import logging
from collections import OrderedDict
from threading import Lock

from sqlalchemy.orm import Session, sessionmaker

from confessio.core.settings import settings
from confessio.repositories.confession_repo import ConfessionRepository
from confessio.services.app_state import Analyzer, AppState
from confessio.services.local_store import LocalStore
from confessio.services.matchmaker import ImageStyler, Matchmaker
from confessio.services.media import UploadedFrameDevice
from confessio.services.realtime import RealtimeChannel

logger = logging.getLogger(__name__)


class ClientStateRegistry:
    """Keeps the most recently used client states loaded.

    A state evicted to make room is closed, which releases its camera and
    stops its realtime subscription; its session survives in local storage.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        analyzer: Analyzer,
        styler: ImageStyler,
        *,
        channel: RealtimeChannel | None = None,
        max_clients: int | None = None,
        redis_url: str | None = None,
    ) -> None:
        self.repo = ConfessionRepository(session_factory, channel)
        self.analyzer = analyzer
        self.styler = styler
        self.max_clients = max(1, max_clients or settings.max_loaded_clients)
        self.redis_url = redis_url
        self._states: OrderedDict[str, AppState] = OrderedDict()
        self._lock = Lock()

    def get(self, client_id: str) -> AppState:
        """Return the loaded state for ``client_id``, loading it on first use."""
        evicted: list[AppState] = []
        with self._lock:
            state = self._states.get(client_id)
            if state is not None:
                self._states.move_to_end(client_id)
                return state

            state = self._build(client_id)
            state.load()
            self._states[client_id] = state
            while len(self._states) > self.max_clients:
                _, oldest = self._states.popitem(last=False)
                evicted.append(oldest)

        for old in evicted:
            logger.debug("Evicting client state for %s", old.store.client_id)
            old.close()
        return state

    def _build(self, client_id: str) -> AppState:
        store = LocalStore(client_id, self.redis_url)
        matchmaker = Matchmaker(UploadedFrameDevice(), store, self.styler)
        return AppState(self.repo, store, self.analyzer, matchmaker)

    def __len__(self) -> int:
        return len(self._states)

    def close_all(self) -> None:
        with self._lock:
            states = list(self._states.values())
            self._states.clear()
        for state in states:
            state.close()


class _RegistrySingleton:
    """Singleton wrapper for ClientStateRegistry."""

    _instance: ClientStateRegistry | None = None

    @classmethod
    def get_instance(cls) -> ClientStateRegistry:
        if cls._instance is None:
            from confessio.db.session import SessionLocal
            from confessio.services.gemini import get_gemini_client

            gemini = get_gemini_client()
            cls._instance = ClientStateRegistry(SessionLocal, gemini, gemini)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        if cls._instance is not None:
            cls._instance.close_all()
        cls._instance = None


def get_client_registry() -> ClientStateRegistry:
    """Return the shared client state registry."""
    return _RegistrySingleton.get_instance()


def reset_client_registry() -> None:
    _RegistrySingleton.reset()

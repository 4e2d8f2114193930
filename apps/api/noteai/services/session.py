from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable

from noteai.core.config import Settings
from noteai.services.datastore import DataClient, build_data_client
from noteai.services.device_contacts import DeviceContactBridge
from noteai.services.intent import ContactsWorkspace
from noteai.services.llm import LanguageModelClient
from noteai.services.onboarding import OnboardingService
from noteai.services.subscriptions import StoreClient, SubscriptionService, build_store_client

logger = logging.getLogger(__name__)


class AppSession:
    """Everything one signed-in owner works with, wired explicitly at sign-in."""

    def __init__(
        self,
        user_id: uuid.UUID,
        *,
        data_client: DataClient,
        llm: LanguageModelClient,
        device_contacts: DeviceContactBridge,
        store: StoreClient,
        monthly_product_id: str,
        yearly_product_id: str,
        onboarding_batch_size: int = 5,
    ) -> None:
        self.user_id = user_id
        self.data_client = data_client
        self.llm = llm
        self.device_contacts = device_contacts
        self.store = store
        # One user action at a time across the workspace and the import.
        busy = threading.Lock()
        self.workspace = ContactsWorkspace(user_id, data_client, llm, device_contacts, busy=busy)
        self.onboarding = OnboardingService(
            user_id, data_client, device_contacts, llm, batch_size=onboarding_batch_size, busy=busy
        )
        self.subscriptions = SubscriptionService(
            data_client,
            store,
            monthly_product_id=monthly_product_id,
            yearly_product_id=yearly_product_id,
        )
        self.started = False

    @classmethod
    def from_settings(
        cls, settings: Settings, user_id: uuid.UUID, *, access_token: str | None = None
    ) -> "AppSession":
        return cls(
            user_id,
            data_client=build_data_client(settings, access_token=access_token),
            llm=LanguageModelClient.from_settings(settings),
            device_contacts=DeviceContactBridge.from_settings(settings),
            store=build_store_client(settings),
            monthly_product_id=settings.monthly_product_id,
            yearly_product_id=settings.yearly_product_id,
            onboarding_batch_size=settings.onboarding_batch_size,
        )

    def start(self) -> "AppSession":
        if self.data_client.get_user_preferences(self.user_id) is None:
            self.data_client.create_user_preferences(self.user_id)
            logger.info("user_preferences_created", extra={"user_id": str(self.user_id)})
        self.onboarding.check_status()
        self.workspace.load_labels()
        self.workspace.load_contacts()
        self.started = True
        logger.info(
            "session_started",
            extra={"user_id": str(self.user_id), "contacts": len(self.workspace.contacts)},
        )
        return self

    def close(self) -> None:
        for name, resource in (
            ("data_client", self.data_client),
            ("llm", self.llm),
            ("device_contacts", self.device_contacts),
            ("store", self.store),
        ):
            try:
                resource.close()
            except Exception:
                logger.exception("session_resource_close_failed", extra={"resource": name})
        self.started = False
        logger.info("session_closed", extra={"user_id": str(self.user_id)})


SessionFactory = Callable[[uuid.UUID, str | None], AppSession]


class SessionRegistry:
    """Live sessions keyed by owner; the HTTP layer's only shared state."""

    def __init__(self, factory: SessionFactory) -> None:
        self._factory = factory
        self._sessions: dict[uuid.UUID, AppSession] = {}
        self._lock = threading.Lock()

    def get(self, user_id: uuid.UUID) -> AppSession | None:
        with self._lock:
            return self._sessions.get(user_id)

    def open(self, user_id: uuid.UUID, access_token: str | None = None) -> AppSession:
        with self._lock:
            existing = self._sessions.get(user_id)
        if existing is not None:
            return existing

        session = self._factory(user_id, access_token)
        try:
            session.start()
        except Exception:
            session.close()
            raise
        with self._lock:
            # A concurrent open for the same owner may have won.
            winner = self._sessions.setdefault(user_id, session)
        if winner is not session:
            session.close()
        return winner

    def sign_out(self, user_id: uuid.UUID) -> bool:
        with self._lock:
            session = self._sessions.pop(user_id, None)
        if session is None:
            return False
        session.close()
        return True

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()

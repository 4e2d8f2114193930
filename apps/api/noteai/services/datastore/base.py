from __future__ import annotations

import uuid
from typing import Protocol

from noteai.domain.records import Contact, ContactLabel, Label, Subscription, UserPreferences


class DataClient(Protocol):
    """Owner-scoped CRUD over the five remote collections."""

    def get_user_preferences(self, user_id: uuid.UUID) -> UserPreferences | None: ...

    def create_user_preferences(
        self, user_id: uuid.UUID, *, has_completed_onboarding: bool = False
    ) -> UserPreferences: ...

    def update_user_preferences(self, preferences: UserPreferences) -> UserPreferences: ...

    def get_subscription(self, user_id: uuid.UUID) -> Subscription | None: ...

    def create_subscription(self, subscription: Subscription) -> Subscription: ...

    def update_subscription(self, subscription: Subscription) -> Subscription: ...

    def get_contacts(self, user_id: uuid.UUID) -> list[Contact]: ...

    def create_contact(self, contact: Contact) -> Contact: ...

    def update_contact(self, contact: Contact) -> Contact: ...

    def delete_contact(self, contact_id: uuid.UUID) -> None: ...

    def get_labels(self, user_id: uuid.UUID) -> list[Label]: ...

    def create_label(self, label: Label) -> Label: ...

    def update_label(self, label: Label) -> Label: ...

    def delete_label(self, label_id: uuid.UUID) -> None: ...

    def get_contact_labels(self, contact_id: uuid.UUID) -> list[ContactLabel]: ...

    def get_labels_for_contact(self, contact_id: uuid.UUID) -> list[Label]: ...

    def assign_label_to_contact(self, contact_id: uuid.UUID, label_id: uuid.UUID) -> ContactLabel: ...

    def remove_label_from_contact(self, contact_id: uuid.UUID, label_id: uuid.UUID) -> None: ...

    def close(self) -> None: ...

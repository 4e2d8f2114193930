from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from noteai.core.errors import DuplicateLabelError, RemoteCallError
from noteai.db.models import ContactLabelRow, ContactRow, LabelRow, SubscriptionRow, UserPreferencesRow
from noteai.domain.records import Contact, ContactLabel, Label, Subscription, UserPreferences, utcnow

logger = logging.getLogger(__name__)


class SqlDataClient:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("sql_data_client_failed", extra={"operation": operation})
            raise RemoteCallError(f"Database {operation} failed: {exc}") from exc
        finally:
            db.close()

    # preferences

    def get_user_preferences(self, user_id: uuid.UUID) -> UserPreferences | None:
        with self._session("get_user_preferences") as db:
            row = db.scalar(select(UserPreferencesRow).where(UserPreferencesRow.user_id == user_id))
            return UserPreferences.model_validate(row) if row is not None else None

    def create_user_preferences(
        self, user_id: uuid.UUID, *, has_completed_onboarding: bool = False
    ) -> UserPreferences:
        preferences = UserPreferences(user_id=user_id, has_completed_onboarding=has_completed_onboarding)
        with self._session("create_user_preferences") as db:
            row = UserPreferencesRow(**preferences.model_dump())
            db.add(row)
            db.commit()
            return UserPreferences.model_validate(row)

    def update_user_preferences(self, preferences: UserPreferences) -> UserPreferences:
        with self._session("update_user_preferences") as db:
            row = db.get(UserPreferencesRow, preferences.id)
            if row is None:
                raise RemoteCallError(f"User preferences {preferences.id} not found", status_code=404)
            row.has_completed_onboarding = preferences.has_completed_onboarding
            row.updated_at = preferences.updated_at
            db.commit()
            return UserPreferences.model_validate(row)

    # subscriptions

    def get_subscription(self, user_id: uuid.UUID) -> Subscription | None:
        with self._session("get_subscription") as db:
            row = db.scalar(
                select(SubscriptionRow)
                .where(SubscriptionRow.user_id == user_id)
                .order_by(SubscriptionRow.created_at.desc())
                .limit(1)
            )
            return Subscription.model_validate(row) if row is not None else None

    def create_subscription(self, subscription: Subscription) -> Subscription:
        with self._session("create_subscription") as db:
            row = SubscriptionRow(**subscription.model_dump())
            db.add(row)
            db.commit()
            return Subscription.model_validate(row)

    def update_subscription(self, subscription: Subscription) -> Subscription:
        with self._session("update_subscription") as db:
            row = db.get(SubscriptionRow, subscription.id)
            if row is None:
                raise RemoteCallError(f"Subscription {subscription.id} not found", status_code=404)
            for field, value in subscription.model_dump(exclude={"id", "user_id", "created_at"}).items():
                setattr(row, field, value)
            db.commit()
            return Subscription.model_validate(row)

    # contacts

    def get_contacts(self, user_id: uuid.UUID) -> list[Contact]:
        with self._session("get_contacts") as db:
            rows = db.scalars(
                select(ContactRow).where(ContactRow.user_id == user_id).order_by(ContactRow.updated_at.desc())
            ).all()
            return [Contact.model_validate(row) for row in rows]

    def create_contact(self, contact: Contact) -> Contact:
        with self._session("create_contact") as db:
            row = ContactRow(**contact.model_dump())
            db.add(row)
            db.commit()
            return Contact.model_validate(row)

    def update_contact(self, contact: Contact) -> Contact:
        with self._session("update_contact") as db:
            row = db.get(ContactRow, contact.id)
            if row is None:
                raise RemoteCallError(f"Contact {contact.id} not found", status_code=404)
            row.name = contact.name
            row.phone_number = contact.phone_number
            row.email = contact.email
            row.text_description = contact.text_description
            row.updated_at = contact.updated_at or utcnow()
            db.commit()
            return Contact.model_validate(row)

    def delete_contact(self, contact_id: uuid.UUID) -> None:
        with self._session("delete_contact") as db:
            db.execute(delete(ContactLabelRow).where(ContactLabelRow.contact_id == contact_id))
            db.execute(delete(ContactRow).where(ContactRow.id == contact_id))
            db.commit()

    # labels

    def get_labels(self, user_id: uuid.UUID) -> list[Label]:
        with self._session("get_labels") as db:
            rows = db.scalars(select(LabelRow).where(LabelRow.user_id == user_id).order_by(LabelRow.name.asc())).all()
            return [Label.model_validate(row) for row in rows]

    def create_label(self, label: Label) -> Label:
        db = self._session_factory()
        try:
            row = LabelRow(**label.model_dump())
            db.add(row)
            db.commit()
            return Label.model_validate(row)
        except IntegrityError as exc:
            db.rollback()
            logger.warning("label_uniqueness_conflict", extra={"user_id": str(label.user_id), "label_name": label.name})
            raise DuplicateLabelError(f"Label '{label.name}' already exists", status_code=409) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("sql_data_client_failed", extra={"operation": "create_label"})
            raise RemoteCallError(f"Database create_label failed: {exc}") from exc
        finally:
            db.close()

    def update_label(self, label: Label) -> Label:
        with self._session("update_label") as db:
            row = db.get(LabelRow, label.id)
            if row is None:
                raise RemoteCallError(f"Label {label.id} not found", status_code=404)
            row.name = label.name
            db.commit()
            return Label.model_validate(row)

    def delete_label(self, label_id: uuid.UUID) -> None:
        with self._session("delete_label") as db:
            db.execute(delete(ContactLabelRow).where(ContactLabelRow.label_id == label_id))
            db.execute(delete(LabelRow).where(LabelRow.id == label_id))
            db.commit()

    # contact <-> label links

    def get_contact_labels(self, contact_id: uuid.UUID) -> list[ContactLabel]:
        with self._session("get_contact_labels") as db:
            rows = db.scalars(select(ContactLabelRow).where(ContactLabelRow.contact_id == contact_id)).all()
            return [ContactLabel.model_validate(row) for row in rows]

    def get_labels_for_contact(self, contact_id: uuid.UUID) -> list[Label]:
        with self._session("get_labels_for_contact") as db:
            rows = db.scalars(
                select(LabelRow)
                .join(ContactLabelRow, ContactLabelRow.label_id == LabelRow.id)
                .where(ContactLabelRow.contact_id == contact_id)
                .order_by(LabelRow.name.asc())
            ).all()
            return [Label.model_validate(row) for row in rows]

    def assign_label_to_contact(self, contact_id: uuid.UUID, label_id: uuid.UUID) -> ContactLabel:
        link = ContactLabel(contact_id=contact_id, label_id=label_id)
        with self._session("assign_label_to_contact") as db:
            row = ContactLabelRow(**link.model_dump())
            db.add(row)
            db.commit()
            return ContactLabel.model_validate(row)

    def remove_label_from_contact(self, contact_id: uuid.UUID, label_id: uuid.UUID) -> None:
        with self._session("remove_label_from_contact") as db:
            db.execute(
                delete(ContactLabelRow).where(
                    ContactLabelRow.contact_id == contact_id,
                    ContactLabelRow.label_id == label_id,
                )
            )
            db.commit()

    def close(self) -> None:
        # The engine is shared by every session; it is disposed at process exit.
        return None

"""Outbound notifications: one-time codes, participant ids, staff credentials.

``DeliveryNotifier`` sends email over SMTP and text messages over the SMS
provider. ``OutboxNotifier`` keeps every message in memory instead, for tests
and local development. Both raise ``NotificationError`` on delivery failure;
callers decide whether that failure matters.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional

from services.errors import NotificationError
from utils.mailer import mask_email, send_email
from utils.sms import mask_phone, send_sms

logger = logging.getLogger(__name__)

CHANNEL_PHONE = 'phone'
CHANNEL_EMAIL = 'email'


def mask_contact(channel: str, contact: str) -> str:
    if channel == CHANNEL_PHONE:
        return mask_phone(contact)
    return mask_email(contact)

class Notifier(ABC):
    """Delivery interface used by the ledger, verification and staff services."""

    @abstractmethod
    def send_otp(self, channel: str, contact: str, code: str) -> None:
        ...

    @abstractmethod
    def send_unique_id_notice(self, channel: str, contact: str, unique_id: str, first_name: str = '') -> None:
        ...

    @abstractmethod
    def send_credentials(self, email: str, first_name: str, username: str, password: str) -> None:
        ...


class DeliveryNotifier(Notifier):
    def __init__(self, app_name: str = 'Promo Ledger'):
        self.app_name = app_name

    def _deliver(self, channel: str, contact: str, subject: str, body: str) -> None:
        if channel == CHANNEL_PHONE:
            ok, err = send_sms(phone=contact, message=body)
        else:
            ok, err = send_email(to_email=contact, subject=subject, body=body)
        if not ok:
            raise NotificationError(err or 'Delivery failed')

    def send_otp(self, channel: str, contact: str, code: str) -> None:
        subject = f'{self.app_name} verification code'
        body = f'Your verification code is {code}. It expires in a few minutes.'
        self._deliver(channel, contact, subject, body)

    def send_unique_id_notice(self, channel: str, contact: str, unique_id: str, first_name: str = '') -> None:
        greeting = f'Hello {first_name},' if first_name else 'Hello,'
        subject = f'Welcome to {self.app_name}'
        body = (
            f'{greeting}\n\n'
            f'Your registration is complete. Your participant ID is {unique_id}.\n'
            'Show this ID at the counter to collect points and redeem prizes.'
        )
        self._deliver(channel, contact, subject, body)

    def send_credentials(self, email: str, first_name: str, username: str, password: str) -> None:
        subject = f'{self.app_name} staff account'
        body = (
            f'Hello {first_name},\n\n'
            'Your staff account credentials:\n'
            f'  Username: {username}\n'
            f'  Password: {password}\n\n'
            'Please keep them private.'
        )
        self._deliver(CHANNEL_EMAIL, email, subject, body)


class OutboxNotifier(Notifier):
    """Keeps messages in memory. ``fail_with`` simulates a broken channel."""

    def __init__(self):
        self.messages: list[dict] = []
        self.fail_with: Optional[str] = None
        self._lock = threading.Lock()

    def _push(self, kind: str, channel: str, contact: str, **payload) -> None:
        if self.fail_with:
            raise NotificationError(self.fail_with)
        with self._lock:
            self.messages.append({'kind': kind, 'channel': channel, 'contact': contact, **payload})
        logger.info('Outbox %s via %s to %s', kind, channel, mask_contact(channel, contact))

    def send_otp(self, channel: str, contact: str, code: str) -> None:
        self._push('otp', channel, contact, code=code)

    def send_unique_id_notice(self, channel: str, contact: str, unique_id: str, first_name: str = '') -> None:
        self._push('unique_id', channel, contact, unique_id=unique_id, first_name=first_name)

    def send_credentials(self, email: str, first_name: str, username: str, password: str) -> None:
        self._push('credentials', CHANNEL_EMAIL, email, username=username, password=password)

    def last(self, kind: Optional[str] = None, contact: Optional[str] = None) -> Optional[dict]:
        with self._lock:
            for message in reversed(self.messages):
                if kind and message['kind'] != kind:
                    continue
                if contact and message['contact'] != contact:
                    continue
                return message
        return None

    def clear(self) -> None:
        with self._lock:
            self.messages.clear()


def build_notifier(app) -> Notifier:
    backend = (app.config.get('NOTIFICATION_BACKEND') or 'smtp').strip().lower()
    if backend == 'outbox':
        return OutboxNotifier()
    return DeliveryNotifier(app_name=app.config.get('APP_NAME', 'Promo Ledger'))

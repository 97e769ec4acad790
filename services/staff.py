"""Staff accounts: login, email-verified creation, password reset, activation.

Password resets and deactivations revoke every token the staff member holds,
after the change has committed.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from extensions import db
from models.staff import StaffRole, StaffStatus, StaffUser
from models.transaction_log import LogType
from services import transaction_log
from services.cache_store import CacheStore
from services.credentials import generate_strong_password, generate_username
from services.errors import (
    AuthError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    NotificationError,
    StateError,
    ValidationError,
)
from services.notifications import CHANNEL_EMAIL, Notifier, mask_email
from services.otp import OneTimeCodes
from services.tokens import RevocationStore, issue_token

logger = logging.getLogger(__name__)


class StaffService:
    def __init__(
        self,
        store: CacheStore,
        codes: OneTimeCodes,
        revocations: RevocationStore,
        notifier: Notifier,
        verified_ttl_seconds: int = 600,
    ):
        self.store = store
        self.codes = codes
        self.revocations = revocations
        self.notifier = notifier
        self.verified_ttl_seconds = verified_ttl_seconds

    # Authentication

    def authenticate(self, username: str, password: str) -> tuple[str, StaffUser]:
        """Returns (token, staff). Raises AuthError or ForbiddenError."""
        staff = StaffUser.query.filter_by(username=(username or '').strip()).first()
        if staff is None:
            raise AuthError('Invalid username or password')
        if not staff.is_active:
            raise ForbiddenError('Account is disabled')
        if not staff.check_password(password or ''):
            logger.warning('Failed login for %s', staff.username)
            raise AuthError('Invalid username or password')

        token = issue_token(staff.id, staff.username, staff.role)
        logger.info('Staff %s logged in', staff.username)
        return token, staff

    def logout(self, staff_id: int) -> None:
        self.revocations.revoke(staff_id)

    # Email verification before account creation

    @staticmethod
    def _verified_key(email: str) -> str:
        return f'staff:verified:{email.lower()}'

    def _email_taken(self, email: str) -> bool:
        return StaffUser.query.filter(db.func.lower(StaffUser.email) == email.lower()).first() is not None

    def request_verification(self, email: str) -> None:
        if self._email_taken(email):
            raise ConflictError('Email already registered')
        self.codes.issue(CHANNEL_EMAIL, email)

    def verify_email(self, email: str, code: str) -> None:
        self.codes.verify(CHANNEL_EMAIL, email, code)
        self.store.set(self._verified_key(email), '1', self.verified_ttl_seconds)
        logger.info('Staff email %s verified', mask_email(email))

    def is_email_verified(self, email: str) -> bool:
        return self.store.get(self._verified_key(email)) is not None

    # Lifecycle

    def _username_taken(self, candidate: str) -> bool:
        return db.session.query(StaffUser.id).filter_by(username=candidate).first() is not None

    def create_staff(
        self,
        first_name: str,
        last_name: str,
        email: str,
        role: str,
        acting_staff_id: Optional[int],
    ) -> StaffUser:
        try:
            role = StaffRole(role).value
        except ValueError:
            raise ValidationError('Role must be SUPER_ADMIN or STAFF')

        if self._email_taken(email):
            raise ConflictError('Email already registered')
        if not self.is_email_verified(email):
            raise StateError('Email must be verified before creating the account')

        password = generate_strong_password()
        try:
            with transaction_log.atomic():
                username = generate_username(first_name, last_name, self._username_taken)
                staff = StaffUser(
                    username=username,
                    first_name=first_name,
                    last_name=last_name,
                    email=email,
                    password=password,
                    role=role,
                )
                db.session.add(staff)
                db.session.flush()

                transaction_log.record(
                    LogType.STAFF_CREATE,
                    staff_id=acting_staff_id,
                    note=f'Created staff: {username} ({email})',
                )
        except IntegrityError as e:
            raise ConflictError('Username or email already exists') from e

        self.store.delete(self._verified_key(email))
        logger.info('Created staff %s with role %s', staff.username, staff.role)
        self._send_credentials(staff, password)
        return staff

    def _send_credentials(self, staff: StaffUser, password: str) -> None:
        try:
            self.notifier.send_credentials(staff.email, staff.first_name, staff.username, password)
        except NotificationError as e:
            logger.warning('Credentials email to %s failed: %s', mask_email(staff.email), e)

    def _lock_staff_row(self, staff_id: int) -> StaffUser:
        staff = (
            StaffUser.query.filter_by(id=staff_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
        if staff is None:
            raise NotFoundError('Staff user not found')
        return staff

    def reset_password(self, staff_id: int, acting_staff_id: Optional[int]) -> StaffUser:
        password = generate_strong_password()
        with transaction_log.atomic():
            staff = self._lock_staff_row(staff_id)
            staff.set_password(password)
            transaction_log.record(
                LogType.RESET_PASSWORD,
                staff_id=acting_staff_id,
                note=f'Reset password for staff ID: {staff_id}',
            )

        self.revocations.revoke(staff_id)
        self._send_credentials(staff, password)
        return staff

    def set_status(self, staff_id: int, status: str, acting_staff_id: Optional[int]) -> StaffUser:
        try:
            status = StaffStatus(status).value
        except ValueError:
            raise ValidationError('Status must be ACTIVE or DISABLED')

        disabling = status == StaffStatus.DISABLED.value
        if disabling and staff_id == acting_staff_id:
            raise ForbiddenError('You cannot deactivate your own account')

        with transaction_log.atomic():
            staff = self._lock_staff_row(staff_id)
            staff.status = status
            transaction_log.record(
                LogType.STAFF_DEACTIVATE if disabling else LogType.STAFF_ACTIVATE,
                staff_id=acting_staff_id,
                note=f'{"Deactivated" if disabling else "Activated"} staff ID: {staff_id}',
            )

        if disabling:
            self.revocations.revoke(staff_id)
        logger.info('Staff %s set to %s', staff_id, status)
        return staff

    def list(self) -> list[StaffUser]:
        return StaffUser.query.order_by(StaffUser.created_at.desc(), StaffUser.id.desc()).all()

    def get(self, staff_id: int) -> StaffUser:
        staff = db.session.get(StaffUser, staff_id)
        if staff is None:
            raise NotFoundError('Staff user not found')
        return staff

"""Service wiring.

Services are built once per app by ``init_services`` and reached from request
code through ``get_services()``. The cache store and notifier can be injected,
which is how the tests swap in the in-memory store and the outbox.
"""
from dataclasses import dataclass
from typing import Optional

from flask import current_app

from services.cache_store import CacheStore, build_cache_store
from services.notifications import Notifier, build_notifier
from services.otp import OneTimeCodes
from services.participants import ParticipantLedger
from services.prizes import PrizeCatalogue
from services.redemption import PrizeRedemptionEngine
from services.registration import RegistrationWorkflow
from services.staff import StaffService
from services.tokens import TOKEN_LIFETIME_SECONDS, RevocationStore
from services.verification import VerificationSessionManager

_EXTENSION_KEY = 'promo_services'


@dataclass
class ServiceRegistry:
    cache: CacheStore
    notifier: Notifier
    revocations: RevocationStore
    participant_codes: OneTimeCodes
    staff_codes: OneTimeCodes
    sessions: VerificationSessionManager
    ledger: ParticipantLedger
    prizes: PrizeCatalogue
    redemption: PrizeRedemptionEngine
    registration: RegistrationWorkflow
    staff: StaffService


def _token_lifetime_seconds(app) -> int:
    expires = app.config.get('JWT_ACCESS_TOKEN_EXPIRES')
    if hasattr(expires, 'total_seconds'):
        return int(expires.total_seconds())
    return TOKEN_LIFETIME_SECONDS


def init_services(app, cache: Optional[CacheStore] = None, notifier: Optional[Notifier] = None) -> ServiceRegistry:
    cache = cache or build_cache_store(app)
    notifier = notifier or build_notifier(app)

    otp_ttl = int(app.config.get('OTP_EXPIRY_MINUTES', 10)) * 60
    code_settings = dict(
        ttl_seconds=otp_ttl,
        max_attempts=int(app.config.get('OTP_MAX_ATTEMPTS', 3)),
        resend_cooldown_seconds=int(app.config.get('OTP_RESEND_COOLDOWN_SECONDS', 60)),
        fixed_code=app.config.get('OTP_FIXED_CODE') or None,
    )
    participant_codes = OneTimeCodes(cache, notifier, namespace='participant', **code_settings)
    staff_codes = OneTimeCodes(cache, notifier, namespace='staff', **code_settings)

    revocations = RevocationStore(cache, max_lifetime_seconds=_token_lifetime_seconds(app))
    sessions = VerificationSessionManager(cache, participant_codes, ttl_seconds=otp_ttl)
    ledger = ParticipantLedger(notifier, search_limit=int(app.config.get('SEARCH_RESULT_LIMIT', 20)))

    registry = ServiceRegistry(
        cache=cache,
        notifier=notifier,
        revocations=revocations,
        participant_codes=participant_codes,
        staff_codes=staff_codes,
        sessions=sessions,
        ledger=ledger,
        prizes=PrizeCatalogue(),
        redemption=PrizeRedemptionEngine(),
        registration=RegistrationWorkflow(sessions, ledger),
        staff=StaffService(cache, staff_codes, revocations, notifier, verified_ttl_seconds=otp_ttl),
    )
    app.extensions[_EXTENSION_KEY] = registry
    return registry


def get_services() -> ServiceRegistry:
    return current_app.extensions[_EXTENSION_KEY]

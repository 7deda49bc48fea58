"""Admission gate: credential checks and quota reservation.

A request is admitted either by API key or by demo identity. Both variants
are ``QuotaSubject``s; the gate reserves one unit of quota atomically at
admission, and the pipeline either keeps the reservation (usage commit) or
gives it back (release) once the request has finished.
"""

from __future__ import annotations

import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import (
    CredentialInactive,
    InvalidCredential,
    QuotaExceeded,
    StoreUnavailable,
    SummarizerGatewayError,
)
from ..utils.auth import APIKeyManager, effective_limit, key_preview
from ..utils.demo import DemoUsageManager
from ..utils.logging import get_logger, mask_email

logger = logging.getLogger(__name__)
events = get_logger("summarizer_gateway.admission")


class IdentityKind(str, enum.Enum):
    API_KEY = "api_key"
    DEMO = "demo"


@dataclass(frozen=True)
class DemoIdentity:
    """An end user whose sign-in was verified outside the gateway.

    ``trusted_via`` records which check vouched for the email: the upstream
    session layer's header, or a signed demo token.
    """

    email: str
    trusted_via: str


@dataclass(frozen=True)
class CredentialContext:
    api_key: Optional[str] = None
    demo_identity: Optional[DemoIdentity] = None


@dataclass(frozen=True)
class Admitted:
    identity_kind: IdentityKind
    identity_ref: str
    current_usage: int
    limit: int

    @property
    def log_ref(self) -> str:
        """``identity_ref`` with demo emails masked."""
        if self.identity_kind is IdentityKind.DEMO:
            return mask_email(self.identity_ref)
        return self.identity_ref


@dataclass(frozen=True)
class Rejected:
    error: SummarizerGatewayError

    @property
    def reason(self) -> str:
        return self.error.reason

    @property
    def status(self) -> int:
        return self.error.status_code


AdmissionDecision = Union[Admitted, Rejected]


class QuotaSubject(ABC):
    """Something that owns a usage counter with a ceiling."""

    kind: IdentityKind

    @property
    @abstractmethod
    def identity_ref(self) -> str: ...

    @property
    @abstractmethod
    def current_usage(self) -> int: ...

    @property
    @abstractmethod
    def limit(self) -> int: ...

    @abstractmethod
    def try_consume(self) -> bool:
        """Increment usage unless it would pass the limit; report success."""

    @abstractmethod
    def refresh(self) -> int:
        """Re-read usage from the store."""


class ApiKeySubject(QuotaSubject):
    kind = IdentityKind.API_KEY

    def __init__(self, manager: APIKeyManager, key_id: str, usage: int, limit: int):
        self._manager = manager
        self._key_id = key_id
        self._usage = usage
        self._limit = limit

    @property
    def identity_ref(self) -> str:
        return self._key_id

    @property
    def current_usage(self) -> int:
        return self._usage

    @property
    def limit(self) -> int:
        return self._limit

    def try_consume(self) -> bool:
        if not self._manager.try_consume(self._key_id):
            return False
        self._usage += 1
        return True

    def refresh(self) -> int:
        self._usage = self._manager.current_usage(self._key_id)
        return self._usage


class DemoSubject(QuotaSubject):
    kind = IdentityKind.DEMO

    def __init__(self, manager: DemoUsageManager, email: str, usage: int, limit: int):
        self._manager = manager
        self._email = email
        self._usage = usage
        self._limit = limit

    @property
    def identity_ref(self) -> str:
        return self._email

    @property
    def current_usage(self) -> int:
        return self._usage

    @property
    def limit(self) -> int:
        return self._limit

    def try_consume(self) -> bool:
        if not self._manager.try_consume(self._email, self._limit):
            return False
        self._usage += 1
        return True

    def refresh(self) -> int:
        self._usage = self._manager.current_usage(self._email)
        return self._usage


class AdmissionGate:
    """Decides whether a request may proceed and reserves its quota."""

    def __init__(self, db: Session, redis_client=None, demo_limit: Optional[int] = None):
        self.keys = APIKeyManager(db, redis_client)
        self.demos = DemoUsageManager(db)
        self.demo_limit = demo_limit if demo_limit is not None else settings.demo_request_limit

    def admit(self, credentials: CredentialContext) -> AdmissionDecision:
        try:
            subject = self._resolve_subject(credentials)
            decision = self._reserve(subject)
        except SummarizerGatewayError as e:
            events.info("admission_rejected", reason=e.reason, status=e.status_code)
            return Rejected(e)
        except SQLAlchemyError as e:
            logger.error(f"Credential store error during admission: {e}")
            return Rejected(StoreUnavailable())

        events.info(
            "admission_granted",
            kind=decision.identity_kind.value,
            ref=decision.identity_ref,
            usage=decision.current_usage,
            limit=decision.limit,
        )
        return decision

    def release(self, admitted: Admitted) -> None:
        """Give back the unit reserved for a request that failed."""
        try:
            if admitted.identity_kind is IdentityKind.API_KEY:
                self.keys.release(admitted.identity_ref)
            else:
                self.demos.release(admitted.identity_ref)
        except SQLAlchemyError as e:
            logger.error(f"Failed to release quota for {admitted.log_ref}: {e}")
            return

        events.info(
            "quota_released",
            kind=admitted.identity_kind.value,
            ref=admitted.identity_ref,
        )

    def _resolve_subject(self, credentials: CredentialContext) -> QuotaSubject:
        api_key = (credentials.api_key or "").strip()

        if api_key:
            record = self.keys.verify_api_key(api_key)
            if record is None:
                logger.info(f"No matching API key found for {key_preview(api_key)}")
                raise InvalidCredential()
            if not record.is_active:
                raise CredentialInactive()
            return ApiKeySubject(
                self.keys, record.id, record.usage_count or 0, effective_limit(record)
            )

        if credentials.demo_identity is not None:
            email = credentials.demo_identity.email
            record = self.demos.get_or_create(email)
            return DemoSubject(self.demos, email, record.demo_usage or 0, self.demo_limit)

        raise InvalidCredential()

    def _reserve(self, subject: QuotaSubject) -> Admitted:
        if subject.current_usage >= subject.limit:
            raise QuotaExceeded(subject.current_usage, subject.limit)

        if not subject.try_consume():
            # Lost the race against a concurrent request (or the key was
            # deactivated in between)
            raise QuotaExceeded(subject.refresh(), subject.limit)

        return Admitted(
            identity_kind=subject.kind,
            identity_ref=subject.identity_ref,
            current_usage=subject.current_usage,
            limit=subject.limit,
        )

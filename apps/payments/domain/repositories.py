"""Repository interface for payments."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, List, Optional
from uuid import UUID

from apps.payments.domain.entities import Payment, PaymentStats, PaymentStatus, PaymentType


@dataclass(frozen=True)
class PaymentQuery:
    """Filter for listing and stats. ``party_id`` matches payer or recipient."""
    party_id: Optional[UUID] = None
    booking_id: Optional[UUID] = None
    status: Optional[PaymentStatus] = None
    type: Optional[PaymentType] = None


class PaymentRepository(ABC):

    @abstractmethod
    def get(self, payment_id: UUID) -> Payment:
        """Raises NotFoundError when the payment does not exist."""

    @abstractmethod
    def get_by_txn_ref(self, txn_ref: str) -> Optional[Payment]:
        """
        The payment that issued ``txn_ref``. References replaced by a later
        checkout stay resolvable, since their URLs can still be paid.
        """

    @abstractmethod
    def find_for_booking(
        self,
        booking_id: UUID,
        payment_type: Optional[PaymentType] = None,
        statuses: Optional[Iterable[PaymentStatus]] = None,
    ) -> List[Payment]:
        """Oldest first."""

    @abstractmethod
    def add(self, payment: Payment) -> None:
        ...

    @abstractmethod
    def save(self, payment: Payment, expected_statuses: Iterable[PaymentStatus]) -> bool:
        """
        Persist ``payment`` only if the stored status is one of
        ``expected_statuses``. Returns whether the row was written.
        """

    @abstractmethod
    def list(self, query: PaymentQuery) -> List[Payment]:
        """Newest first."""

    @abstractmethod
    def stats(self, query: PaymentQuery) -> PaymentStats:
        ...

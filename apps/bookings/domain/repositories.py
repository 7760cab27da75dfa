"""
Repository interfaces for the booking domain.

Services receive these through their constructors; the Django
implementations live in ``apps.bookings.infrastructure.repositories``.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, List, Optional
from uuid import UUID

from shared.domain.value_objects import DateRange
from apps.bookings.domain.entities import Booking, BookingStatus, Room, UserContact


class BookingRepository(ABC):

    @abstractmethod
    def get(self, booking_id: UUID) -> Booking:
        """Raises NotFoundError when the booking does not exist."""

    @abstractmethod
    def add(self, booking: Booking) -> None:
        ...

    @abstractmethod
    def save(self, booking: Booking, expected_status: BookingStatus) -> bool:
        """
        Persist ``booking`` only if the stored row still has
        ``expected_status``. Returns False when another writer got there first.
        """

    @abstractmethod
    def find_blocking(self, room_id: UUID, stay: DateRange) -> List[Booking]:
        """Non-terminal bookings of the room overlapping ``stay`` (ends inclusive)."""

    @abstractmethod
    def list(
        self,
        party_id: Optional[UUID] = None,
        statuses: Optional[Iterable[BookingStatus]] = None,
        check_in_before: Optional[date] = None,
    ) -> List[Booking]:
        """Bookings where ``party_id`` is tenant or landlord (all when None)."""


class RoomRepository(ABC):

    @abstractmethod
    def get(self, room_id: UUID) -> Room:
        """Raises NotFoundError when the room does not exist."""


class UserDirectory(ABC):

    @abstractmethod
    def get(self, user_id: UUID) -> UserContact:
        """Raises NotFoundError when the user does not exist."""

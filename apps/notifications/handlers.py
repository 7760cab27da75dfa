"""
Event handlers that notify tenants and landlords.

They run after the booking/payment transaction committed. The message bus
contains their errors; the sinks below contain their own.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from shared.application.message_bus import MessageBus
from shared.domain.value_objects import Money
from apps.bookings.domain.entities import Booking, BookingStatus, CancelledBy, Room, UserContact
from apps.bookings.domain.events import BookingCreated, BookingStatusChanged
from apps.bookings.domain.repositories import BookingRepository, RoomRepository, UserDirectory
from apps.payments.domain.events import PaymentCompleted

logger = logging.getLogger(__name__)

# Notification types
BOOKING_REQUEST = 'booking_request'
BOOKING_CONFIRMED = 'booking_confirmed'
BOOKING_CANCELLED = 'booking_cancelled'
PAYMENT_RECEIVED = 'payment_received'
SYSTEM = 'system'

STATUS_LABELS = {
    BookingStatus.PENDING: 'chờ xác nhận',
    BookingStatus.CONFIRMED: 'đã xác nhận',
    BookingStatus.DEPOSIT_PAID: 'đã đặt cọc',
    BookingStatus.ACTIVE: 'đang thuê',
    BookingStatus.COMPLETED: 'hoàn thành',
    BookingStatus.CANCELLED: 'đã hủy',
    BookingStatus.EXPIRED: 'hết hạn',
}

PAYMENT_TYPE_LABELS = {
    'deposit': 'Đặt cọc',
    'monthly_rent': 'Tiền thuê tháng',
    'utilities': 'Điện nước',
    'penalty': 'Tiền phạt',
    'refund': 'Hoàn tiền',
}

NotifyFn = Callable[..., bool]
EmailFn = Callable[[str, str, dict], bool]


def _date(value) -> str:
    return value.strftime('%d/%m/%Y')


class NotificationHandlers:
    """
    Turns booking and payment events into in-app notifications and emails.

    ``notify(recipient_id, type, title, message, data)`` and
    ``email(address, template_name, template_data)`` are the two sinks.
    """

    def __init__(
        self,
        bookings: BookingRepository,
        rooms: RoomRepository,
        users: UserDirectory,
        notify: NotifyFn,
        email: EmailFn,
    ):
        self._bookings = bookings
        self._rooms = rooms
        self._users = users
        self._notify = notify
        self._email = email

    def register(self, bus: MessageBus) -> None:
        bus.register_event_handler(BookingCreated, self.on_booking_created)
        bus.register_event_handler(BookingStatusChanged, self.on_booking_status_changed)
        bus.register_event_handler(PaymentCompleted, self.on_payment_completed)

    # ===== Booking created =====

    def on_booking_created(self, event: BookingCreated) -> None:
        logger.info(f"Notifying parties of new booking {event.booking_id}")
        booking = self._bookings.get(event.booking_id)
        room = self._rooms.get(booking.room_id)
        tenant = self._users.get(booking.tenant_id)
        landlord = self._users.get(booking.landlord_id)
        data = self._booking_data(booking)

        self._notify(
            tenant.id,
            BOOKING_REQUEST,
            'Yêu cầu đặt phòng đã được gửi',
            f'Yêu cầu đặt phòng "{room.title}" đã được gửi đến chủ trọ',
            data,
        )
        self._notify(
            landlord.id,
            BOOKING_REQUEST,
            'Có yêu cầu đặt phòng mới',
            f'Bạn có yêu cầu đặt phòng mới từ {tenant.full_name}',
            data,
        )
        self._email(tenant.email, 'bookingConfirmation', self._confirmation_email(booking, room, tenant))
        self._email(landlord.email, 'bookingNotificationToLandlord', {
            'landlordName': landlord.full_name,
            'roomTitle': room.title,
            'roomAddress': room.address.format(),
            'tenantName': tenant.full_name,
            'tenantPhone': tenant.phone,
            'tenantEmail': tenant.email,
            'checkInDate': _date(booking.stay.check_in),
            'checkOutDate': _date(booking.stay.check_out),
            'duration': booking.duration_months,
            'numberOfOccupants': booking.occupants,
        })

    # ===== Status changes =====

    def on_booking_status_changed(self, event: BookingStatusChanged) -> None:
        booking = self._bookings.get(event.booking_id)
        room = self._rooms.get(booking.room_id)
        status = BookingStatus(event.status)
        data = self._booking_data(booking, reason=event.reason)

        if status == BookingStatus.CONFIRMED:
            by_landlord = event.changed_by == CancelledBy.LANDLORD.value
            who = 'được chủ trọ xác nhận' if by_landlord else 'được xác nhận'
            self._notify(
                booking.tenant_id,
                BOOKING_CONFIRMED,
                'Booking đã được xác nhận',
                f'Booking phòng "{room.title}" đã {who}',
                data,
            )
            tenant = self._users.get(booking.tenant_id)
            self._email(tenant.email, 'bookingConfirmation', self._confirmation_email(booking, room, tenant))
        elif status == BookingStatus.DEPOSIT_PAID:
            self._notify(
                booking.tenant_id,
                PAYMENT_RECEIVED,
                'Thanh toán đã được xác nhận',
                f'Chủ trọ đã xác nhận thanh toán đặt cọc cho phòng "{room.title}"',
                data,
            )
        elif status == BookingStatus.CANCELLED:
            self._notify_cancelled(booking, room, event.changed_by, data)
        elif status == BookingStatus.EXPIRED:
            self._notify(
                booking.tenant_id,
                BOOKING_CANCELLED,
                'Booking đã hết hạn',
                f'Booking phòng "{room.title}" đã hết hạn do quá ngày nhận phòng',
                data,
            )
        else:
            self._notify(
                booking.tenant_id,
                SYSTEM,
                'Cập nhật trạng thái booking',
                f'Booking phòng "{room.title}" đã chuyển sang trạng thái {STATUS_LABELS[status]}',
                data,
            )

    def _notify_cancelled(self, booking: Booking, room: Room, changed_by: str, data: dict) -> None:
        if changed_by == CancelledBy.TENANT.value:
            self._notify(
                booking.landlord_id,
                BOOKING_CANCELLED,
                'Booking đã bị hủy',
                f'Booking phòng "{room.title}" đã bị người thuê hủy',
                data,
            )
            return
        who = ' chủ trọ' if changed_by == CancelledBy.LANDLORD.value else ''
        self._notify(
            booking.tenant_id,
            BOOKING_CANCELLED,
            'Booking đã bị hủy',
            f'Booking phòng "{room.title}" đã bị{who} hủy',
            data,
        )

    # ===== Payments =====

    def on_payment_completed(self, event: PaymentCompleted) -> None:
        logger.info(f"Notifying payment {event.payment_id} completion ({event.source})")
        amount = Money(event.amount, event.currency).format_vi()
        data = {
            'bookingId': str(event.booking_id),
            'paymentId': str(event.payment_id),
            'transactionId': event.transaction_id,
            'amount': str(event.amount),
        }

        if event.source == 'manual':
            self._notify(
                event.payer_id,
                PAYMENT_RECEIVED,
                'Thanh toán đã được xác nhận',
                f'Thanh toán {amount} đã được xác nhận',
                data,
            )
            return

        payer = self._users.get(event.payer_id)
        recipient = self._users.get(event.recipient_id)
        self._notify(
            payer.id,
            PAYMENT_RECEIVED,
            'Thanh toán thành công',
            f'Thanh toán {amount} đã được xử lý thành công',
            data,
        )
        self._notify(
            recipient.id,
            PAYMENT_RECEIVED,
            'Nhận thanh toán',
            f'Bạn đã nhận thanh toán {amount} từ {payer.full_name}',
            data,
        )
        email_data = {
            'payerName': payer.full_name,
            'transactionId': event.transaction_id,
            'paymentType': PAYMENT_TYPE_LABELS.get(event.payment_type, event.payment_type),
            'amount': amount,
            'paymentMethod': 'VNPay',
            'paidAt': event.occurred_at.strftime('%d/%m/%Y %H:%M'),
        }
        self._email(payer.email, 'paymentConfirmation', email_data)
        self._email(recipient.email, 'paymentConfirmation', email_data)

    # ===== Helpers =====

    def _booking_data(self, booking: Booking, reason: Optional[str] = None) -> dict[str, Any]:
        data: dict[str, Any] = {
            'bookingId': str(booking.id),
            'contractNumber': booking.contract_number,
            'status': booking.status.value,
        }
        if reason:
            data['reason'] = reason
        return data

    def _confirmation_email(self, booking: Booking, room: Room, tenant: UserContact) -> dict[str, Any]:
        return {
            'tenantName': tenant.full_name,
            'roomTitle': room.title,
            'roomAddress': room.address.format(),
            'checkInDate': _date(booking.stay.check_in),
            'checkOutDate': _date(booking.stay.check_out),
            'duration': booking.duration_months,
            'deposit': booking.pricing.deposit.format_vi(),
            'monthlyRent': booking.pricing.monthly_rent.format_vi(),
        }

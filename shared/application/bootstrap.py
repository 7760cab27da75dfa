"""
Composition root

Wires the Django repositories, the message bus and the notification sinks
into the booking and payment services. Views and tasks call
``build_services()``; tests build their own graph from in-memory fakes.
"""

from dataclasses import dataclass
from functools import lru_cache

from django.conf import settings

from shared.application.message_bus import MessageBus
from shared.application.uow import DjangoUnitOfWork


@dataclass(frozen=True)
class Services:
    bus: MessageBus
    payments: 'PaymentRecordManager'
    state_machine: 'BookingStateMachine'
    checkout: 'PaymentCheckout'
    reconciler: 'CallbackReconciler'


@lru_cache(maxsize=1)
def build_services() -> Services:
    from apps.bookings.application.state_machine import BookingStateMachine
    from apps.bookings.infrastructure.repositories import (
        DjangoBookingRepository,
        DjangoRoomRepository,
        DjangoUserDirectory,
    )
    from apps.notifications.handlers import NotificationHandlers
    from apps.notifications.services import create_in_app_notification, queue_templated_email
    from apps.payments.application.checkout import PaymentCheckout
    from apps.payments.application.payment_manager import PaymentRecordManager
    from apps.payments.application.reconciler import CallbackReconciler
    from apps.payments.gateway import VNPayGateway
    from apps.payments.infrastructure.repositories import DjangoPaymentRepository

    bookings = DjangoBookingRepository()
    rooms = DjangoRoomRepository()
    users = DjangoUserDirectory()
    payment_repo = DjangoPaymentRepository()

    bus = MessageBus()
    NotificationHandlers(
        bookings,
        rooms,
        users,
        notify=create_in_app_notification,
        email=queue_templated_email,
    ).register(bus)

    def uow_factory():
        return DjangoUnitOfWork(bus)

    gateway = VNPayGateway.from_settings()
    payments = PaymentRecordManager(payment_repo, bookings)
    state_machine = BookingStateMachine(bookings, rooms, payments, uow_factory)
    return Services(
        bus=bus,
        payments=payments,
        state_machine=state_machine,
        checkout=PaymentCheckout(gateway, payments, bookings, rooms),
        reconciler=CallbackReconciler(
            gateway,
            payments,
            state_machine,
            bookings,
            rooms,
            users,
            uow_factory,
            client_url=getattr(settings, 'CLIENT_URL', ''),
        ),
    )

"""API views for the booking domain.

Reads go straight to the ORM; every state change goes through the
booking state machine.
"""

from __future__ import annotations

from django.db.models import Q  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from shared.application.bootstrap import build_services
from apps.bookings.application.state_machine import CreateBookingCommand, SetStatusCommand
from apps.bookings.domain import rules
from apps.bookings.domain.entities import BookingStatus
from apps.users.services import actor_for
from .filters import BookingFilterSet
from .models import Booking
from .serializers import (
    BookingCancelSerializer,
    BookingCreateSerializer,
    BookingSerializer,
    BookingStatusUpdateSerializer,
)


class BookingViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Create bookings and move them through their lifecycle."""

    queryset = Booking.objects.select_related("room", "tenant", "landlord").all()
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_class = BookingFilterSet
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if actor_for(user).is_admin:
            return qs
        return qs.filter(Q(tenant=user) | Q(landlord=user))

    def get_serializer_class(self):  # type: ignore
        if self.action == "create":
            return BookingCreateSerializer
        return BookingSerializer

    def _booking_response(self, booking_id, http_status=status.HTTP_200_OK) -> Response:
        row = Booking.objects.select_related("room", "tenant", "landlord").get(pk=booking_id)
        return Response(BookingSerializer(row, context=self.get_serializer_context()).data, status=http_status)

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        booking = build_services().state_machine.create(CreateBookingCommand(
            room_id=data["room"],
            actor=actor_for(request.user),
            check_in=data["check_in"],
            check_out=data["check_out"],
            occupants=data["occupants"],
            duration_months=data.get("duration_months"),
            monthly_rent=data.get("monthly_rent"),
            deposit=data.get("deposit"),
            utilities=data.get("utilities"),
            tenant_notes=data.get("tenant_notes", ""),
        ))
        return self._booking_response(booking.id, status.HTTP_201_CREATED)

    @action(detail=True, methods=["get", "put"], url_path="status", url_name="status")
    def booking_status(self, request, pk=None):  # type: ignore
        services = build_services()
        actor = actor_for(request.user)

        if request.method == "GET":
            booking = services.state_machine.get(pk, actor)
            deposit = services.payments.deposit_for(booking.id)
            return Response({
                "status": booking.status.value,
                "canBeCancelled": rules.can_be_cancelled(booking),
                "canBeConfirmed": rules.can_be_confirmed(booking),
                "depositStatus": booking.deposit.status.value,
                "paymentStatus": deposit.status.value if deposit else None,
            })

        serializer = BookingStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        booking = services.state_machine.set_status(SetStatusCommand(
            booking_id=pk,
            status=BookingStatus(data["status"]),
            actor=actor,
            reason=data["reason"],
            payment_method=data["payment_method"],
            transaction_ref=data["transaction_ref"],
            payment_source=data["payment_source"],
            description=data["description"],
        ))
        return self._booking_response(booking.id)

    @action(detail=True, methods=["put"])
    def confirm(self, request, pk=None):  # type: ignore
        booking = build_services().state_machine.confirm(pk, actor_for(request.user))
        return self._booking_response(booking.id)

    @action(detail=True, methods=["put"])
    def cancel(self, request, pk=None):  # type: ignore
        serializer = BookingCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = build_services().state_machine.cancel(
            pk,
            actor_for(request.user),
            serializer.validated_data["reason"],
        )
        return self._booking_response(booking.id)

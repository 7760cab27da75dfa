"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.users.serializers import UserShortSerializer
from .models import Booking


class BookingCreateSerializer(serializers.Serializer):
    """Booking request from a tenant; prices default to the room's."""

    room = serializers.UUIDField()
    check_in = serializers.DateField()
    check_out = serializers.DateField()
    occupants = serializers.IntegerField(min_value=1, default=1)
    duration_months = serializers.IntegerField(min_value=1, required=False)
    monthly_rent = serializers.DecimalField(max_digits=14, decimal_places=0, min_value=0, required=False)
    deposit = serializers.DecimalField(max_digits=14, decimal_places=0, min_value=0, required=False)
    utilities = serializers.DecimalField(max_digits=14, decimal_places=0, min_value=0, required=False)
    tenant_notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):  # type: ignore
        if attrs["check_in"] >= attrs["check_out"]:
            raise serializers.ValidationError({"check_out": "Ngày trả phòng phải sau ngày nhận phòng."})
        return attrs


class BookingStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Booking.Status.choices)
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    payment_method = serializers.CharField(required=False, allow_blank=True, default="")
    transaction_ref = serializers.CharField(required=False, allow_blank=True, default="")
    payment_source = serializers.CharField(required=False, allow_blank=True, default="")
    description = serializers.CharField(required=False, allow_blank=True, default="")


class BookingCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class BookingSerializer(serializers.ModelSerializer):
    """Booking as returned by the API."""

    room_id = serializers.ReadOnlyField(source="room.id")
    room_title = serializers.ReadOnlyField(source="room.title")
    tenant = UserShortSerializer(read_only=True)
    landlord = UserShortSerializer(read_only=True)
    pricing = serializers.SerializerMethodField()
    deposit_payment = serializers.SerializerMethodField()
    cancellation = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "contract_number",
            "room_id",
            "room_title",
            "tenant",
            "landlord",
            "check_in",
            "check_out",
            "duration_months",
            "occupants",
            "status",
            "pricing",
            "deposit_payment",
            "payment_schedule",
            "cancellation",
            "tenant_notes",
            "landlord_notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_pricing(self, obj: Booking) -> dict:
        return {
            "monthlyRent": obj.monthly_rent,
            "deposit": obj.deposit,
            "utilities": obj.utilities,
            "totalAmount": obj.total_amount,
            "currency": obj.currency,
        }

    def get_deposit_payment(self, obj: Booking) -> dict:
        return {
            "status": obj.deposit_status,
            "amount": obj.deposit_amount,
            "paidAt": obj.deposit_paid_at,
            "paymentMethod": obj.deposit_method,
            "transactionId": obj.deposit_transaction_id,
        }

    def get_cancellation(self, obj: Booking) -> dict | None:
        if not obj.cancelled_by:
            return None
        return {
            "cancelledBy": obj.cancelled_by,
            "cancelledAt": obj.cancelled_at,
            "reason": obj.cancellation_reason,
            "refundAmount": obj.refund_amount,
            "refundStatus": obj.refund_status or None,
        }

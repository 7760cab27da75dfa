"""API views for payments and the VNPay callbacks."""

from __future__ import annotations

import logging

from django.db.models import Q  # type: ignore
from django.http import HttpResponseRedirect  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from shared.application.bootstrap import build_services
from apps.payments.domain.entities import PaymentStatus, PaymentType
from apps.payments.domain.repositories import PaymentQuery
from apps.users.services import actor_for
from .filters import PaymentFilterSet
from .models import Payment
from .serializers import (
    BankTransferSerializer,
    PaymentSerializer,
    RefundRequestSerializer,
    VNPayCreateSerializer,
)

logger = logging.getLogger(__name__)


def client_ip(request) -> str:  # type: ignore
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR") or "127.0.0.1"


def gateway_params(request) -> dict[str, str]:  # type: ignore
    """VNPay fields from the query string, or the body for POSTed IPNs."""
    params = request.query_params.dict()
    if not params and hasattr(request.data, "items"):
        params = {key: str(value) for key, value in request.data.items()}
    return params


def _payment_response(request, payment_id, http_status=status.HTTP_200_OK) -> Response:  # type: ignore
    row = Payment.objects.select_related("booking", "payer", "recipient").get(pk=payment_id)
    return Response(PaymentSerializer(row, context={"request": request}).data, status=http_status)


class PaymentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Payments the user made or received; admins see all."""

    queryset = Payment.objects.select_related("booking", "payer", "recipient").all()
    serializer_class = PaymentSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_class = PaymentFilterSet
    lookup_value_regex = "[0-9a-fA-F-]{36}"

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if actor_for(user).is_admin:
            return qs
        return qs.filter(Q(payer=user) | Q(recipient=user))

    def list(self, request, *args, **kwargs):  # type: ignore
        actor = actor_for(request.user)
        # Repair deposit_paid bookings recorded without a payment row
        build_services().payments.backfill_missing(party_id=None if actor.is_admin else actor.id)
        return super().list(request, *args, **kwargs)

    @action(detail=False, methods=["get"])
    def stats(self, request):  # type: ignore
        actor = actor_for(request.user)
        status_param = request.query_params.get("status")
        type_param = request.query_params.get("type")
        try:
            query = PaymentQuery(
                party_id=None if actor.is_admin else actor.id,
                status=PaymentStatus(status_param) if status_param else None,
                type=PaymentType(type_param) if type_param else None,
            )
        except ValueError:
            return Response(
                {"status": "error", "code": "validation_error", "message": "Bộ lọc không hợp lệ"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        stats = build_services().payments.get_stats(query)
        return Response(stats.to_dict())

    @action(detail=True, methods=["put"])
    def confirm(self, request, pk=None):  # type: ignore
        payment = build_services().state_machine.confirm_payment(pk, actor_for(request.user))
        return _payment_response(request, payment.id)

    @action(detail=True, methods=["post"])
    def refund(self, request, pk=None):  # type: ignore
        serializer = RefundRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment, refund_url = build_services().checkout.request_refund(
            pk,
            actor_for(request.user),
            reason=serializer.validated_data["reason"],
            amount=serializer.validated_data.get("amount"),
            ip_addr=client_ip(request),
        )
        response = _payment_response(request, payment.id)
        response.data = {"payment": response.data, "refundUrl": refund_url}
        return response


class VNPayCreateView(APIView):
    """Start a VNPay payment for a booking and return the redirect URL."""

    def post(self, request):  # type: ignore
        serializer = VNPayCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        payment, url = build_services().checkout.start_vnpay(
            data["booking_id"],
            actor_for(request.user),
            payment_type=PaymentType(data["type"]),
            amount=data.get("amount"),
            order_info=data["order_info"],
            ip_addr=client_ip(request),
            bank_code=data["bank_code"],
            locale=data["locale"],
            user_agent=request.META.get("HTTP_USER_AGENT", ""),
        )
        return Response(
            {
                "status": "success",
                "data": {
                    "paymentId": str(payment.id),
                    "paymentUrl": url,
                    "txnRef": payment.gateway.txn_ref,
                    "amount": payment.amount.amount,
                },
            },
            status=status.HTTP_201_CREATED,
        )


class VNPayReturnView(APIView):
    """Browser return from VNPay; always redirects to the client app."""

    permission_classes = [permissions.AllowAny]
    authentication_classes: list = []

    def get(self, request):  # type: ignore
        url = build_services().reconciler.handle_return(gateway_params(request))
        return HttpResponseRedirect(url)


class VNPayIPNView(APIView):
    """Server-to-server notification from VNPay."""

    permission_classes = [permissions.AllowAny]
    authentication_classes: list = []

    def get(self, request):  # type: ignore
        ack, http_status = build_services().reconciler.handle_ipn(gateway_params(request))
        return Response(ack, status=http_status)

    def post(self, request):  # type: ignore
        return self.get(request)


class BankTransferView(APIView):
    """Tenant declares a bank transfer; the landlord confirms it later."""

    def post(self, request):  # type: ignore
        serializer = BankTransferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        payment = build_services().checkout.start_bank_transfer(
            data["booking_id"],
            actor_for(request.user),
            payment_type=PaymentType(data["type"]),
            amount=data.get("amount"),
            bank_name=data["bank_name"],
            account_number=data["account_number"],
            account_holder=data["account_holder"],
            transfer_note=data["transfer_note"],
            receipt_image=data["receipt_image"],
        )
        return _payment_response(request, payment.id, status.HTTP_201_CREATED)


class LandlordInfoView(APIView):
    """Landlord phone and address shown on the payment success page."""

    def get(self, request, txn_ref: str):  # type: ignore
        contact = build_services().reconciler.landlord_contact(txn_ref, actor_for(request.user))
        return Response({
            "status": "success",
            "data": {"landlordPhone": contact["phone"], "landlordAddress": contact["address"]},
        })


class BankListView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request):  # type: ignore
        return Response({"status": "success", "data": build_services().checkout.supported_banks()})

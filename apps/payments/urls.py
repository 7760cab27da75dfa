"""URL routing for payments and the VNPay callbacks."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import (
    BankListView,
    BankTransferView,
    LandlordInfoView,
    PaymentViewSet,
    VNPayCreateView,
    VNPayIPNView,
    VNPayReturnView,
)

router = DefaultRouter()
router.register(r"", PaymentViewSet, basename="payment")

urlpatterns = [
    path("vnpay/create/", VNPayCreateView.as_view(), name="vnpay-create"),
    path("vnpay-return/", VNPayReturnView.as_view(), name="vnpay-return"),
    path("vnpay/ipn/", VNPayIPNView.as_view(), name="vnpay-ipn"),
    path("vnpay/banks/", BankListView.as_view(), name="vnpay-banks"),
    path("bank-transfer/", BankTransferView.as_view(), name="bank-transfer"),
    path("success/<str:txn_ref>/landlord-info/", LandlordInfoView.as_view(), name="landlord-info"),
    path("", include(router.urls)),
]

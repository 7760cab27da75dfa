"""Integration tests for payment endpoints and the VNPay callbacks."""

from __future__ import annotations

from decimal import Decimal
from urllib.parse import parse_qs, urlsplit

from django.core import mail
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from shared.testing.fakes import signed_callback
from apps.bookings.models import Booking
from apps.notifications.models import Notification
from apps.payments.gateway import VNPayGateway
from apps.payments.models import Payment
from apps.payments.tasks import backfill_deposit_payments
from apps.rooms.models import Room
from apps.users.models import CustomUser


class PaymentAPITests(APITestCase):
    def setUp(self) -> None:
        self.tenant = CustomUser.objects.create_user(
            email="tenant@example.com",
            password="TenantPass123",
            full_name="Nguyễn Văn An",
            phone="0901234567",
        )
        self.landlord = CustomUser.objects.create_user(
            email="landlord@example.com",
            password="LandlordPass123",
            full_name="Trần Thị Bình",
            phone="0987654321",
            role=CustomUser.RoleChoices.LANDLORD,
            street="45 Hai Bà Trưng",
            district="Quận 3",
            city="TP.HCM",
        )
        self.admin = CustomUser.objects.create_superuser(email="admin@example.com", password="AdminPass123")
        self.room = Room.objects.create(
            landlord=self.landlord,
            title="Phòng trọ Quận 1",
            status=Room.Status.ACTIVE,
            monthly_price=Decimal("3000000"),
            deposit=Decimal("3000000"),
            utilities=Decimal("200000"),
        )
        self.client.force_authenticate(self.tenant)
        response = self.client.post(
            reverse("booking-list"),
            {
                "room": str(self.room.id),
                "check_in": "2030-04-01",
                "check_out": "2030-07-01",
                "occupants": 2,
                "duration_months": 3,
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.booking_id = response.data["id"]
        self.gateway = VNPayGateway.from_settings()

    def _start_vnpay(self, **extra) -> dict:
        payload = {"booking_id": self.booking_id, "bank_code": "NCB"}
        payload.update(extra)
        response = self.client.post(reverse("vnpay-create"), payload, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data["data"]

    def _callback(self, txn_ref: str, code: str = "00", amount: str = "300000000") -> dict:
        return signed_callback(
            self.gateway,
            vnp_TmnCode="TESTTMN1",
            vnp_TxnRef=txn_ref,
            vnp_Amount=amount,
            vnp_ResponseCode=code,
            vnp_TransactionNo="14123456",
            vnp_BankCode="NCB",
            vnp_PayDate="20300301101500",
        )

    # ===== VNPay =====

    def test_create_vnpay_payment(self) -> None:
        data = self._start_vnpay()

        self.assertTrue(data["paymentUrl"].startswith("https://sandbox.vnpayment.vn/paymentv2/vpcpay.html?"))
        self.assertIn("vnp_Amount=300000000", data["paymentUrl"])
        self.assertIn(f"vnp_TxnRef={data['txnRef']}", data["paymentUrl"])
        self.assertEqual(Decimal(data["amount"]), Decimal("3000000"))

        payment = Payment.objects.get(pk=data["paymentId"])
        self.assertEqual(payment.method, Payment.Method.VNPAY)
        self.assertEqual(payment.gateway_txn_ref, data["txnRef"])
        self.assertEqual(payment.gateway_bank_code, "NCB")
        self.assertEqual(Payment.objects.filter(booking_id=self.booking_id).count(), 1)

    def test_create_vnpay_rejects_wrong_deposit_amount(self) -> None:
        response = self.client.post(
            reverse("vnpay-create"),
            {"booking_id": self.booking_id, "amount": "50000"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(response.data["code"], "validation_error")

    def test_return_redirects_to_success_page(self) -> None:
        data = self._start_vnpay()
        self.client.force_authenticate(None)

        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.get(reverse("vnpay-return"), self._callback(data["txnRef"]))

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        location = urlsplit(response["Location"])
        self.assertEqual(f"{location.scheme}://{location.netloc}{location.path}", "http://client.test/payment/success")
        query = parse_qs(location.query)
        self.assertEqual(query["landlordPhone"], ["0987654321"])
        self.assertEqual(query["landlordAddress"], ["45 Hai Bà Trưng, Quận 3, TP.HCM"])
        self.assertEqual(query["paymentId"], [data["paymentId"]])

        payment = Payment.objects.get(pk=data["paymentId"])
        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        self.assertEqual(payment.external_transaction_id, "14123456")
        booking = Booking.objects.get(pk=self.booking_id)
        self.assertEqual(booking.status, Booking.Status.DEPOSIT_PAID)
        self.assertEqual(booking.deposit_status, Booking.DepositStatus.PAID)
        self.assertEqual(
            list(Notification.objects.filter(type=Notification.Type.PAYMENT_RECEIVED).values_list("title", flat=True)
                 .order_by("title")),
            ["Nhận thanh toán", "Thanh toán thành công"],
        )
        self.assertEqual([m.subject.startswith("Xác nhận thanh toán") for m in mail.outbox[-2:]], [True, True])

    def test_return_with_failure_code_redirects_to_failed_page(self) -> None:
        data = self._start_vnpay()

        response = self.client.get(reverse("vnpay-return"), self._callback(data["txnRef"], code="24"))

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertTrue(response["Location"].startswith("http://client.test/payment/failed?message="))
        self.assertEqual(Payment.objects.get(pk=data["paymentId"]).status, Payment.Status.FAILED)
        self.assertEqual(Booking.objects.get(pk=self.booking_id).status, Booking.Status.PENDING)

    def test_ipn_acknowledges_and_is_idempotent(self) -> None:
        data = self._start_vnpay()
        params = self._callback(data["txnRef"])
        self.client.force_authenticate(None)

        with self.captureOnCommitCallbacks(execute=True):
            first = self.client.get(reverse("vnpay-ipn"), params)
        with self.captureOnCommitCallbacks(execute=True):
            second = self.client.get(reverse("vnpay-ipn"), params)

        self.assertEqual(first.status_code, status.HTTP_200_OK)
        self.assertEqual(first.json(), {"RspCode": "00", "Message": "Success"})
        self.assertEqual(second.json(), {"RspCode": "00", "Message": "Success"})
        self.assertEqual(Notification.objects.filter(type=Notification.Type.PAYMENT_RECEIVED).count(), 2)
        self.assertEqual(Booking.objects.get(pk=self.booking_id).status, Booking.Status.DEPOSIT_PAID)

    def test_ipn_error_codes(self) -> None:
        data = self._start_vnpay()
        tampered = dict(self._callback(data["txnRef"]), vnp_Amount="1")

        invalid = self.client.get(reverse("vnpay-ipn"), tampered)
        unknown = self.client.get(reverse("vnpay-ipn"), self._callback("BOOK1UNKNOWN"))
        mismatch = self.client.get(reverse("vnpay-ipn"), self._callback(data["txnRef"], amount="100"))

        self.assertEqual((invalid.status_code, invalid.json()["RspCode"]), (400, "97"))
        self.assertEqual((unknown.status_code, unknown.json()["RspCode"]), (400, "01"))
        self.assertEqual((mismatch.status_code, mismatch.json()["RspCode"]), (400, "04"))
        self.assertEqual(Payment.objects.get(pk=data["paymentId"]).status, Payment.Status.PENDING)

    def test_non_ascii_signature_is_rejected_not_raised(self) -> None:
        data = self._start_vnpay()
        params = self._callback(data["txnRef"])
        params["vnp_SecureHash"] = "é" + params["vnp_SecureHash"][1:]
        self.client.force_authenticate(None)

        ipn = self.client.get(reverse("vnpay-ipn"), params)
        redirect = self.client.get(reverse("vnpay-return"), params)

        self.assertEqual((ipn.status_code, ipn.json()["RspCode"]), (400, "97"))
        self.assertEqual(redirect.status_code, status.HTTP_302_FOUND)
        self.assertTrue(redirect["Location"].startswith("http://client.test/payment/failed?message="))
        self.assertEqual(Payment.objects.get(pk=data["paymentId"]).status, Payment.Status.PENDING)

    def test_ipn_for_an_earlier_checkout_completes_the_payment(self) -> None:
        first = self._start_vnpay()
        second = self._start_vnpay()
        self.assertEqual(first["paymentId"], second["paymentId"])
        self.client.force_authenticate(None)

        response = self.client.get(reverse("vnpay-ipn"), self._callback(first["txnRef"]))

        self.assertEqual(response.json(), {"RspCode": "00", "Message": "Success"})
        payment = Payment.objects.get(pk=first["paymentId"])
        self.assertEqual(payment.status, Payment.Status.COMPLETED)
        self.assertEqual(payment.gateway_txn_ref, first["txnRef"])
        self.assertEqual(
            set(payment.txn_refs.values_list("txn_ref", flat=True)),
            {first["txnRef"], second["txnRef"]},
        )
        self.assertEqual(Booking.objects.get(pk=self.booking_id).status, Booking.Status.DEPOSIT_PAID)

    def test_ipn_accepts_post(self) -> None:
        data = self._start_vnpay()

        response = self.client.post(reverse("vnpay-ipn"), self._callback(data["txnRef"]))

        self.assertEqual(response.json()["RspCode"], "00")

    def test_landlord_info_after_payment(self) -> None:
        data = self._start_vnpay()

        response = self.client.get(reverse("landlord-info", args=[data["txnRef"]]))

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["data"], {
            "landlordPhone": "0987654321",
            "landlordAddress": "45 Hai Bà Trưng, Quận 3, TP.HCM",
        })
        missing = self.client.get(reverse("landlord-info", args=["BOOK1UNKNOWN"]))
        self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)

    def test_bank_list_is_public(self) -> None:
        self.client.force_authenticate(None)

        response = self.client.get(reverse("vnpay-banks"))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn({"code": "NCB", "name": "Ngân hàng Quốc Dân (NCB)"}, response.data["data"])

    # ===== Bank transfer =====

    def test_bank_transfer_confirmed_by_landlord(self) -> None:
        response = self.client.post(
            reverse("bank-transfer"),
            {
                "booking_id": self.booking_id,
                "bank_name": "Vietcombank",
                "account_number": "0123456789",
                "account_holder": "NGUYEN VAN AN",
                "transfer_note": "Dat coc phong",
            },
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["method"], "bank_transfer")
        self.assertEqual(response.data["status"], "pending")
        self.assertEqual(response.data["bank_transfer"]["bankName"], "Vietcombank")
        payment_id = response.data["id"]

        forbidden = self.client.put(reverse("payment-confirm", args=[payment_id]))
        self.assertEqual(forbidden.status_code, status.HTTP_403_FORBIDDEN, forbidden.data)

        self.client.force_authenticate(self.landlord)
        with self.captureOnCommitCallbacks(execute=True):
            confirmed = self.client.put(reverse("payment-confirm", args=[payment_id]))

        self.assertEqual(confirmed.status_code, status.HTTP_200_OK, confirmed.data)
        self.assertEqual(confirmed.data["status"], "completed")
        self.assertEqual(Booking.objects.get(pk=self.booking_id).status, Booking.Status.DEPOSIT_PAID)
        notification = Notification.objects.get(type=Notification.Type.PAYMENT_RECEIVED)
        self.assertEqual(notification.recipient, self.tenant)
        self.assertEqual(notification.title, "Thanh toán đã được xác nhận")

    # ===== Listing, stats and refunds =====

    def test_stats(self) -> None:
        response = self.client.get(reverse("payment-stats"))

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["totalCount"], 1)
        self.assertEqual(response.data["pendingCount"], 1)
        self.assertEqual(response.data["pendingAmount"], Decimal("3000000"))
        self.assertEqual(response.data["successfulCount"], 0)

        filtered = self.client.get(reverse("payment-stats"), {"status": "completed"})
        self.assertEqual(filtered.data["totalCount"], 0)

        invalid = self.client.get(reverse("payment-stats"), {"status": "bogus"})
        self.assertEqual(invalid.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_backfills_missing_deposit(self) -> None:
        self.client.force_authenticate(self.landlord)
        self.client.put(
            reverse("booking-status", args=[self.booking_id]),
            {"status": "deposit_paid", "payment_method": "cash"},
            format="json",
        )
        Payment.objects.all().delete()

        response = self.client.get(reverse("payment-list"))

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(len(response.data), 1)
        self.assertTrue(response.data[0]["backfilled"])
        self.assertEqual(response.data[0]["status"], "completed")
        self.assertEqual(response.data[0]["method"], "cash")

        self.assertEqual(self.client.get(reverse("payment-list")).data[0]["id"], response.data[0]["id"])
        self.assertEqual(backfill_deposit_payments(), {"backfilled": 0})

    def test_list_is_scoped_to_parties(self) -> None:
        stranger = CustomUser.objects.create_user(email="other@example.com", password="OtherPass123")

        self.assertEqual(len(self.client.get(reverse("payment-list")).data), 1)
        self.client.force_authenticate(stranger)
        self.assertEqual(len(self.client.get(reverse("payment-list")).data), 0)
        self.client.force_authenticate(self.admin)
        self.assertEqual(len(self.client.get(reverse("payment-list")).data), 1)

    def test_refund_is_admin_only(self) -> None:
        data = self._start_vnpay()
        self.client.get(reverse("vnpay-ipn"), self._callback(data["txnRef"]))
        url = reverse("payment-refund", args=[data["paymentId"]])

        forbidden = self.client.post(url, {"reason": "Khách đổi ý"}, format="json")
        self.assertEqual(forbidden.status_code, status.HTTP_403_FORBIDDEN, forbidden.data)

        self.client.force_authenticate(self.admin)
        response = self.client.post(url, {"reason": "Khách đổi ý"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["payment"]["refund"]["status"], "processing")
        self.assertIn("vnp_Command=refund", response.data["refundUrl"])

        again = self.client.post(url, {"reason": "Khách đổi ý"}, format="json")
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT, again.data)
        self.assertEqual(again.data["code"], "invalid_state")

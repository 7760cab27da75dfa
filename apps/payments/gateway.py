"""
VNPay gateway codec

Builds signed payment/refund URLs and verifies the parameters VNPay sends
back on the browser return and the IPN call. Signing is
HMAC-SHA512(hash_secret, canonical query string), hex-encoded.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Mapping, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo

from django.conf import settings  # type: ignore

from shared.domain.base import utcnow
from shared.domain.errors import GatewayConfigurationError, ValidationError

logger = logging.getLogger(__name__)

VERSION = '2.1.0'
CURRENCY = 'VND'
PAYMENT_TTL = timedelta(minutes=15)
DATE_FORMAT = '%Y%m%d%H%M%S'
SUCCESS_CODE = '00'
HASH_FIELD = 'vnp_SecureHash'
HASH_TYPE_FIELD = 'vnp_SecureHashType'

# Characters JavaScript's encodeURIComponent leaves untouched
_UNRESERVED = "-_.!~*'()"

RESPONSE_MESSAGES: Dict[str, str] = {
    '00': 'Giao dịch thành công',
    '07': 'Trừ tiền thành công. Giao dịch bị nghi ngờ (liên quan tới lừa đảo, giao dịch bất thường).',
    '09': 'Giao dịch không thành công do: Thẻ/Tài khoản của khách hàng chưa đăng ký dịch vụ InternetBanking của ngân hàng.',
    '10': 'Xác thực thông tin thẻ/tài khoản không đúng quá 3 lần',
    '11': 'Đã hết hạn chờ thanh toán. Xin vui lòng thực hiện lại giao dịch.',
    '12': 'Giao dịch bị hủy.',
    '24': 'Giao dịch không thành công do: Khách hàng hủy giao dịch',
    '51': 'Giao dịch không thành công do: Tài khoản của quý khách không đủ số dư để thực hiện giao dịch.',
    '65': 'Giao dịch không thành công do: Tài khoản của Quý khách đã vượt quá hạn mức giao dịch trong ngày.',
    '75': 'Ngân hàng thanh toán đang bảo trì.',
    '79': 'Nhập sai mật khẩu thanh toán quá số lần quy định. Xin vui lòng thực hiện lại giao dịch.',
    '99': 'Các lỗi khác (lỗi còn lại, không có trong danh sách mã lỗi đã liệt kê)',
}
UNKNOWN_RESPONSE_MESSAGE = 'Lỗi không xác định'

SUPPORTED_BANKS = [
    {'code': 'NCB', 'name': 'Ngân hàng Quốc Dân (NCB)'},
    {'code': 'VIETCOMBANK', 'name': 'Ngân hàng TMCP Ngoại Thương Việt Nam'},
    {'code': 'VIETINBANK', 'name': 'Ngân hàng TMCP Công Thương Việt Nam'},
    {'code': 'BIDV', 'name': 'Ngân hàng TMCP Đầu tư và Phát triển Việt Nam'},
    {'code': 'AGRIBANK', 'name': 'Ngân hàng Nông nghiệp và Phát triển Nông thôn Việt Nam'},
    {'code': 'TECHCOMBANK', 'name': 'Ngân hàng TMCP Kỹ thương Việt Nam'},
    {'code': 'ACB', 'name': 'Ngân hàng TMCP Á Châu'},
    {'code': 'SACOMBANK', 'name': 'Ngân hàng TMCP Sài Gòn Thương Tín'},
    {'code': 'DONGABANK', 'name': 'Ngân hàng TMCP Đông Á'},
    {'code': 'EXIMBANK', 'name': 'Ngân hàng TMCP Xuất Nhập khẩu Việt Nam'},
    {'code': 'MBBANK', 'name': 'Ngân hàng TMCP Quân đội'},
    {'code': 'TPBANK', 'name': 'Ngân hàng TMCP Tiên Phong'},
    {'code': 'OCB', 'name': 'Ngân hàng TMCP Phương Đông'},
    {'code': 'SHB', 'name': 'Ngân hàng TMCP Sài Gòn - Hà Nội'},
    {'code': 'VPBANK', 'name': 'Ngân hàng TMCP Việt Nam Thịnh Vượng'},
]


def response_message(code: Optional[str]) -> str:
    return RESPONSE_MESSAGES.get(code or '', UNKNOWN_RESPONSE_MESSAGE)


def encode_component(value) -> str:
    return quote(str(value), safe=_UNRESERVED)


def sort_parameters(params: Mapping[str, object]) -> Dict[str, str]:
    """
    Canonical form of ``params``: encoded keys in lexicographic order,
    values encoded the same way with spaces as ``+``.
    """
    encoded = {encode_component(key): value for key, value in params.items()}
    return {
        key: encode_component(encoded[key]).replace('%20', '+')
        for key in sorted(encoded)
    }


def canonical_query(params: Mapping[str, object]) -> str:
    return '&'.join(f"{key}={value}" for key, value in sort_parameters(params).items())


def to_minor_units(amount) -> int:
    """VNPay amounts are integers, 100 x the VND amount."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValidationError(f"Số tiền không hợp lệ: {amount}") from exc
    if value <= 0:
        raise ValidationError('Số tiền thanh toán phải lớn hơn 0')
    return int(value * 100)


def generate_txn_ref(prefix: str = 'BOOK', now: Optional[datetime] = None) -> str:
    """Merchant order reference: prefix + epoch millis + 6 random base-36 chars."""
    now = now or utcnow()
    alphabet = string.digits + string.ascii_uppercase
    random_part = ''.join(secrets.choice(alphabet) for _ in range(6))
    return f"{prefix}{int(now.timestamp() * 1000)}{random_part}"


@dataclass(frozen=True)
class GatewayResult:
    """Normalized view of a return/IPN payload; built even when the signature fails."""
    is_valid: bool
    txn_ref: str
    amount: Optional[Decimal]
    order_info: str
    response_code: str
    transaction_no: str
    transaction_status: str
    bank_code: str
    card_type: str
    pay_date: str
    message: str
    raw_fields: Dict[str, str] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.response_code == SUCCESS_CODE


class VNPayGateway:
    """
    Codec for the VNPay redirect protocol.

    A gateway without TMN code or hash secret refuses to sign and treats
    every incoming signature as invalid.
    """

    def __init__(
        self,
        tmn_code: str,
        hash_secret: str,
        payment_url: str,
        return_url: str,
        timezone: str = 'Asia/Ho_Chi_Minh',
        clock: Callable[[], datetime] = utcnow,
    ):
        self.tmn_code = tmn_code or ''
        self.hash_secret = hash_secret or ''
        self.payment_url = payment_url
        self.return_url = return_url
        self.timezone = ZoneInfo(timezone)
        self._clock = clock

    @classmethod
    def from_settings(cls) -> 'VNPayGateway':
        return cls(
            tmn_code=getattr(settings, 'VNPAY_TMN_CODE', ''),
            hash_secret=getattr(settings, 'VNPAY_HASH_SECRET', ''),
            payment_url=getattr(settings, 'VNPAY_URL', ''),
            return_url=getattr(settings, 'VNPAY_RETURN_URL', ''),
            timezone=getattr(settings, 'VNPAY_TIMEZONE', 'Asia/Ho_Chi_Minh'),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.tmn_code and self.hash_secret)

    def local_now(self) -> datetime:
        return self._clock().astimezone(self.timezone)

    def sign(self, params: Mapping[str, object]) -> str:
        if not self.is_configured:
            raise GatewayConfigurationError()
        return hmac.new(
            self.hash_secret.encode('utf-8'),
            canonical_query(params).encode('utf-8'),
            hashlib.sha512,
        ).hexdigest()

    def _signed_url(self, params: Dict[str, object]) -> str:
        signature = self.sign(params)
        return f"{self.payment_url}?{canonical_query(params)}&{HASH_FIELD}={signature}"

    def build_payment_url(
        self,
        *,
        amount,
        order_info: str,
        txn_ref: str,
        ip_addr: str = '127.0.0.1',
        order_type: str = 'other',
        bank_code: str = '',
        locale: str = 'vn',
        return_url: Optional[str] = None,
        created: Optional[datetime] = None,
    ) -> str:
        if not self.is_configured:
            logger.error("VNPay payment URL requested but TMN code or hash secret is missing")
            raise GatewayConfigurationError()

        created = (created or self.local_now()).astimezone(self.timezone)
        params: Dict[str, object] = {
            'vnp_Version': VERSION,
            'vnp_Command': 'pay',
            'vnp_TmnCode': self.tmn_code,
            'vnp_Locale': locale or 'vn',
            'vnp_CurrCode': CURRENCY,
            'vnp_TxnRef': txn_ref,
            'vnp_OrderInfo': order_info,
            'vnp_OrderType': order_type,
            'vnp_Amount': to_minor_units(amount),
            'vnp_ReturnUrl': return_url or self.return_url,
            'vnp_IpAddr': ip_addr,
            'vnp_CreateDate': created.strftime(DATE_FORMAT),
            'vnp_ExpireDate': (created + PAYMENT_TTL).strftime(DATE_FORMAT),
        }
        if bank_code:
            params['vnp_BankCode'] = bank_code

        logger.info(f"Built VNPay payment URL for {txn_ref}, amount {amount}")
        return self._signed_url(params)

    def build_refund_url(
        self,
        *,
        txn_ref: str,
        amount,
        transaction_no: str,
        transaction_date: str,
        created_by: str,
        ip_addr: str = '127.0.0.1',
        order_info: str = 'Hoan tien giao dich',
    ) -> str:
        """Full refund (transaction type 03) of a completed gateway payment."""
        params: Dict[str, object] = {
            'vnp_Version': VERSION,
            'vnp_Command': 'refund',
            'vnp_TmnCode': self.tmn_code,
            'vnp_TransactionType': '03',
            'vnp_TxnRef': txn_ref,
            'vnp_Amount': to_minor_units(amount),
            'vnp_OrderInfo': order_info,
            'vnp_TransactionNo': transaction_no,
            'vnp_TransactionDate': transaction_date,
            'vnp_CreateBy': created_by,
            'vnp_CreateDate': self.local_now().strftime(DATE_FORMAT),
            'vnp_IpAddr': ip_addr,
        }
        return self._signed_url(params)

    def verify(self, params: Mapping[str, str]) -> bool:
        if not self.is_configured:
            logger.error("VNPay signature check refused: gateway is not configured")
            return False
        fields = dict(params)
        supplied = fields.pop(HASH_FIELD, None)
        fields.pop(HASH_TYPE_FIELD, None)
        if not supplied:
            return False
        expected = self.sign(fields)
        # Bytes, since compare_digest rejects non-ASCII str
        return hmac.compare_digest(str(supplied).encode('utf-8'), expected.encode('utf-8'))

    def parse_result(self, params: Mapping[str, str]) -> GatewayResult:
        raw = {key: str(value) for key, value in params.items()}
        try:
            amount = Decimal(raw.get('vnp_Amount', '')) / 100
        except InvalidOperation:
            amount = None
        code = raw.get('vnp_ResponseCode', '')
        return GatewayResult(
            is_valid=self.verify(raw),
            txn_ref=raw.get('vnp_TxnRef', ''),
            amount=amount,
            order_info=raw.get('vnp_OrderInfo', ''),
            response_code=code,
            transaction_no=raw.get('vnp_TransactionNo', ''),
            transaction_status=raw.get('vnp_TransactionStatus', ''),
            bank_code=raw.get('vnp_BankCode', ''),
            card_type=raw.get('vnp_CardType', ''),
            pay_date=raw.get('vnp_PayDate', ''),
            message=response_message(code),
            raw_fields=raw,
        )

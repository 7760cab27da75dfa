"""Email templates.

Each template takes the JSON-serializable data the event handlers queue
with the Celery task and returns the subject and HTML body.
"""

from __future__ import annotations

from typing import Callable

from django.utils.html import escape  # type: ignore


SIGNATURE = "<p>Trân trọng,<br>Đội ngũ Quản lý Phòng trọ</p>"


class UnknownTemplateError(KeyError):
    pass


def booking_confirmation(data: dict) -> tuple[str, str]:
    """Sent to the tenant when the booking is requested and when it is confirmed."""
    subject = f"Xác nhận đặt phòng - {data['roomTitle']}"
    html_message = f"""
    <html>
    <body>
        <h2>Xin chào {escape(data['tenantName'])},</h2>
        <p>Cảm ơn bạn đã đặt phòng. Dưới đây là thông tin đặt phòng của bạn:</p>

        <h3>Thông tin đặt phòng:</h3>
        <ul>
            <li><strong>Phòng:</strong> {escape(data['roomTitle'])}</li>
            <li><strong>Địa chỉ:</strong> {escape(data.get('roomAddress', ''))}</li>
            <li><strong>Ngày nhận phòng:</strong> {data['checkInDate']}</li>
            <li><strong>Ngày trả phòng:</strong> {data['checkOutDate']}</li>
            <li><strong>Thời gian thuê:</strong> {data['duration']} tháng</li>
            <li><strong>Tiền cọc:</strong> {data['deposit']}</li>
            <li><strong>Giá thuê hàng tháng:</strong> {data['monthlyRent']}</li>
        </ul>

        <p>Chủ trọ sẽ liên hệ với bạn trong thời gian sớm nhất.</p>

        {SIGNATURE}
    </body>
    </html>
    """
    return subject, html_message


def booking_notification_to_landlord(data: dict) -> tuple[str, str]:
    subject = f"Thông báo đặt phòng mới - {data['roomTitle']}"
    html_message = f"""
    <html>
    <body>
        <h2>Xin chào {escape(data['landlordName'])},</h2>
        <p>Bạn có một yêu cầu đặt phòng mới.</p>

        <h3>Thông tin đặt phòng:</h3>
        <ul>
            <li><strong>Phòng:</strong> {escape(data['roomTitle'])}</li>
            <li><strong>Địa chỉ:</strong> {escape(data.get('roomAddress', ''))}</li>
            <li><strong>Người thuê:</strong> {escape(data['tenantName'])}</li>
            <li><strong>Số điện thoại:</strong> {escape(data.get('tenantPhone', ''))}</li>
            <li><strong>Email:</strong> {escape(data.get('tenantEmail', ''))}</li>
            <li><strong>Ngày nhận phòng:</strong> {data['checkInDate']}</li>
            <li><strong>Ngày trả phòng:</strong> {data['checkOutDate']}</li>
            <li><strong>Thời gian thuê:</strong> {data['duration']} tháng</li>
            <li><strong>Số người ở:</strong> {data['numberOfOccupants']}</li>
        </ul>

        <p>Vui lòng đăng nhập để xác nhận hoặc từ chối yêu cầu.</p>

        {SIGNATURE}
    </body>
    </html>
    """
    return subject, html_message


def payment_confirmation(data: dict) -> tuple[str, str]:
    subject = f"Xác nhận thanh toán - {data['transactionId']}"
    html_message = f"""
    <html>
    <body>
        <h2>Xác nhận thanh toán</h2>
        <p>Giao dịch của {escape(data['payerName'])} đã được xử lý thành công.</p>

        <h3>Chi tiết giao dịch:</h3>
        <ul>
            <li><strong>Mã giao dịch:</strong> {data['transactionId']}</li>
            <li><strong>Loại thanh toán:</strong> {data['paymentType']}</li>
            <li><strong>Số tiền:</strong> {data['amount']}</li>
            <li><strong>Phương thức:</strong> {data['paymentMethod']}</li>
            <li><strong>Thời gian:</strong> {data['paidAt']}</li>
        </ul>

        {SIGNATURE}
    </body>
    </html>
    """
    return subject, html_message


TEMPLATES: dict[str, Callable[[dict], tuple[str, str]]] = {
    "bookingConfirmation": booking_confirmation,
    "bookingNotificationToLandlord": booking_notification_to_landlord,
    "paymentConfirmation": payment_confirmation,
}


def render_email(template_name: str, data: dict) -> tuple[str, str]:
    try:
        template = TEMPLATES[template_name]
    except KeyError:
        raise UnknownTemplateError(template_name)
    return template(data)

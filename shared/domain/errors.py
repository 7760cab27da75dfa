"""
Domain error taxonomy.

Every error raised by the booking and payment services derives from
``DomainError``. The HTTP layer renders them through
``shared.infrastructure.exception_handler`` using ``code`` and
``http_status``; nothing else in the core knows about HTTP.
"""


class DomainError(Exception):
    code = 'domain_error'
    http_status = 400
    default_message = 'Yêu cầu không hợp lệ'

    def __init__(self, message: str = '', **context):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)


class ValidationError(DomainError):
    code = 'validation_error'
    default_message = 'Dữ liệu không hợp lệ'


class ConflictError(DomainError):
    """The room already has a non-terminal booking over the requested dates."""
    code = 'booking_conflict'
    http_status = 409
    default_message = 'Phòng đã được đặt trong khoảng thời gian này'


class RoomUnavailableError(DomainError):
    code = 'room_unavailable'
    default_message = 'Phòng không khả dụng'


class SelfBookingError(DomainError):
    code = 'self_booking'
    default_message = 'Không thể đặt phòng của chính mình'


class StateConflictError(DomainError):
    """Illegal or already-applied transition."""
    code = 'state_conflict'
    http_status = 409
    default_message = 'Trạng thái không hợp lệ'


class InvalidStateError(StateConflictError):
    """The record is not in a state that allows the operation (e.g. refund)."""
    code = 'invalid_state'


class NotFoundError(DomainError):
    code = 'not_found'
    http_status = 404
    default_message = 'Không tìm thấy dữ liệu'


class AuthorizationError(DomainError):
    code = 'forbidden'
    http_status = 403
    default_message = 'Không có quyền thực hiện thao tác này'


class SignatureInvalidError(DomainError):
    code = 'invalid_signature'
    default_message = 'Invalid signature'


class ExternalDependencyError(DomainError):
    """A collaborator outside the core failed (mail, notifications, gateway)."""
    code = 'external_dependency'
    http_status = 502
    default_message = 'Dịch vụ bên ngoài không phản hồi'


class GatewayConfigurationError(ExternalDependencyError):
    code = 'gateway_not_configured'
    http_status = 503
    default_message = 'Cổng thanh toán chưa được cấu hình'

"""
Error taxonomy

Workflows raise these; main.py turns any of them into the
standard `{message, stack}` body with the matching status code.
"""


class ApiError(Exception):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


class EmptyOrder(ValidationError):
    default_message = "No order items"


class DuplicateUser(ApiError):
    status_code = 400
    default_message = "User already exists with this phone or email."


class InvalidCredentials(ApiError):
    status_code = 401
    default_message = "Invalid phone/email or password"


class EmailNotVerified(ApiError):
    status_code = 403
    default_message = "Please verify your email before logging in."


class Forbidden(ApiError):
    status_code = 403
    default_message = "Not authorized"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class InvalidStatus(ApiError):
    status_code = 400
    default_message = "Invalid status"


class InvalidOrExpiredToken(ApiError):
    status_code = 400
    default_message = "Token is invalid or has expired"


class SignatureMismatch(ApiError):
    status_code = 400
    default_message = "Payment signature verification failed."


class GatewayError(ApiError):
    status_code = 500
    default_message = "Razorpay failed to create order."

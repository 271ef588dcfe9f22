# storefront/utils/errors.py
"""
Bledy domenowe. Dziedzicza po wbudowanych wyjatkach (ValueError,
PermissionError, LookupError) zeby serwisy mogly dalej rzucac "zwykle"
bledy, a main.py zamienia je na odpowiedz {success: false, message}.
"""


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(AppError, LookupError):
    status_code = 404


class BadRequestError(AppError, ValueError):
    status_code = 400


class InsufficientStockError(BadRequestError):
    def __init__(self, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}: {available} available, {requested} requested"
        )
        self.available = available
        self.requested = requested


class ConflictError(AppError, ValueError):
    status_code = 409


class AuthenticationError(AppError):
    status_code = 401


class ForbiddenError(AppError, PermissionError):
    status_code = 403


class PaymentGatewayError(AppError):
    status_code = 502

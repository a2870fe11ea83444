from fastapi import HTTPException


class ApiError(HTTPException):
    """Domain error carrying the {"code", "message"} detail used across the API."""

    status = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str):
        self.message = message
        super().__init__(status_code=self.status, detail={"code": self.code, "message": message})


class BadRequest(ApiError):
    pass


class NotFound(ApiError):
    status = 404
    code = "NOT_FOUND"


class DuplicateKey(ApiError):
    code = "DUPLICATE_KEY"


class Conflict(ApiError):
    code = "CONFLICT"


class InvalidState(ApiError):
    # a return on a RETURNED checkout is reported like a missing open checkout
    status = 404
    code = "INVALID_STATE"


class InsufficientStock(ApiError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient stock: requested {requested}, available {available} "
            f"(short by {self.shortfall})"
        )

from typing import Optional
from fastapi import HTTPException, status

class BaseAppException(HTTPException):
    def __init__(self, status_code: int, detail, headers: Optional[dict] = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)

class ValidationError(BaseAppException):
    def __init__(self, detail: str = "Validation error"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)

class NotFoundError(BaseAppException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class ConflictError(BaseAppException):
    def __init__(self, detail: str = "Resource already exists"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)

class InvalidTransitionError(BaseAppException):
    """Requested status is not reachable from the order's current status"""
    def __init__(self, current: str, requested: str, detail: Optional[str] = None):
        self.current = current
        self.requested = requested
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "message": detail or f"Cannot transition from '{current}' to '{requested}'",
                "current": current,
                "requested": requested,
            },
        )

class InvalidStateError(BaseAppException):
    """Operation is not valid for the entity's current lifecycle state"""
    def __init__(self, detail: str = "Invalid state", current: Optional[str] = None):
        self.current = current
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)

class DriverUnavailableError(BaseAppException):
    def __init__(self, detail: str = "Driver is not available"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)

class NoActiveDeliveryError(BaseAppException):
    def __init__(self, detail: str = "No active delivery found for driver"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class InvalidSignatureError(BaseAppException):
    def __init__(self, detail: str = "Invalid webhook signature"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)

class GatewayError(BaseAppException):
    def __init__(self, detail: str = "Payment gateway error"):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)

from fastapi import HTTPException, status

class BaseAppException(HTTPException):
    def __init__(self, status_code: int, detail: str):
        super().__init__(status_code=status_code, detail=detail)

class ValidationError(BaseAppException):
    """Input rejected before any state was touched"""
    def __init__(self, detail: str = "Validation error"):
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)

class AuthorizationError(BaseAppException):
    def __init__(self, detail: str = "Not enough permissions"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

class NotFoundError(BaseAppException):
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)

class InvalidStateError(BaseAppException):
    """Transition attempted from a state that does not allow it"""
    def __init__(self, detail: str = "Invalid state for this operation"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)

class EntityWriteError(BaseAppException):
    """The entity write behind an approval failed; the request stays pending"""
    def __init__(self, detail: str = "Entity write failed"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)

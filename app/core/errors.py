"""
Error taxonomy shared by every feature.

Each error is an HTTPException so FastAPI renders it as
``{"detail": <message>}`` with the matching status code. Messages are
written for direct display to the user.
"""
from fastapi import HTTPException, status


class Unauthenticated(HTTPException):
    def __init__(self, detail: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class Forbidden(HTTPException):
    def __init__(self, detail: str = "You are not allowed to perform this action."):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ValidationError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFound(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class Conflict(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class PreconditionFailed(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_412_PRECONDITION_FAILED, detail=detail)


INTERNAL_ERROR_MESSAGE = "Something went wrong. Please try again."


class Internal(HTTPException):
    def __init__(self, detail: str = INTERNAL_ERROR_MESSAGE):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)

"""Custom exception classes and error handling."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": code,
                    "message": message,
                    "details": details or {},
                },
            },
        )

    def __str__(self) -> str:
        return self.message


class AuthenticationError(AppException):
    """Authentication failed."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code="AUTH_FAILED",
            message=message,
        )


class UnauthorizedError(AppException):
    """Caller does not belong to the target school or lacks the admin record."""

    def __init__(
        self,
        message: str = "Unauthorized: You do not belong to this school",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            code="UNAUTHORIZED",
            message=message,
            details=details,
        )


class NotFoundError(AppException):
    """Resource not found."""

    def __init__(
        self,
        resource: str = "Resource",
        identifier: str | None = None,
    ):
        details = {}
        if identifier:
            details["identifier"] = identifier
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code="NOT_FOUND",
            message=f"{resource} not found",
            details=details,
        )


class LockedExamError(AppException):
    """Exam is completed/published and locked against edits."""

    def __init__(self, exam_status: str, exam_id: int | None = None):
        details: dict[str, Any] = {"status": exam_status}
        if exam_id is not None:
            details["exam_id"] = exam_id
        super().__init__(
            status_code=status.HTTP_423_LOCKED,
            code="EXAM_LOCKED",
            message=(
                f"Cannot edit marks for {exam_status} exam. "
                "Please unlock the exam first to make corrections."
            ),
            details=details,
        )


class TeacherEditForbiddenError(AppException):
    """Teachers cannot touch marks once the exam is completed or published."""

    def __init__(self, exam_status: str):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            code="TEACHER_EDIT_FORBIDDEN",
            message=(
                "Teachers cannot edit marks for completed or published exams. "
                "Please contact an administrator."
            ),
            details={"status": exam_status},
        )


class InvalidTransitionError(AppException):
    """Requested lifecycle transition is not allowed from the current state."""

    def __init__(self, message: str, current_status: str | None = None):
        details = {}
        if current_status:
            details["current_status"] = current_status
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="INVALID_TRANSITION",
            message=message,
            details=details,
        )


class InvalidInputError(AppException):
    """Input failed a business validation (zero max marks, bad subject list...)."""

    def __init__(
        self,
        message: str = "Invalid input",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="INVALID_INPUT",
            message=message,
            details=details,
        )


class DependentDataExistsError(AppException):
    """Deletion blocked because dependent rows still exist."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            code="DEPENDENT_DATA_EXISTS",
            message=message,
            details=details,
        )

"""
Failure classification for remote calls.

Every failure from the operation service or the artifact store passes
through classify_failure(). Credential problems are recognised here and
nowhere else, so the matching rule can move to structured error codes
without touching the controller.
"""

import re
from typing import Optional

from .models import FailureInfo, FailureKind, FailureStage


CREDENTIAL_PATTERNS = re.compile(
    r"requested entity was not found"
    r"|api[ _]key not valid"
    r"|api_key_invalid"
    r"|invalid api[ _]key"
    r"|unauthori[sz]ed"
    r"|unauthenticated"
    r"|permission[ _]denied",
    re.IGNORECASE,
)

CREDENTIAL_STATUSES = {"UNAUTHENTICATED", "PERMISSION_DENIED"}

STAGE_KINDS = {
    FailureStage.SUBMIT: FailureKind.OPERATION_FAILED,
    FailureStage.POLL: FailureKind.OPERATION_FAILED,
    FailureStage.RESOLVE: FailureKind.ARTIFACT_MISSING,
    FailureStage.FETCH: FailureKind.DOWNLOAD_FAILED,
}


def is_credential_failure(
    message: str,
    code: Optional[int] = None,
    status: Optional[str] = None,
) -> bool:
    """True when a failure means the selected key is unusable."""
    if code == 401:
        return True
    if status and status.upper() in CREDENTIAL_STATUSES:
        return True
    return bool(message and CREDENTIAL_PATTERNS.search(message))


def classify_failure(
    stage: Optional[FailureStage],
    message: str,
    code: Optional[int] = None,
    status: Optional[str] = None,
) -> FailureInfo:
    """
    Turn a raw failure into a FailureInfo.

    Args:
        stage: Remote call that failed (None for failures outside any call)
        message: Failure text as reported by the collaborator
        code: Optional structured HTTP code from the collaborator
        status: Optional structured status name (e.g. "PERMISSION_DENIED")

    Returns:
        FailureInfo with the kind decided by credential match, then stage
    """
    if is_credential_failure(message, code=code, status=status):
        kind = FailureKind.CREDENTIAL_INVALID
    else:
        kind = STAGE_KINDS.get(stage, FailureKind.UNKNOWN)

    return FailureInfo(kind=kind, message=message, stage=stage)


def describe_exception(error: BaseException) -> tuple[str, Optional[int], Optional[str]]:
    """
    Extract message, code and status from a collaborator exception.

    google-genai APIError carries ``code`` (int) and ``status`` (str);
    our own OperationServiceError mirrors those attributes.
    """
    message = str(error) or type(error).__name__
    code = getattr(error, "code", None)
    status = getattr(error, "status", None)
    return (
        message,
        code if isinstance(code, int) else None,
        status if isinstance(status, str) else None,
    )

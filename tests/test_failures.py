"""
Failure Classification Tests

Run with:
    python -m pytest tests/test_failures.py -v
"""

import os
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from services.video_generation.failures import classify_failure, is_credential_failure
from services.video_generation.models import FailureKind, FailureStage


class TestClassification:
    """Test the single classification function."""

    @pytest.mark.parametrize("message", [
        "Requested entity was not found.",
        "404 NOT_FOUND. {'error': {'message': 'Requested entity was not found.'}}",
        "API key not valid. Please pass a valid API key.",
        "400 INVALID_ARGUMENT API_KEY_INVALID",
        "Failed to download video: Unauthorized",
        "403 PERMISSION_DENIED",
    ])
    def test_credential_messages(self, message):
        """Known credential phrasings are recognised."""
        assert is_credential_failure(message)

    @pytest.mark.parametrize("message", [
        "Failed to download video: Not Found",
        "quota exceeded",
        "Internal error (code 13)",
        "",
    ])
    def test_other_messages(self, message):
        """Ordinary failures, including a plain 404 download, are not credential failures."""
        assert not is_credential_failure(message)

    def test_structured_signals(self):
        """A 401 code or an auth status name is enough on its own."""
        assert is_credential_failure("rejected", code=401)
        assert is_credential_failure("rejected", status="unauthenticated")
        assert not is_credential_failure("rejected", code=500, status="INTERNAL")

    @pytest.mark.parametrize("stage,kind", [
        (FailureStage.SUBMIT, FailureKind.OPERATION_FAILED),
        (FailureStage.POLL, FailureKind.OPERATION_FAILED),
        (FailureStage.RESOLVE, FailureKind.ARTIFACT_MISSING),
        (FailureStage.FETCH, FailureKind.DOWNLOAD_FAILED),
        (None, FailureKind.UNKNOWN),
    ])
    def test_stage_kinds(self, stage, kind):
        """Non-credential failures are classified by stage."""
        failure = classify_failure(stage, "something broke")
        assert failure.kind == kind
        assert failure.stage == stage
        assert failure.message == "something broke"

    def test_credential_wins_over_stage(self):
        """Credential classification applies at every stage."""
        for stage in list(FailureStage) + [None]:
            failure = classify_failure(stage, "Requested entity was not found.")
            assert failure.kind == FailureKind.CREDENTIAL_INVALID

    def test_guidance(self):
        """Guidance text depends on the kind."""
        credential = classify_failure(FailureStage.POLL, "Requested entity was not found.")
        other = classify_failure(FailureStage.POLL, "quota exceeded")

        assert credential.guidance == "Your API key is invalid or not found. Please select a new key."
        assert other.guidance == "An error occurred: quota exceeded"

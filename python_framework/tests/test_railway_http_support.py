"""
Tests for HTTP integration — status mapping, error bodies and response builders.
"""

from __future__ import annotations

import json

import pytest

from railway import ErrorCode, FailureDescription, Result
from railway.http_support import (
    INTERNAL_ERROR_MESSAGE,
    ErrorResponse,
    HttpStatusMapper,
    build_fastapi_response,
    build_response,
)


class TestHttpStatusMapper:
    @pytest.mark.parametrize(
        ("code", "status"),
        [
            (ErrorCode.VALIDATION_ERROR, 400),
            (ErrorCode.NOT_FOUND, 404),
            (ErrorCode.TIMEOUT_ERROR, 504),
            (ErrorCode.TECHNICAL_ERROR, 500),
            (ErrorCode.CONFIGURATION_ERROR, 500),
            (ErrorCode.UNKNOWN_ERROR, 500),
        ],
    )
    def test_maps_every_code(self, code, status):
        assert HttpStatusMapper.map_error_code(code) == status

    def test_map_failure_uses_code(self):
        assert HttpStatusMapper.map_failure(FailureDescription(ErrorCode.NOT_FOUND, "x")) == 404


class TestErrorResponse:
    def test_caller_errors_keep_message(self):
        response = ErrorResponse.from_failure(
            FailureDescription(ErrorCode.VALIDATION_ERROR, "unknown format value of xml")
        )

        assert response.error_code == "VALIDATION_ERROR"
        assert response.message == "unknown format value of xml"

    def test_internal_errors_are_masked(self):
        """
        GIVEN a configuration failure mentioning a key path
        WHEN converted to an error response
        THEN the message is replaced with the opaque internal error text.
        """
        response = ErrorResponse.from_failure(
            FailureDescription(ErrorCode.CONFIGURATION_ERROR, "cannot read /etc/issuers/root/private_key.pem")
        )

        assert response.message == INTERNAL_ERROR_MESSAGE
        assert "private_key" not in json.dumps(response.to_dict())

    def test_to_dict_keys(self):
        body = ErrorResponse.from_failure(FailureDescription(ErrorCode.TIMEOUT_ERROR, "late")).to_dict()

        assert set(body) == {"error_code", "message", "timestamp"}


class TestBuilders:
    def test_build_response_success(self):
        assert build_response(Result.success({"crl": "abc"})) == ({"crl": "abc"}, 200)

    def test_build_response_custom_status(self):
        assert build_response(Result.success({"ok": True}), success_status=201)[1] == 201

    def test_build_response_failure(self):
        body, status = build_response(Result.failure(ErrorCode.NOT_FOUND, "unable to find issuer 'x'"))

        assert status == 404
        assert body["message"] == "unable to find issuer 'x'"

    def test_build_fastapi_response(self):
        response = build_fastapi_response(Result.failure(ErrorCode.TECHNICAL_ERROR, "error creating new CRL"))

        assert response.status_code == 500
        assert json.loads(response.body)["message"] == INTERNAL_ERROR_MESSAGE

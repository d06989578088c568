"""
Unit tests for exception classes and unified_exception_handler.

不需要数据库，纯 Python 测试：
1. BaseAppException 默认值
2. 各子类的默认 type / code / http_status
3. 构造时覆盖 code / http_status
4. unified_exception_handler 把异常转成统一格式的 JsonResponse
"""
import json

import pytest
from rest_framework.exceptions import NotFound, ParseError
from rest_framework.exceptions import ValidationError as DRFValidationError

from intakeform.exception_handler import unified_exception_handler
from intakeform.exceptions import (
    BaseAppException,
    BlockError,
    DependentRecordFailure,
    MalformedTemplate,
    NothingToSubmit,
    ResponseKeyConflict,
    SubmissionTransportFailure,
    UpstreamError,
    ValidationError,
    ValidationViolation,
)


# -------------------------------------------------------------------
# Exception classes
# -------------------------------------------------------------------

class TestBaseAppException:

    def test_defaults(self):
        exc = BaseAppException('something broke')
        assert exc.message == 'something broke'
        assert exc.type == 'error'
        assert exc.code == 'UNKNOWN_ERROR'
        assert exc.http_status == 500
        assert exc.detail is None

    def test_override_code_and_status(self):
        exc = BaseAppException('bad', code='CUSTOM_CODE', http_status=418)
        assert exc.code == 'CUSTOM_CODE'
        assert exc.http_status == 418


class TestSubclassDefaults:

    @pytest.mark.parametrize('exc, type_, code, status', [
        (ValidationError('x'), 'validation_error', 'VALIDATION_ERROR', 400),
        (BlockError('x'), 'block', 'BUSINESS_BLOCK', 409),
        (MalformedTemplate('x'), 'malformed_template', 'MALFORMED_TEMPLATE', 422),
        (ValidationViolation('x', question_id='q1'), 'validation_error', 'QUESTION_REQUIRED', 400),
        (ResponseKeyConflict('x'), 'validation_error', 'RESPONSE_KEY_CONFLICT', 400),
        (NothingToSubmit('x'), 'validation_error', 'NOTHING_TO_SUBMIT', 400),
        (UpstreamError('x'), 'upstream_error', 'UPSTREAM_ERROR', 502),
        (DependentRecordFailure('x'), 'submission_error', 'PATIENT_CREATION_FAILED', 502),
        (SubmissionTransportFailure('x'), 'submission_error', 'SUBMISSION_FAILED', 502),
    ])
    def test_defaults(self, exc, type_, code, status):
        assert (exc.type, exc.code, exc.http_status) == (type_, code, status)

    def test_violation_detail(self):
        exc = ValidationViolation('Last Name is required', question_id='demo', field='Last Name')
        assert exc.question_id == 'demo'
        assert exc.detail == {'question_id': 'demo', 'field': 'Last Name'}

    def test_malformed_template_redirect(self):
        exc = MalformedTemplate('bad', detail={'template_id': 't1'})
        assert exc.detail == {'template_id': 't1', 'redirect': '/forms/templates'}

    def test_upstream_status_code(self):
        exc = UpstreamError('bad', status_code=503)
        assert exc.status_code == 503
        assert exc.http_status == 502


# -------------------------------------------------------------------
# unified_exception_handler
# -------------------------------------------------------------------

class TestUnifiedExceptionHandler:

    def test_app_exception(self):
        response = unified_exception_handler(
            ValidationViolation('First Name is required', question_id='demo', field='First Name'), {},
        )
        assert response.status_code == 400
        assert json.loads(response.content) == {
            'type': 'validation_error',
            'code': 'QUESTION_REQUIRED',
            'message': 'First Name is required',
            'detail': {'question_id': 'demo', 'field': 'First Name'},
        }

    def test_no_detail_key_when_none(self):
        response = unified_exception_handler(NothingToSubmit('Nothing to submit'), {})
        body = json.loads(response.content)
        assert 'detail' not in body
        assert body['code'] == 'NOTHING_TO_SUBMIT'

    def test_drf_validation_error(self):
        response = unified_exception_handler(DRFValidationError({'language': ['required']}), {})
        body = json.loads(response.content)
        assert response.status_code == 400
        assert body['type'] == 'validation_error'
        assert body['detail'] == {'language': ['required']}

    def test_other_drf_exceptions_use_unified_format(self):
        response = unified_exception_handler(NotFound(), {})
        body = json.loads(response.content)
        assert response.status_code == 404
        assert body['type'] == 'request_error'
        assert body['code'] == 'NOT_FOUND'

    def test_malformed_json_body(self):
        response = unified_exception_handler(ParseError('JSON parse error'), {})
        body = json.loads(response.content)
        assert response.status_code == 400
        assert body == {'type': 'request_error', 'code': 'PARSE_ERROR', 'message': 'JSON parse error'}

    def test_upstream_status_added_to_detail(self):
        exc = UpstreamError('Clinic API returned HTTP 503.', code='UPSTREAM_HTTP_ERROR',
                            detail={'url': 'http://clinic.test/api/patients'}, status_code=503)
        response = unified_exception_handler(exc, {})
        body = json.loads(response.content)
        assert response.status_code == 502
        assert body['detail'] == {'url': 'http://clinic.test/api/patients', 'upstream_status': 503}

    def test_unexpected_exceptions_left_to_django(self):
        assert unified_exception_handler(RuntimeError('boom'), {}) is None

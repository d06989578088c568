"""
统一异常处理器。

挂到 DRF 的 EXCEPTION_HANDLER setting 上。
所有响应（无论成功还是失败）前端都能用同一套逻辑判断：
  response.type 存在  → 出问题了（validation_error / block / malformed_template / ...）
  没有 type 字段       → 成功

统一错误响应格式：
{
    "type":    "validation_error",
    "code":    "QUESTION_REQUIRED",
    "message": "First Name is required",
    "detail":  { "question_id": "...", "field": "First Name" }   // 可选
}

clinic 服务端的失败（UpstreamError）额外带上 detail.upstream_status，
前端据此区分「对方拒绝」(4xx) 和「对方挂了」(5xx / 无状态码)。
"""

import logging

from django.http import JsonResponse
from rest_framework.exceptions import APIException
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.views import exception_handler as drf_default_handler

from .exceptions import BaseAppException, UpstreamError

logger = logging.getLogger(__name__)


def unified_exception_handler(exc, context):
    """
    DRF exception handler entry point.

    优先级：
    1. BaseAppException 及其子类 → 统一格式
    2. DRF 自带的 ValidationError（请求解析失败）→ 转成统一格式
    3. 其他 DRF APIException（JSON 解析失败、Content-Type 不支持、405 …）→ 统一格式
    4. 其他异常 → 交给 DRF 默认处理（最终是 500）
    """

    # --- 1. 我们自己的异常体系 ---
    if isinstance(exc, BaseAppException):
        detail = _app_detail(exc)
        if exc.http_status >= 500:
            logger.warning("[Intake] %s %s %s: %s", _view_name(context), exc.type, exc.code, exc.message)
        return _error_response(exc.type, exc.code, exc.message, detail, exc.http_status)

    # --- 2. DRF 自带的 ValidationError ---
    if isinstance(exc, DRFValidationError):
        return _error_response(
            'validation_error', 'VALIDATION_ERROR', 'Request validation failed', exc.detail, 400,
        )

    # --- 3. 其他 DRF 请求错误 ---
    if isinstance(exc, APIException):
        return _error_response(
            'request_error', str(exc.default_code).upper(), str(exc.detail), None, exc.status_code,
        )

    # --- 4. 其他的交给 DRF 默认处理 ---
    return drf_default_handler(exc, context)


def _app_detail(exc):
    if isinstance(exc, UpstreamError) and exc.status_code is not None:
        return {**(exc.detail or {}), 'upstream_status': exc.status_code}
    return exc.detail


def _error_response(type_, code, message, detail, status):
    body = {'type': type_, 'code': code, 'message': message}
    if detail is not None:
        body['detail'] = detail
    return JsonResponse(body, status=status)


def _view_name(context):
    view = (context or {}).get('view')
    return type(view).__name__ if view is not None else '-'

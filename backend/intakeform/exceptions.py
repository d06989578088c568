"""
统一异常体系。

所有业务异常继承 BaseAppException，包含：
- type:        错误类型标识（validation_error / block / malformed_template / ...）
- code:        业务错误码（QUESTION_REQUIRED / NOTHING_TO_SUBMIT / ...）
- message:     人类可读的描述
- detail:      可选的附加信息（dict / list / None）
- http_status: HTTP 状态码

Wizard 的所有错误都在本地处理：View 层只需 raise，exception_handler 统一格式化响应，
session 状态（ResponseStore / SequencerState）永远不会因为报错被清空。
"""


class BaseAppException(Exception):
    """所有业务异常的基类。"""

    type = 'error'
    code = 'UNKNOWN_ERROR'
    http_status = 500

    def __init__(self, message, code=None, detail=None, http_status=None):
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.detail = detail
        super().__init__(message)


class ValidationError(BaseAppException):
    """请求格式不合法（未知字段、越界的 matrix 单元格等），400。"""

    type = 'validation_error'
    code = 'VALIDATION_ERROR'
    http_status = 400


class BlockError(BaseAppException):
    """业务规则阻止操作（session 不存在、重复提交、不在最后一步），409。"""

    type = 'block'
    code = 'BUSINESS_BLOCK'
    http_status = 409


class MalformedTemplate(BaseAppException):
    """
    模板缺少 items 数组，或 items 不是列表 / 含有非对象元素。

    致命错误：session 无法开始，前端应跳回模板列表（detail.redirect）。
    """

    type = 'malformed_template'
    code = 'MALFORMED_TEMPLATE'
    http_status = 422

    def __init__(self, message, code=None, detail=None, http_status=None):
        detail = dict(detail or {})
        detail.setdefault('redirect', '/forms/templates')
        super().__init__(message, code=code, detail=detail, http_status=http_status)


class ValidationViolation(ValidationError):
    """
    当前题目未通过校验，阻止一次 Next / Submit。

    只报告第一个失败的字段（first-failure-wins），detail 里带 question_id 和 field。
    """

    code = 'QUESTION_REQUIRED'

    def __init__(self, message, question_id, field=None, code=None):
        self.question_id = question_id
        self.field = field
        super().__init__(
            message,
            code=code,
            detail={'question_id': question_id, 'field': field},
        )


class ResponseKeyConflict(ValidationError):
    """同一个 question id 混用了两种 key 形状（例如既有 field 又有 cell）。"""

    code = 'RESPONSE_KEY_CONFLICT'


class NothingToSubmit(BaseAppException):
    """所有记录都为空，不发任何网络请求。"""

    type = 'validation_error'
    code = 'NOTHING_TO_SUBMIT'
    http_status = 400


class UpstreamError(BaseAppException):
    """外部 clinic API 调用失败（网络错误或非 2xx）。"""

    type = 'upstream_error'
    code = 'UPSTREAM_ERROR'
    http_status = 502

    def __init__(self, message, code=None, detail=None, http_status=None, status_code=None):
        self.status_code = status_code
        super().__init__(message, code=code, detail=detail, http_status=http_status)


class DependentRecordFailure(BaseAppException):
    """患者记录创建失败或没有返回可用的 id，整次提交中止。"""

    type = 'submission_error'
    code = 'PATIENT_CREATION_FAILED'
    http_status = 502


class SubmissionTransportFailure(BaseAppException):
    """form-response 提交失败，ResponseStore 保留，用户可以直接重试。"""

    type = 'submission_error'
    code = 'SUBMISSION_FAILED'
    http_status = 502

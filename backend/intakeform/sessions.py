"""
Wizard session 的存取。

Wizard 整个对象存在 Django cache 里（本地内存或 Redis，见 settings.CACHES），
不进数据库：提交成功后删除，放弃填写的 session 由 INTAKE_SESSION_TTL 过期清理。

提交中的 in-flight 标记用 cache.add() 实现：add 是原子的，同一 session
同时只能有一个提交请求在跑。
"""

import logging
import uuid
from contextlib import contextmanager

from django.conf import settings
from django.core.cache import cache

from .exceptions import BlockError
from .wizard import Wizard

logger = logging.getLogger(__name__)

SESSION_KEY = "intake:session:{session_id}"
IN_FLIGHT_KEY = "intake:submitting:{session_id}"


def _ttl() -> int:
    return getattr(settings, "INTAKE_SESSION_TTL", 60 * 60 * 4)


def create_session(wizard: Wizard) -> str:
    session_id = uuid.uuid4().hex
    save_session(session_id, wizard)
    logger.info("[Intake][session] created %s for template=%s", session_id, wizard.template.id)
    return session_id


def load_session(session_id: str) -> Wizard:
    """Raises BlockError(404) if the session does not exist or has expired."""
    wizard = cache.get(SESSION_KEY.format(session_id=session_id))
    if wizard is None:
        raise BlockError(
            message='Intake session not found or expired',
            code='SESSION_NOT_FOUND',
            detail={'session_id': session_id},
            http_status=404,
        )
    return wizard


def save_session(session_id: str, wizard: Wizard) -> None:
    cache.set(SESSION_KEY.format(session_id=session_id), wizard, timeout=_ttl())


def discard_session(session_id: str) -> None:
    cache.delete(SESSION_KEY.format(session_id=session_id))
    logger.info("[Intake][session] discarded %s", session_id)


@contextmanager
def submission_in_flight(session_id: str):
    """
    提交期间持有 in-flight 标记；已有提交在跑时直接 409。
    无论成功失败，退出时都会释放。
    """
    key = IN_FLIGHT_KEY.format(session_id=session_id)
    timeout = getattr(settings, "CLINIC_API_TIMEOUT", 15) * 3
    if not cache.add(key, 1, timeout=timeout):
        raise BlockError(
            message='A submission for this form is already in progress.',
            code='SUBMISSION_IN_FLIGHT',
            detail={'session_id': session_id},
        )
    try:
        yield
    finally:
        cache.delete(key)

"""
HttpClinicClient: 用 requests 调 clinic 服务端的 REST 接口。

  GET  /api/form-templates/<id>
  GET  /api/auth/doctors
  POST /api/patients
  POST /api/form-responses   (multipart: payload + attachments[<questionId>])

网络错误和非 2xx 一律转换成 UpstreamError，带上状态码和响应片段方便排查。
"""

import json
import logging

import requests

from ..exceptions import UpstreamError
from .base import ClinicApiClient
from .types import Doctor, OutgoingFile

logger = logging.getLogger(__name__)


class HttpClinicClient(ClinicApiClient):

    TEMPLATE_PATH = "/api/form-templates/{template_id}"
    DOCTORS_PATH = "/api/auth/doctors"
    PATIENTS_PATH = "/api/patients"
    FORM_RESPONSES_PATH = "/api/form-responses"

    def __init__(self, base_url: str, token: str = "", timeout: float = 15.0, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    # ── 接口实现 ───────────────────────────────────────────────────────────

    def fetch_template(self, template_id: str) -> dict:
        return self._request("GET", self.TEMPLATE_PATH.format(template_id=template_id))

    def list_doctors(self) -> list[Doctor]:
        body = self._request("GET", self.DOCTORS_PATH)
        if not isinstance(body, list):
            raise UpstreamError(
                message="Doctor directory returned an unexpected payload.",
                code='UNEXPECTED_RESPONSE',
            )
        return [
            Doctor(
                id=str(entry.get("id") or entry.get("_id") or ""),
                first_name=(entry.get("firstName") or "").strip(),
                last_name=(entry.get("lastName") or "").strip(),
            )
            for entry in body
            if isinstance(entry, dict) and (entry.get("id") or entry.get("_id"))
        ]

    def create_patient(self, payload: dict) -> dict:
        return self._request("POST", self.PATIENTS_PATH, json=payload)

    def submit_form_response(self, document: dict, files: list[OutgoingFile]) -> dict:
        # 没有附件时也必须是 multipart/form-data，payload 作为第一个 part
        parts = [("payload", (None, json.dumps(document, ensure_ascii=False), "application/json"))]
        parts += [
            (f.field_name, (f.file_name, f.content, f.content_type))
            for f in files
        ]
        return self._request("POST", self.FORM_RESPONSES_PATH, files=parts)

    # ── 内部 ───────────────────────────────────────────────────────────────

    def _request(self, method: str, path: str, **kwargs):
        url = f"{self.base_url}{path}"
        logger.info("[ClinicApi] %s %s", method, url)

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("[ClinicApi] %s %s failed: %s", method, url, exc)
            raise UpstreamError(
                message=f"Clinic API unreachable: {exc}",
                code='UPSTREAM_UNREACHABLE',
                detail={'url': url},
            ) from exc

        if not response.ok:
            logger.warning("[ClinicApi] %s %s → %d", method, url, response.status_code)
            raise UpstreamError(
                message=f"Clinic API returned HTTP {response.status_code}.",
                code='UPSTREAM_HTTP_ERROR',
                detail={'url': url, 'status': response.status_code, 'body': response.text[:500]},
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}

"""
Clinic API 层的标准响应结构。

所有 ClinicApiClient 实现都返回这些对象，业务层（services.py）不关心背后是 HTTP 还是测试替身。
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Doctor:
    id: str
    first_name: str
    last_name: str

    @property
    def display_name(self) -> str:
        return f"Dr. {self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class OutgoingFile:
    """multipart 里的一个附件 part。field_name 形如 attachments[<questionId>]。"""

    field_name: str
    file_name: str
    content: bytes
    content_type: str = "application/octet-stream"

"""
ClinicApiClient: 所有 clinic 服务端协作方的抽象接口。

每个新实现只需：
1. 继承 ClinicApiClient
2. 实现下面四个方法
3. 在 factory.py 的 _REGISTRY 注册一行

services.py 完全不知道背后是哪种实现。
"""

from abc import ABC, abstractmethod

from .types import Doctor, OutgoingFile


class ClinicApiClient(ABC):

    @abstractmethod
    def fetch_template(self, template_id: str) -> dict:
        """
        GET 模板文档（原始 dict，由 Normalizer 负责校验）。

        Raises:
            UpstreamError: 网络错误或非 2xx
        """

    @abstractmethod
    def list_doctors(self) -> list[Doctor]:
        """GET 医生目录，用于 demographics 题的医生选择框。"""

    @abstractmethod
    def create_patient(self, payload: dict) -> dict:
        """
        POST 患者记录，返回服务端的响应体（期望形如 {"patient": {"id": ...}}）。

        Raises:
            UpstreamError: 网络错误或非 2xx
        """

    @abstractmethod
    def submit_form_response(self, document: dict, files: list[OutgoingFile]) -> dict:
        """
        POST multipart：payload part 是 JSON 文档，每个文件一个 attachments[<qid>] part。
        响应体只作参考。

        Raises:
            UpstreamError: 网络错误或非 2xx
        """

"""
工厂函数：根据 settings.CLINIC_API_CLIENT 返回对应的 ClinicApiClient 实例。

新增实现只需：
  1. 新建 XxxClient(ClinicApiClient) 类
  2. 在此处 _build_registry() 加一行
  不需要修改 services.py 或任何业务代码。
"""

from django.conf import settings

from .base import ClinicApiClient


def _build_registry() -> dict[str, type[ClinicApiClient]]:
    from .http import HttpClinicClient

    return {
        "http": HttpClinicClient,
    }


def get_clinic_client() -> ClinicApiClient:
    """
    从 settings 读取实现名和连接参数，返回 ClinicApiClient 实例。

    Raises:
        ValueError: CLINIC_API_CLIENT 未知
    """
    name = getattr(settings, "CLINIC_API_CLIENT", "http")
    registry = _build_registry()
    client_cls = registry.get(name)

    if client_cls is None:
        raise ValueError(
            f"Unknown CLINIC_API_CLIENT: {name!r}. "
            f"Known clients: {list(registry.keys())}"
        )

    return client_cls(
        base_url=settings.CLINIC_API_BASE_URL,
        token=getattr(settings, "CLINIC_API_TOKEN", ""),
        timeout=getattr(settings, "CLINIC_API_TIMEOUT", 15.0),
    )

from .base import ClinicApiClient
from .factory import get_clinic_client
from .types import Doctor, OutgoingFile

__all__ = ["ClinicApiClient", "Doctor", "OutgoingFile", "get_clinic_client"]

from .local_storage import LocalStorageService
from .hostel_service import HostelService



__all__ = ["LocalStorageService", "HostelService"]

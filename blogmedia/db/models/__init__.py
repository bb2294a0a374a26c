from .setting import Setting
from .media_file import MediaFile
from .media_folder import MediaFolder

__all__ = ["Setting", "MediaFile", "MediaFolder"]

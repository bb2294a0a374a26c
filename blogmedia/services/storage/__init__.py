from .client import ListPage, RemoteObject, S3StorageError, StorageClient
from .factory import StorageClientFactory
from .signed_urls import SignedUrl, SignedUrlService

__all__ = [
    "ListPage",
    "RemoteObject",
    "S3StorageError",
    "SignedUrl",
    "SignedUrlService",
    "StorageClient",
    "StorageClientFactory",
]

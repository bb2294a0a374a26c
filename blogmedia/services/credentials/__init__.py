from .config_store import CredentialConfigStore
from .manager import CredentialLifecycleManager
from .providers import CredentialProvider, build_provider
from .scheduler import CredentialRefreshScheduler

__all__ = [
    "CredentialConfigStore",
    "CredentialLifecycleManager",
    "CredentialProvider",
    "CredentialRefreshScheduler",
    "build_provider",
]

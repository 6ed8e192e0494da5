"""CloudVault: a WebDAV file server with folder sharing.

Files live in a blob store, their metadata in a key-value store, and a
virtual folder tree is derived from both.
"""

__version__ = "0.1.0"

from cloudvault._vault import CloudVault
from cloudvault.config import VaultConfig, load_config
from cloudvault.fs.registry import FileRegistry, TreeSnapshot
from cloudvault.fs.sharing import FileShareService, FolderSharingService, is_folder_shared
from cloudvault.gate import ShareGate, ShareResolution, ShareState
from cloudvault.models import FileRecord, FolderRecord, FolderShareLink

__all__ = [
    "CloudVault",
    "FileRecord",
    "FileRegistry",
    "FileShareService",
    "FolderRecord",
    "FolderShareLink",
    "FolderSharingService",
    "ShareGate",
    "ShareResolution",
    "ShareState",
    "TreeSnapshot",
    "VaultConfig",
    "__version__",
    "is_folder_shared",
    "load_config",
]

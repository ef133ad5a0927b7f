from .base import DirectorySource, MailboxContactStore
from .directory import GraphDirectorySource
from .mailbox import ContactFolderNotFound, GraphMailboxStore

__all__ = [
    "DirectorySource",
    "MailboxContactStore",
    "GraphDirectorySource",
    "GraphMailboxStore",
    "ContactFolderNotFound",
]

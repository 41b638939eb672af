from .accounts import AccountCategory, AccountClassifier, AccountLookupError, UnknownCategoryError
from .api import GitHubAPI, ListError, Transport, next_link
from .listing import Repository, RepositoryLister
from .repo_backup import RepoState, RepoSyncResult, SyncError, SyncExecutor

__all__ = [
    "AccountCategory",
    "AccountClassifier",
    "AccountLookupError",
    "UnknownCategoryError",
    "GitHubAPI",
    "ListError",
    "Transport",
    "next_link",
    "Repository",
    "RepositoryLister",
    "RepoState",
    "RepoSyncResult",
    "SyncError",
    "SyncExecutor",
]

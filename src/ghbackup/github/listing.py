from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ghbackup.config import ListingScope

from .accounts import AccountClassifier
from .api import GitHubAPI, ListError

LOG = logging.getLogger(__name__)

PER_PAGE = 100


@dataclass(frozen=True)
class Repository:
    path: str
    clone_url: str
    private: bool = False

    @property
    def owner(self) -> str:
        return self.path.split("/", 1)[0] if "/" in self.path else ""

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "Repository":
        if not isinstance(item, dict):
            raise ListError(f"Unexpected repository entry: {item!r}")
        path = item.get("full_name") or item.get("name")
        clone_url = item.get("clone_url") or item.get("git_url") or item.get("ssh_url")
        if not path or not clone_url:
            raise ListError(f"Repository entry missing name or clone URL: {item.get('id', item)!r}")
        return cls(path=path, clone_url=clone_url, private=bool(item.get("private", False)))


class RepositoryLister:
    """Collects every repository of an account by following ``Link`` pagination."""

    def __init__(self, api: GitHubAPI, classifier: Optional[AccountClassifier] = None) -> None:
        self._api = api
        self._classifier = classifier or AccountClassifier(api)

    def listing_url(self, account: Optional[str], scope: ListingScope) -> str:
        if scope is ListingScope.AUTHENTICATED:
            return self._api.url(f"user/repos?per_page={PER_PAGE}")
        if not account:
            raise ListError("An account is required to list its repositories")
        category = self._classifier.classify(account)
        return self._api.url(f"{category.value}/{account}/repos?per_page={PER_PAGE}")

    def list(
        self,
        account: Optional[str],
        scope: ListingScope = ListingScope.ACCOUNT,
        filter_by_owner: bool = False,
    ) -> Tuple[Repository, ...]:
        url = self.listing_url(account, scope)
        repositories: List[Repository] = []
        seen = set()
        pages = 0

        for page in self._api.iterate_pages(url):
            pages += 1
            for item in page:
                repo = Repository.from_api(item)
                if repo.path in seen:
                    continue
                seen.add(repo.path)
                repositories.append(repo)

        if filter_by_owner and account:
            repositories = [repo for repo in repositories if repo.owner == account]

        LOG.debug("Listed %d repositories across %d page(s)", len(repositories), pages)
        return tuple(repositories)

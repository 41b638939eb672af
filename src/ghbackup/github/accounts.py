from __future__ import annotations

from enum import Enum

from .api import GitHubAPI, ListError


class AccountLookupError(ListError):
    """Raised when the account info endpoint cannot be read."""


class UnknownCategoryError(ListError):
    """Raised when GitHub reports an account type other than User or Organization."""


class AccountCategory(str, Enum):
    USER = "users"
    ORGANIZATION = "orgs"


_TYPES = {
    "User": AccountCategory.USER,
    "Organization": AccountCategory.ORGANIZATION,
}


class AccountClassifier:
    def __init__(self, api: GitHubAPI) -> None:
        self._api = api

    def classify(self, account: str) -> AccountCategory:
        url = self._api.url(f"users/{account}")
        try:
            payload, _ = self._api.get(url)
        except ListError as exc:
            raise AccountLookupError(f"Cannot get user info for {account}: {exc}") from exc

        if not isinstance(payload, dict):
            raise AccountLookupError(f"Malformed user info for {account}")

        account_type = payload.get("type")
        category = _TYPES.get(account_type) if isinstance(account_type, str) else None
        if category is None:
            raise UnknownCategoryError(f"Unknown type of account {account_type} for {account}")
        return category

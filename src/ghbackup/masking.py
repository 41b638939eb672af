from __future__ import annotations

import re
from typing import Iterable, List, Sequence
from urllib.parse import quote

REDACTED = "###"
MAX_PASSES = 8


class SecretMasker:
    """Replaces every occurrence of known secrets with ``REDACTED``.

    Percent-encoded forms are masked too, since secrets embedded in clone URLs
    show up encoded in git's output. Existing markers are matched before any
    shorter secret and left alone. A replacement can complete a secret that
    contains the marker, so substitution repeats until the text is stable and
    masking twice changes nothing. Secrets that are part of the marker itself
    (such as ``#``) still appear inside every marker.
    """

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        variants = set()
        for secret in secrets:
            if not secret:
                continue
            variants.add(secret)
            variants.add(quote(secret, safe=""))
        self._secrets: List[str] = sorted(variants, key=len, reverse=True)
        if self._secrets:
            longer = [re.escape(s) for s in self._secrets if len(s) > len(REDACTED)]
            shorter = [re.escape(s) for s in self._secrets if len(s) <= len(REDACTED)]
            self._pattern = re.compile("|".join(longer + [re.escape(REDACTED)] + shorter))
        else:
            self._pattern = None

    def mask(self, value: str) -> str:
        if self._pattern is None or not value:
            return value
        masked = self._pattern.sub(REDACTED, value)
        for _ in range(MAX_PASSES):
            again = self._pattern.sub(REDACTED, masked)
            if again == masked:
                break
            masked = again
        return masked

    def mask_all(self, values: Sequence[str]) -> List[str]:
        return [self.mask(value) for value in values]


def mask_secrets(values: Sequence[str], secrets: Iterable[str]) -> List[str]:
    return SecretMasker(secrets).mask_all(values)

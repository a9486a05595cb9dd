"""
Request Tracker - Correlation tokens for late-arriving results

Background work (diagram generation, introspection, query execution) can
finish after the user has closed the tab or switched connection that asked
for it. Each request gets a token; a result is applied only while its token
is still the latest one issued for the target.
"""
from dataclasses import dataclass
from typing import Dict
import itertools
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestToken:
    """Identifies one request against one target (tab id, connection id...)."""
    target_id: str
    request_id: int


class RequestTracker:
    """
    Issues tokens and answers whether a token is still current.

    Usage:
        token = tracker.begin(tab.id)
        ...                                  # later, on the worker's signal
        if tracker.finish(token):
            apply(result)
    """

    def __init__(self):
        self._latest: Dict[str, int] = {}
        self._counter = itertools.count(1)

    def begin(self, target_id: str) -> RequestToken:
        """Start a request for target_id, superseding any pending one."""
        token = RequestToken(target_id, next(self._counter))
        self._latest[target_id] = token.request_id
        return token

    def is_current(self, token: RequestToken) -> bool:
        return self._latest.get(token.target_id) == token.request_id

    def is_pending(self, target_id: str) -> bool:
        return target_id in self._latest

    def finish(self, token: RequestToken) -> bool:
        """
        Complete a request.

        Returns:
            True if the token was current (the caller should apply its
            result), False if it was superseded or its target forgotten.
        """
        if not self.is_current(token):
            logger.debug(f"Discarding stale result for {token.target_id} (#{token.request_id})")
            return False
        del self._latest[token.target_id]
        return True

    def forget(self, target_id: str):
        """Drop any pending request for a target that no longer exists."""
        self._latest.pop(target_id, None)

"""
Server Selector.

Chooses the base URL for each call.

Policy:
    1. An explicit override is used unconditionally.
    2. Otherwise the operation's own servers (operation or path level) are
       candidates, falling back to the document's top-level servers.
    3. One candidate is picked uniformly at random per call.

The random source is injected so tests can seed it.
"""

from __future__ import annotations

import logging
import random
from typing import Any

from openapi_mcp.errors import NoServerAvailable
from openapi_mcp.spec.extractor import server_urls
from openapi_mcp.spec.models import Operation

logger = logging.getLogger(__name__)


class ServerSelector:
    """
    Picks a base URL per call.

    Example:
        selector = ServerSelector(rng=random.Random(7))
        base_url = selector.select_base_url(document, operation)
    """

    def __init__(self, override: str | None = None, rng: random.Random | None = None):
        self._override = override.rstrip("/") if override else None
        self._rng = rng or random.Random()

    @property
    def override(self) -> str | None:
        return self._override

    def candidates(self, document: dict[str, Any], operation: Operation | None = None) -> tuple[str, ...]:
        if operation is not None and operation.servers:
            return operation.servers
        return server_urls(document.get("servers"))

    def select_base_url(self, document: dict[str, Any], operation: Operation | None = None) -> str:
        """
        Choose a base URL.

        Raises:
            NoServerAvailable: No override and no servers declared
        """
        if self._override:
            return self._override

        candidates = self.candidates(document, operation)
        if not candidates:
            raise NoServerAvailable(
                "No server URL available: the document declares no servers and no "
                "base URL override is configured (set OPENAPI_BASE_URL)."
            )

        choice = self._rng.choice(candidates).rstrip("/")
        if len(candidates) > 1:
            logger.debug(f"[server_selector] Selected {choice} from {len(candidates)} servers")
        return choice

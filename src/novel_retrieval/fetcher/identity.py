"""Rotating client identity headers."""

import random

from novel_retrieval.config import DEFAULT_USER_AGENTS


class IdentityRotator:
    """Hand out browser-like request headers with a random user agent."""

    def __init__(self, user_agents: list[str] | None = None, rng: random.Random | None = None):
        self.user_agents = user_agents or list(DEFAULT_USER_AGENTS)
        self._rng = rng or random.Random()

    def user_agent(self) -> str:
        return self._rng.choice(self.user_agents)

    def headers(self, referer: str | None = None) -> dict[str, str]:
        """Build one request's headers; mobile agents drop desktop-only hints."""
        user_agent = self.user_agent()
        headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "DNT": "1",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "same-origin" if referer else "none",
            "Cache-Control": "max-age=0",
        }
        if not _is_mobile(user_agent):
            headers["Sec-Fetch-User"] = "?1"
        if referer:
            headers["Referer"] = referer
        return headers


def _is_mobile(user_agent: str) -> bool:
    return "iPhone" in user_agent or "Android" in user_agent

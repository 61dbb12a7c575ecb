"""Process-local registry of which sessions follow which regions."""

import asyncio
from collections import defaultdict
from typing import Dict, Set


class SubscriptionRegistry:
    """
    Tracks connected sessions and their region memberships.

    A session may belong to several regions: each join adds a membership and
    none is dropped until the session leaves. State lives in memory only and
    is rebuilt from new joins after a restart.
    """

    def __init__(self):
        self._sessions: Set[str] = set()
        self._members: Dict[str, Set[str]] = defaultdict(set)
        self._regions: Dict[str, Set[str]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def register(self, session_id: str) -> None:
        """Make a newly connected session reachable by global broadcasts."""
        async with self._lock:
            self._sessions.add(session_id)

    async def join(self, session_id: str, region: str) -> None:
        async with self._lock:
            self._sessions.add(session_id)
            self._members[region].add(session_id)
            self._regions[session_id].add(region)

    async def leave(self, session_id: str) -> Set[str]:
        """Forget a session and all its regions. Returns the regions it left."""
        async with self._lock:
            self._sessions.discard(session_id)
            regions = self._regions.pop(session_id, set())
            for region in regions:
                members = self._members.get(region)
                if members is None:
                    continue
                members.discard(session_id)
                if not members:
                    del self._members[region]
            return regions

    async def members_of(self, region: str) -> Set[str]:
        async with self._lock:
            return set(self._members.get(region, ()))

    async def regions_of(self, session_id: str) -> Set[str]:
        async with self._lock:
            return set(self._regions.get(session_id, ()))

    async def all_sessions(self) -> Set[str]:
        async with self._lock:
            return set(self._sessions)

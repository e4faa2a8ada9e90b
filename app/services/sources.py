"""Upstream collection fetchers for the general report.

The four source collections (members, goals, contributions, loans) are read
from the system-of-record API concurrently. Each fetch fails independently;
errors are classified here so callers never inspect messages.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from app.core.config import settings
from app.core.security import AuthContext
from app.schemas.source import ContributionRecord, GoalRecord, LoanRecord, UserRecord

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)

MEMBERS = "members"
GOALS = "goals"
CONTRIBUTIONS = "contributions"
LOANS = "loans"


class UpstreamError(Exception):
    """A source collection could not be fetched."""

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.source = source
        self.status_code = status_code


class UpstreamAuthorizationError(UpstreamError):
    """The upstream rejected the forwarded credentials (401/403)."""
    pass


class UpstreamTransportError(UpstreamError):
    """Connection failure, timeout, unexpected status or unreadable body."""
    pass


@dataclass
class SourceSnapshot:
    """The settled result of one refresh's four fetches."""
    members: List[UserRecord]
    goals: List[GoalRecord] = field(default_factory=list)
    contributions: List[ContributionRecord] = field(default_factory=list)
    loans: List[LoanRecord] = field(default_factory=list)
    degraded_sources: List[str] = field(default_factory=list)


def create_upstream_client() -> httpx.AsyncClient:
    """Build the shared client used for all upstream reads."""
    return httpx.AsyncClient(
        base_url=settings.UPSTREAM_API_BASE_URL,
        timeout=httpx.Timeout(
            settings.UPSTREAM_TIMEOUT_SECONDS,
            connect=settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS,
        ),
        headers={"Accept": "application/json"},
    )


class UpstreamClient:
    """Reads the source collections with an explicitly passed AuthContext."""

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def _get_collection(
        self,
        source: str,
        path: str,
        model: Type[RecordT],
        auth: AuthContext,
    ) -> List[RecordT]:
        try:
            response = await self.http.get(path, headers=auth.headers())
        except httpx.TimeoutException as e:
            raise UpstreamTransportError(source, f"Timed out fetching {source}: {e}") from e
        except httpx.HTTPError as e:
            raise UpstreamTransportError(source, f"Could not reach upstream for {source}: {e}") from e

        if response.status_code in (401, 403):
            raise UpstreamAuthorizationError(
                source,
                f"Upstream rejected credentials for {source}",
                status_code=response.status_code,
            )
        if response.status_code >= 400:
            raise UpstreamTransportError(
                source,
                f"Upstream returned {response.status_code} for {source}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamTransportError(source, f"Invalid JSON in {source} response") from e

        if payload is None:
            return []
        if not isinstance(payload, list):
            raise UpstreamTransportError(source, f"Expected a list of {source}, got {type(payload).__name__}")

        try:
            return [model.model_validate(item) for item in payload]
        except ValidationError as e:
            raise UpstreamTransportError(source, f"Malformed {source} record: {e}") from e

    async def fetch_members(self, auth: AuthContext) -> List[UserRecord]:
        return await self._get_collection(MEMBERS, settings.MEMBERS_PATH, UserRecord, auth)

    async def fetch_goals(self, auth: AuthContext) -> List[GoalRecord]:
        return await self._get_collection(GOALS, settings.GOALS_PATH, GoalRecord, auth)

    async def fetch_contributions(self, auth: AuthContext) -> List[ContributionRecord]:
        return await self._get_collection(
            CONTRIBUTIONS, settings.CONTRIBUTIONS_PATH, ContributionRecord, auth
        )

    async def fetch_loans(self, auth: AuthContext) -> List[LoanRecord]:
        return await self._get_collection(LOANS, settings.LOANS_PATH, LoanRecord, auth)


async def load_sources(client: UpstreamClient, auth: AuthContext) -> SourceSnapshot:
    """Fetch all four collections in parallel and wait for every one to settle.

    A members failure is re-raised. Goals, contributions and loans failures
    degrade that source to an empty list and are recorded on the snapshot.
    Anything that is not an UpstreamError is a bug and propagates.
    """
    members, goals, contributions, loans = await asyncio.gather(
        client.fetch_members(auth),
        client.fetch_goals(auth),
        client.fetch_contributions(auth),
        client.fetch_loans(auth),
        return_exceptions=True,
    )

    if isinstance(members, BaseException):
        raise members

    snapshot = SourceSnapshot(members=members)
    for source, result in ((GOALS, goals), (CONTRIBUTIONS, contributions), (LOANS, loans)):
        if isinstance(result, UpstreamError):
            logger.warning(f"Source '{source}' unavailable, continuing with empty collection: {result}")
            snapshot.degraded_sources.append(source)
            result = []
        elif isinstance(result, BaseException):
            raise result
        setattr(snapshot, source, result)

    logger.info(
        f"Loaded sources: {len(snapshot.members)} users, {len(snapshot.goals)} goals, "
        f"{len(snapshot.contributions)} contributions, {len(snapshot.loans)} loans"
    )
    return snapshot

"""General report orchestration.

A ReportSession owns one caller's report: it refreshes the source snapshot
(one refresh in flight at a time), maps fetch failures onto report errors and
renders views of the last settled snapshot.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

from app.core.config import settings
from app.core.security import AuthContext
from app.schemas.report import (
    EMPTY_STATE_MESSAGES,
    GeneralReportResponse,
    MemberSummary,
    ReportEmptyState,
    ReportView,
)
from app.services.aggregation import build_member_summaries
from app.services.export import ExportPayload, export_members_csv
from app.services.ranking import apply_view, summarize_view
from app.services.sources import (
    SourceSnapshot,
    UpstreamAuthorizationError,
    UpstreamClient,
    UpstreamTransportError,
    load_sources,
)

logger = logging.getLogger(__name__)


class ReportError(Exception):
    """Fatal report failure; the caller may retry."""

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.message = message
        self.retryable = retryable


class ReportAuthorizationError(ReportError):
    """The member directory rejected the caller's credentials."""
    pass


class ReportUnavailableError(ReportError):
    """The member directory could not be reached."""
    pass


class ReportGenerationError(ReportError):
    """Unexpected failure while building the report."""
    pass


@dataclass
class ReportSnapshot:
    members: List[MemberSummary]
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    degraded_sources: List[str] = field(default_factory=list)


def empty_state_for(total_available: int, displayed: int) -> Optional[ReportEmptyState]:
    if total_available == 0:
        return ReportEmptyState.NO_MEMBERS
    if displayed == 0:
        return ReportEmptyState.NO_MATCHES
    return None


def build_report_response(snapshot: ReportSnapshot, view: ReportView) -> GeneralReportResponse:
    rows = apply_view(snapshot.members, view)
    empty_state = empty_state_for(len(snapshot.members), len(rows))
    return GeneralReportResponse(
        generated_at=snapshot.generated_at,
        ranking_mode=view.mode,
        sort_by=view.sort_by,
        sort_order=view.sort_order,
        search=view.search,
        limit=view.limit,
        total_available=len(snapshot.members),
        members=rows,
        statistics=summarize_view(rows),
        empty_state=empty_state,
        empty_message=EMPTY_STATE_MESSAGES.get(empty_state) if empty_state else None,
        degraded_sources=list(snapshot.degraded_sources),
    )


def export_report(snapshot: ReportSnapshot, view: ReportView) -> ExportPayload:
    return export_members_csv(apply_view(snapshot.members, view))


class ReportSession:
    """One caller's report state: last snapshot plus the in-flight refresh."""

    def __init__(self, client: UpstreamClient, auth: AuthContext):
        self.client = client
        self.auth = auth
        self.snapshot: Optional[ReportSnapshot] = None
        self.last_used = time.monotonic()
        self._inflight: Optional[asyncio.Future] = None
        self._inflight_generation = 0
        self._generation = 0

    @property
    def is_loading(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def abandon(self) -> None:
        """Drop the report; a refresh still in flight completes but is discarded."""
        self._generation += 1
        self.snapshot = None
        if self.is_loading:
            logger.info("Report abandoned while a refresh was in flight; its result will be discarded")

    async def refresh(self) -> ReportSnapshot:
        """Recompute the report from scratch, or join the refresh already running."""
        if self.is_loading and self._inflight_generation == self._generation:
            logger.info("Report refresh already in flight, waiting for it instead")
        else:
            # Never join a refresh started before abandon(); its result is discarded
            self._inflight_generation = self._generation
            self._inflight = asyncio.ensure_future(self._compute(self._generation))
        # Shielded so a caller going away does not cancel the shared refresh
        return await asyncio.shield(self._inflight)

    async def current(self, force_refresh: bool = False) -> ReportSnapshot:
        if force_refresh or self.snapshot is None:
            return await self.refresh()
        return self.snapshot

    async def _compute(self, generation: int) -> ReportSnapshot:
        started = time.monotonic()
        sources = await self._load_sources()

        try:
            members = build_member_summaries(
                sources.members, sources.goals, sources.contributions, sources.loans
            )
        except Exception as e:
            logger.exception("Failed to build general report")
            raise ReportGenerationError(f"Failed to load report: {e}") from e

        snapshot = ReportSnapshot(members=members, degraded_sources=sources.degraded_sources)
        if generation != self._generation:
            logger.info("Discarding report refresh for an abandoned session")
            return snapshot

        self.snapshot = snapshot
        logger.info(
            f"General report refreshed: {len(members)} members in {time.monotonic() - started:.2f}s"
        )
        return snapshot

    async def _load_sources(self) -> SourceSnapshot:
        attempt = 0
        while True:
            try:
                return await load_sources(self.client, self.auth)
            except UpstreamAuthorizationError as e:
                if attempt == 0 and self.auth.is_fresh(settings.AUTH_FRESHNESS_SECONDS):
                    attempt += 1
                    logger.warning(
                        f"Members fetch unauthorized right after credential setup, "
                        f"retrying in {settings.AUTH_RETRY_DELAY_SECONDS}s"
                    )
                    await asyncio.sleep(settings.AUTH_RETRY_DELAY_SECONDS)
                    continue
                logger.error(f"Members fetch unauthorized: {e}")
                raise ReportAuthorizationError("Authentication failed. Please log in again.") from e
            except UpstreamTransportError as e:
                logger.error(f"Members fetch failed: {e}")
                raise ReportUnavailableError(f"Failed to load members: {e}") from e
            except Exception as e:
                logger.exception("Unexpected error while loading report sources")
                raise ReportGenerationError(f"Failed to load report: {e}") from e


class ReportSessionRegistry:
    """In-memory report sessions, one per distinct set of caller credentials.

    A session is only reused by a request carrying exactly the credentials it
    was created with. Sessions idle for longer than `idle_seconds` are dropped,
    and the least recently used one is evicted once `max_sessions` are held.
    """

    def __init__(
        self,
        max_sessions: Optional[int] = None,
        idle_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_sessions = max_sessions if max_sessions is not None else settings.REPORT_SESSION_MAX
        self.idle_seconds = idle_seconds if idle_seconds is not None else settings.REPORT_SESSION_IDLE_SECONDS
        self._clock = clock
        self._sessions: "OrderedDict[str, ReportSession]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, client: UpstreamClient, auth: AuthContext) -> ReportSession:
        now = self._clock()
        self._expire(now)

        key = auth.credential_key()
        session = self._sessions.get(key)
        if session is None:
            while self._sessions and len(self._sessions) >= self.max_sessions:
                _, evicted = self._sessions.popitem(last=False)
                evicted.abandon()
                logger.info(f"Evicted least recently used report session for {evicted.auth.identity}")
            session = ReportSession(client, auth)
            self._sessions[key] = session
        else:
            self._sessions.move_to_end(key)
        session.last_used = now
        return session

    def discard(self, auth: AuthContext) -> bool:
        session = self._sessions.pop(auth.credential_key(), None)
        if session is None:
            return False
        session.abandon()
        return True

    def release(self, session: ReportSession) -> bool:
        """Forget `session` if it is still registered, e.g. after its credentials were rejected."""
        key = session.auth.credential_key()
        if self._sessions.get(key) is not session:
            return False
        del self._sessions[key]
        session.abandon()
        return True

    def _expire(self, now: float) -> None:
        expired = [
            key for key, session in self._sessions.items()
            if now - session.last_used > self.idle_seconds
        ]
        for key in expired:
            self._sessions.pop(key).abandon()
        if expired:
            logger.info(f"Expired {len(expired)} idle report sessions")

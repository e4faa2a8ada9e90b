"""Shared fixtures for report tests.

Upstream payloads are built as camelCase dicts, exactly as the system-of-record
API returns them, and parsed through the same schemas the service uses.
"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from app.core.config import settings
from app.core.security import AuthContext
from app.schemas.source import ContributionRecord, GoalRecord, LoanRecord, UserRecord

from factories import contribution_payload, goal_payload, loan_payload, user_payload

UPSTREAM_URL = "http://upstream.test"


@pytest.fixture
def community_payloads():
    """Four source collections describing a small community.

    - Amara (1): 200 + 300 + 100 approved over goals 10 and 11, 50 pending on goal 12.
    - Bongani (2): six approved contributions of 10 to goal 10; loan fully repaid.
    - Admin (3): an administrator with a large contribution.
    - Chipo (4): no contributions; approved loan with 250 outstanding.
    - Dalitso (5): one approved contribution of exactly 1000.
    """
    users = [
        user_payload(1, "Amara", "Phiri", phoneNumber="+260 977 111 222"),
        user_payload(2, "Bongani", "Zulu"),
        user_payload(3, "Grace", "Admin", role="Admin"),
        user_payload(4, "Chipo", "Banda", phoneNumber="+260 966 333 444"),
        user_payload(5, "Dalitso", "Mwale"),
    ]
    goals = [goal_payload(10, "School Fees"), goal_payload(11, "Harvest Fund"), goal_payload(12, "Emergency Pot")]
    contributions = [
        contribution_payload(1, 1, 10, 200),
        contribution_payload(2, 1, 10, 300),
        contribution_payload(3, 1, 11, 100),
        contribution_payload(4, 1, 12, 50, status="Pending"),
        contribution_payload(30, 3, 10, 5000),
        contribution_payload(40, 5, 11, "1000.00"),
    ]
    contributions += [contribution_payload(10 + i, 2, 10, 10) for i in range(6)]
    loans = [
        loan_payload(1, 2, status="Approved", remaining=0),
        loan_payload(2, 4, status="Approved", remaining=250),
        loan_payload(3, 1, status="Pending", remaining=500),
    ]
    return {"users": users, "goals": goals, "contributions": contributions, "loans": loans}


@pytest.fixture
def community_records(community_payloads):
    return {
        "users": [UserRecord.model_validate(p) for p in community_payloads["users"]],
        "goals": [GoalRecord.model_validate(p) for p in community_payloads["goals"]],
        "contributions": [ContributionRecord.model_validate(p) for p in community_payloads["contributions"]],
        "loans": [LoanRecord.model_validate(p) for p in community_payloads["loans"]],
    }


@pytest.fixture
def fresh_auth():
    return AuthContext(email="admin@example.org", password="secret")


@pytest.fixture
def stale_auth():
    return AuthContext(
        email="admin@example.org",
        password="secret",
        established_at=datetime.now(timezone.utc) - timedelta(hours=1),
    )


@pytest.fixture
def no_retry_delay(monkeypatch):
    monkeypatch.setattr(settings, "AUTH_RETRY_DELAY_SECONDS", 0)


@pytest.fixture
def upstream(community_payloads):
    """Mock upstream API serving `community_payloads`.

    `failures` maps a path to a status code (or an exception instance) to
    return instead of data; `calls` counts requests per path.
    """

    class FakeUpstream:
        def __init__(self):
            self.payloads = {
                settings.MEMBERS_PATH: community_payloads["users"],
                settings.GOALS_PATH: community_payloads["goals"],
                settings.CONTRIBUTIONS_PATH: community_payloads["contributions"],
                settings.LOANS_PATH: community_payloads["loans"],
            }
            self.failures = {}
            self.calls = {}
            self.seen_headers = []

        def handler(self, request: httpx.Request) -> httpx.Response:
            path = request.url.path
            self.calls[path] = self.calls.get(path, 0) + 1
            self.seen_headers.append(dict(request.headers))
            failure = self.failures.get(path)
            if isinstance(failure, list):
                failure = failure.pop(0) if failure else None
            if isinstance(failure, Exception):
                raise failure
            if failure is not None:
                return httpx.Response(failure, json={"message": "failed"})
            return httpx.Response(200, json=self.payloads.get(path, []))

        def client(self) -> httpx.AsyncClient:
            return httpx.AsyncClient(base_url=UPSTREAM_URL, transport=httpx.MockTransport(self.handler))

    return FakeUpstream()

"""
Shared fixtures: an in-memory SQLite database, a fixed clock, a notification
sink that records instead of sending, and a directory stub.
"""

import os

# Must happen before any app module reads settings
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.models.deadline import DeadlineBatch, ProjectDeadline
from app.models.document_type import DocumentType
from app.models.project import Project, ProjectMember
from app.models.submission import DocumentSubmission, SubmissionStatus
from app.models.user import ROLE_EVALUATOR, ROLE_STUDENT, ROLE_SUPERVISOR, User

TEST_DATABASE_URL = "sqlite://"

T0 = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = T0):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value


class RecordingSink:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def notify(self, recipient_id, event_type, payload):
        if self.fail:
            raise RuntimeError("notification backend down")
        self.sent.append((recipient_id, event_type, payload))

    def events(self, event_type=None):
        return [s for s in self.sent if event_type is None or s[1] == event_type]

    def recipients(self, event_type):
        return sorted(r for r, e, _ in self.sent if e == event_type)


class StubDirectory:
    def __init__(self, members=None, leaders=None, committee=None):
        self.members = members or {}
        self.leaders = leaders or {}
        self.committee = list(committee or [])

    def group_member_ids(self, project_id):
        return list(self.members.get(project_id, []))

    def group_leader_id(self, project_id):
        return self.leaders.get(project_id)

    def evaluation_committee_ids(self):
        return list(self.committee)


@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Create a test database session."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def sink():
    return RecordingSink()


def _user(db, email, name, role):
    user = User(email=email, name=name, role=role, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def people(db_session):
    """Supervisor, two students (first one leads) and three evaluators."""
    return {
        "supervisor": _user(db_session, "sup@uni.test", "Supervisor", ROLE_SUPERVISOR),
        "leader": _user(db_session, "lead@uni.test", "Group Leader", ROLE_STUDENT),
        "member": _user(db_session, "member@uni.test", "Group Member", ROLE_STUDENT),
        "evaluators": [
            _user(db_session, f"eval{i}@uni.test", f"Evaluator {i}", ROLE_EVALUATOR)
            for i in range(1, 4)
        ],
    }


@pytest.fixture
def doc_types(db_session):
    proposal = DocumentType(
        code="PROPOSAL",
        title="Project Proposal",
        weight_supervisor=20,
        weight_committee=80,
        display_order=1,
        is_active=True,
    )
    report = DocumentType(
        code="FINAL_REPORT",
        title="Final Report",
        weight_supervisor=40,
        weight_committee=60,
        display_order=2,
        is_active=True,
    )
    db_session.add_all([proposal, report])
    db_session.commit()
    db_session.refresh(proposal)
    db_session.refresh(report)
    return {"proposal": proposal, "report": report}


@pytest.fixture
def batch(db_session, doc_types):
    """Proposal due 10 days after T0, report due 40 days after T0."""
    batch = DeadlineBatch(
        name="Spring 2025",
        applies_from=T0 - timedelta(days=30),
        applies_until=None,
        is_active=True,
    )
    batch.deadlines.append(
        ProjectDeadline(
            document_type_id=doc_types["proposal"].id,
            deadline_date=T0 + timedelta(days=10),
            sort_order=1,
        )
    )
    batch.deadlines.append(
        ProjectDeadline(
            document_type_id=doc_types["report"].id,
            deadline_date=T0 + timedelta(days=40),
            sort_order=2,
        )
    )
    db_session.add(batch)
    db_session.commit()
    db_session.refresh(batch)
    return batch


@pytest.fixture
def project(db_session, people, batch):
    project = Project(
        title="Smart Irrigation",
        supervisor_id=people["supervisor"].id,
        deadline_batch_id=batch.id,
    )
    db_session.add(project)
    db_session.commit()
    db_session.refresh(project)
    db_session.add_all([
        ProjectMember(project_id=project.id, user_id=people["leader"].id, is_leader=True),
        ProjectMember(project_id=project.id, user_id=people["member"].id, is_leader=False),
    ])
    db_session.commit()
    return project


@pytest.fixture
def directory(project, people):
    return StubDirectory(
        members={project.id: [people["leader"].id, people["member"].id]},
        leaders={project.id: people["leader"].id},
        committee=[e.id for e in people["evaluators"]],
    )


@pytest.fixture
def make_submission(db_session, project, people):
    """Insert a submission row directly in a given status."""

    def _make(doc_type, status=SubmissionStatus.PENDING_SUPERVISOR, version=1,
              is_final=True, project_id=None, uploaded_at=T0, committee_avg_score=None):
        submission = DocumentSubmission(
            project_id=project_id or project.id,
            document_type_id=doc_type.id,
            version=version,
            status=status.value,
            is_final=is_final,
            file_ref=f"files/{doc_type.code.lower()}-v{version}.pdf",
            uploaded_by=people["leader"].id,
            uploaded_at=uploaded_at,
            committee_avg_score=(
                Decimal(str(committee_avg_score)) if committee_avg_score is not None else None
            ),
        )
        db_session.add(submission)
        db_session.commit()
        db_session.refresh(submission)
        return submission

    return _make

# app/db/base.py
# Import every model so Base.metadata knows all tables before create_all.
from app.db.base_class import Base  # noqa
from app.models.user import User  # noqa
from app.models.document_type import DocumentType  # noqa
from app.models.deadline import DeadlineBatch, MissedDeadlineNotice, ProjectDeadline  # noqa
from app.models.project import Project, ProjectMember  # noqa
from app.models.submission import DocumentSubmission, SupervisorMarks, EvaluationMarks  # noqa
from app.models.final_result import FinalResult  # noqa

# app/services/directory.py
"""Read-only view of people: group members, leaders, evaluation committee."""

from typing import List, Optional, Protocol

from sqlalchemy.orm import Session

from app.models.project import ProjectMember
from app.models.user import ROLE_EVALUATOR, User


class Directory(Protocol):
    def group_member_ids(self, project_id: int) -> List[int]: ...

    def group_leader_id(self, project_id: int) -> Optional[int]: ...

    def evaluation_committee_ids(self) -> List[int]: ...


class SqlDirectory:
    """Reads membership tables maintained by the user and group services."""

    def __init__(self, db: Session):
        self.db = db

    def group_member_ids(self, project_id: int) -> List[int]:
        rows = (
            self.db.query(ProjectMember.user_id)
            .filter(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.user_id)
            .all()
        )
        return [row.user_id for row in rows]

    def group_leader_id(self, project_id: int) -> Optional[int]:
        row = (
            self.db.query(ProjectMember.user_id)
            .filter(
                ProjectMember.project_id == project_id,
                ProjectMember.is_leader.is_(True),
            )
            .first()
        )
        return row.user_id if row else None

    def evaluation_committee_ids(self) -> List[int]:
        rows = (
            self.db.query(User.id)
            .filter(User.role == ROLE_EVALUATOR, User.is_active.is_(True))
            .order_by(User.id)
            .all()
        )
        return [row.id for row in rows]

from decimal import Decimal

import pytest

from app.core.exceptions import BusinessRuleError, ConflictError, ResourceNotFoundError
from app.models.final_result import FinalResult
from app.models.project import Project
from app.models.submission import SubmissionStatus as S, SupervisorMarks
from app.services import final_result_service
from app.services.notifications import NotificationType


@pytest.fixture
def finalized(db_session, doc_types, make_submission):
    """Both required documents finalized, with supervisor marks."""

    def _add(doc_type, supervisor_score, committee_avg):
        sub = make_submission(
            doc_type, status=S.EVAL_FINALIZED, committee_avg_score=committee_avg
        )
        if supervisor_score is not None:
            db_session.add(SupervisorMarks(submission_id=sub.id, score=Decimal(supervisor_score)))
            db_session.commit()
        return sub

    return _add


class TestCompute:
    def test_weighted_total(self, db_session, project, doc_types, finalized, clock):
        finalized(doc_types["proposal"], "80", "90")  # 20/80 -> 88.0000
        finalized(doc_types["report"], "70", "75")  # 40/60 -> 73.0000

        result = final_result_service.compute_final_result(
            db_session, project.id, computed_by=5, clock=clock
        )

        assert result.total_score == Decimal("80.5000")
        assert result.released is False

        breakdown = final_result_service.read_breakdown(result)
        assert breakdown.schema_version == 1
        assert breakdown.computed_by == 5
        assert [d.doc_type_code for d in breakdown.documents] == ["PROPOSAL", "FINAL_REPORT"]
        assert breakdown.documents[0].weighted_score == Decimal("88.0000")
        assert breakdown.documents[1].weighted_score == Decimal("73.0000")
        assert breakdown.total_score == Decimal("80.5000")

    def test_missing_supervisor_score_counts_as_zero(self, db_session, project, doc_types,
                                                     finalized, clock):
        finalized(doc_types["proposal"], None, "90")  # 0*0.2 + 90*0.8 = 72
        finalized(doc_types["report"], "50", "50")

        result = final_result_service.compute_final_result(db_session, project.id, clock=clock)

        breakdown = final_result_service.read_breakdown(result)
        assert breakdown.documents[0].supervisor_score == Decimal("0")
        assert breakdown.documents[0].weighted_score == Decimal("72.0000")
        assert result.total_score == Decimal("61.0000")

    def test_incomplete_evaluations(self, db_session, project, doc_types, finalized, clock,
                                    make_submission):
        finalized(doc_types["proposal"], "80", "90")
        make_submission(doc_types["report"], status=S.EVAL_IN_PROGRESS)

        with pytest.raises(BusinessRuleError) as exc:
            final_result_service.compute_final_result(db_session, project.id, clock=clock)

        assert exc.value.code == "INCOMPLETE_EVALUATIONS"
        assert "Final Report" in exc.value.message
        assert exc.value.details == {"missing": ["FINAL_REPORT"]}
        assert db_session.query(FinalResult).count() == 0

    def test_no_finalized_submissions(self, db_session, project, clock):
        with pytest.raises(BusinessRuleError) as exc:
            final_result_service.compute_final_result(db_session, project.id, clock=clock)
        assert exc.value.code == "NO_FINALIZED_SUBMISSIONS"

    def test_project_without_batch(self, db_session, clock):
        project = Project(title="No batch")
        db_session.add(project)
        db_session.commit()

        with pytest.raises(BusinessRuleError) as exc:
            final_result_service.compute_final_result(db_session, project.id, clock=clock)
        assert exc.value.code == "NO_DEADLINE_BATCH"

    def test_second_compute_conflicts(self, db_session, project, doc_types, finalized, clock):
        finalized(doc_types["proposal"], "80", "90")
        finalized(doc_types["report"], "70", "75")
        first = final_result_service.compute_final_result(db_session, project.id, clock=clock)

        with pytest.raises(ConflictError):
            final_result_service.compute_final_result(db_session, project.id, clock=clock)

        db_session.refresh(first)
        assert first.total_score == Decimal("80.5000")
        assert db_session.query(FinalResult).count() == 1

    def test_concurrent_compute_loses_on_commit(self, db_session, session_factory, project,
                                                doc_types, finalized, clock, monkeypatch):
        finalized(doc_types["proposal"], "80", "90")
        finalized(doc_types["report"], "70", "75")

        real_mean4 = final_result_service.mean4

        def mean4_then_race(values):
            # another request commits its result between our check and our insert
            other = session_factory()
            try:
                other.add(FinalResult(project_id=project.id, total_score=Decimal("50"),
                                      details={}, released=False))
                other.commit()
            finally:
                other.close()
            return real_mean4(values)

        monkeypatch.setattr(final_result_service, "mean4", mean4_then_race)

        with pytest.raises(ConflictError):
            final_result_service.compute_final_result(
                db_session, project.id, computed_by=5, clock=clock
            )

        rows = db_session.query(FinalResult).all()
        assert len(rows) == 1
        assert rows[0].total_score == Decimal("50")


class TestRelease:
    @pytest.fixture
    def computed(self, db_session, project, doc_types, finalized, clock):
        finalized(doc_types["proposal"], "80", "90")
        finalized(doc_types["report"], "70", "75")
        return final_result_service.compute_final_result(db_session, project.id, clock=clock)

    def test_release_notifies_members(self, db_session, project, computed, clock, sink,
                                      directory, people):
        result = final_result_service.release_final_result(
            db_session, project.id, released_by=3, clock=clock, notifier=sink, directory=directory
        )

        assert result.released is True
        assert result.released_by == 3
        assert sink.recipients(NotificationType.RESULT_RELEASED.value) == sorted(
            [people["leader"].id, people["member"].id]
        )

    def test_release_twice(self, db_session, project, computed, clock):
        first = final_result_service.release_final_result(
            db_session, project.id, released_by=3, clock=clock
        )
        released_at = first.released_at

        clock.advance(days=1)
        with pytest.raises(ConflictError):
            final_result_service.release_final_result(
                db_session, project.id, released_by=4, clock=clock
            )

        db_session.refresh(first)
        assert first.released is True
        assert first.released_by == 3
        assert first.released_at == released_at

    def test_release_without_result(self, db_session, project, clock):
        with pytest.raises(ResourceNotFoundError):
            final_result_service.release_final_result(
                db_session, project.id, released_by=3, clock=clock
            )

    def test_released_view(self, db_session, project, computed, clock):
        with pytest.raises(ResourceNotFoundError):
            final_result_service.get_released_result(db_session, project.id)

        final_result_service.release_final_result(db_session, project.id, released_by=3, clock=clock)

        assert final_result_service.get_released_result(db_session, project.id).released is True

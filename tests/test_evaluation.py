from decimal import Decimal

import pytest

from app.core.exceptions import BusinessRuleError, ResourceNotFoundError, ValidationError
from app.models.submission import SubmissionStatus as S
from app.services import evaluation_service, final_result_service
from app.services.notifications import NotificationType


@pytest.fixture
def evaluator_ids(people):
    return [e.id for e in people["evaluators"]]


@pytest.fixture
def locked(doc_types, make_submission):
    return make_submission(doc_types["proposal"], status=S.LOCKED_FOR_EVAL)


def _mark(db, sub, evaluator_id, score, **kwargs):
    return evaluation_service.submit_mark(
        db, submission_id=sub.id, evaluator_id=evaluator_id, score=score, **kwargs
    )


def _finalize(db, sub, evaluator_id, required, **kwargs):
    return evaluation_service.finalize_mark(
        db,
        submission_id=sub.id,
        evaluator_id=evaluator_id,
        required_evaluator_ids=required,
        **kwargs,
    )


class TestHelpers:
    def test_empty_required_set_never_complete(self):
        assert evaluation_service.all_required_finalized([], []) is False

    def test_committee_average(self):
        assert evaluation_service.committee_average([80, 90, 95]) == Decimal("88.3333")
        assert evaluation_service.committee_average([]) is None


class TestSubmitMark:
    def test_first_mark_starts_evaluation(self, db_session, locked, evaluator_ids, clock, sink,
                                          directory, people):
        mark = _mark(db_session, locked, evaluator_ids[0], 70, comments="Clear aims",
                     clock=clock, notifier=sink, directory=directory)

        db_session.refresh(locked)
        assert mark.is_final is False
        assert mark.comments == "Clear aims"
        assert locked.status == S.EVAL_IN_PROGRESS.value
        assert sink.recipients(NotificationType.EVALUATION_STARTED.value) == [people["leader"].id]

    def test_second_mark_does_not_restart(self, db_session, locked, evaluator_ids, sink, directory):
        _mark(db_session, locked, evaluator_ids[0], 70, notifier=sink, directory=directory)
        _mark(db_session, locked, evaluator_ids[1], 80, notifier=sink, directory=directory)

        assert len(sink.events(NotificationType.EVALUATION_STARTED.value)) == 1

    def test_mark_can_be_revised_until_final(self, db_session, locked, evaluator_ids):
        _mark(db_session, locked, evaluator_ids[0], 70)
        mark = _mark(db_session, locked, evaluator_ids[0], 74)

        assert mark.score == Decimal("74")
        assert len(evaluation_service.list_marks(db_session, locked.id)) == 1

    def test_not_locked(self, db_session, doc_types, make_submission, evaluator_ids):
        sub = make_submission(doc_types["proposal"], status=S.APPROVED_BY_SUPERVISOR)

        with pytest.raises(BusinessRuleError) as exc:
            _mark(db_session, sub, evaluator_ids[0], 70)
        assert exc.value.code == "NOT_LOCKED"

    def test_score_range(self, db_session, locked, evaluator_ids):
        with pytest.raises(ValidationError):
            _mark(db_session, locked, evaluator_ids[0], 120)

    def test_final_mark_is_immutable(self, db_session, locked, evaluator_ids):
        _mark(db_session, locked, evaluator_ids[0], 70)
        _finalize(db_session, locked, evaluator_ids[0], evaluator_ids)

        with pytest.raises(BusinessRuleError) as exc:
            _mark(db_session, locked, evaluator_ids[0], 90)
        assert exc.value.code == "EVALUATION_FINALIZED"


class TestFinalizationGate:
    def test_finalizes_when_all_required_are_final(self, db_session, locked, evaluator_ids, clock,
                                                   sink, directory):
        for evaluator_id, score in zip(evaluator_ids, [80, 90, 95]):
            _mark(db_session, locked, evaluator_id, score)

        _finalize(db_session, locked, evaluator_ids[0], evaluator_ids, clock=clock)
        _finalize(db_session, locked, evaluator_ids[1], evaluator_ids, clock=clock)
        db_session.refresh(locked)
        assert locked.status == S.EVAL_IN_PROGRESS.value

        _finalize(db_session, locked, evaluator_ids[2], evaluator_ids, clock=clock,
                  notifier=sink, directory=directory)
        db_session.refresh(locked)
        assert locked.status == S.EVAL_FINALIZED.value
        assert locked.committee_avg_score == Decimal("88.3333")
        assert locked.eval_finalized_at is not None
        assert len(sink.events(NotificationType.EVALUATION_FINALIZED.value)) == 2

    def test_removing_a_required_evaluator(self, db_session, locked, evaluator_ids):
        _mark(db_session, locked, evaluator_ids[0], 80)
        _mark(db_session, locked, evaluator_ids[1], 90)
        _finalize(db_session, locked, evaluator_ids[0], evaluator_ids)
        _finalize(db_session, locked, evaluator_ids[1], evaluator_ids)
        db_session.refresh(locked)
        assert locked.status == S.EVAL_IN_PROGRESS.value

        # third evaluator leaves the committee
        done = evaluation_service.refresh_finalization(
            db_session, submission_id=locked.id, required_evaluator_ids=evaluator_ids[:2]
        )

        db_session.refresh(locked)
        assert done is True
        assert locked.status == S.EVAL_FINALIZED.value
        assert locked.committee_avg_score == Decimal("85.0000")

    def test_adding_a_required_evaluator(self, db_session, locked, evaluator_ids):
        _mark(db_session, locked, evaluator_ids[0], 80)
        _mark(db_session, locked, evaluator_ids[1], 90)
        _finalize(db_session, locked, evaluator_ids[0], evaluator_ids[:2] + [999])
        _finalize(db_session, locked, evaluator_ids[1], evaluator_ids[:2] + [999])

        db_session.refresh(locked)
        assert locked.status == S.EVAL_IN_PROGRESS.value
        assert evaluation_service.refresh_finalization(
            db_session, submission_id=locked.id, required_evaluator_ids=evaluator_ids[:2] + [999]
        ) is False

    def test_no_final_marks_after_evaluation_closes(self, db_session, locked, evaluator_ids,
                                                    doc_types):
        required = evaluator_ids[:2]
        _mark(db_session, locked, evaluator_ids[0], 80)
        _mark(db_session, locked, evaluator_ids[1], 90)
        _mark(db_session, locked, evaluator_ids[2], 10)
        _finalize(db_session, locked, evaluator_ids[0], required)
        _finalize(db_session, locked, evaluator_ids[1], required)
        db_session.refresh(locked)
        assert locked.status == S.EVAL_FINALIZED.value

        with pytest.raises(BusinessRuleError) as exc:
            _finalize(db_session, locked, evaluator_ids[2], required)
        assert exc.value.code == "EVALUATION_CLOSED"

        late = evaluation_service.get_mark(db_session, locked.id, evaluator_ids[2])
        assert late.is_final is False
        summary = evaluation_service.get_summary(db_session, locked.id, required)
        assert summary.average_score == Decimal("85.0000")
        assert summary.finalized_count == 2

        # the result breakdown counts only the marks behind the frozen average
        doc = final_result_service._document_breakdown(db_session, locked, doc_types["proposal"])
        assert doc.committee_evaluator_count == 2
        assert doc.committee_avg_score == Decimal("85.0000")

    def test_finalize_before_lock(self, db_session, doc_types, make_submission, evaluator_ids):
        approved = make_submission(doc_types["proposal"], status=S.APPROVED_BY_SUPERVISOR)

        with pytest.raises(BusinessRuleError) as exc:
            _finalize(db_session, approved, evaluator_ids[0], evaluator_ids)
        assert exc.value.code == "NOT_LOCKED"

    def test_empty_committee_never_finalizes(self, db_session, locked, evaluator_ids):
        _mark(db_session, locked, evaluator_ids[0], 80)
        _finalize(db_session, locked, evaluator_ids[0], [])

        db_session.refresh(locked)
        assert locked.status == S.EVAL_IN_PROGRESS.value

    def test_finalize_without_mark(self, db_session, locked, evaluator_ids):
        with pytest.raises(ResourceNotFoundError):
            _finalize(db_session, locked, evaluator_ids[0], evaluator_ids)

    def test_finalize_twice(self, db_session, locked, evaluator_ids):
        _mark(db_session, locked, evaluator_ids[0], 80)
        _finalize(db_session, locked, evaluator_ids[0], evaluator_ids)

        with pytest.raises(BusinessRuleError) as exc:
            _finalize(db_session, locked, evaluator_ids[0], evaluator_ids)
        assert exc.value.code == "ALREADY_FINALIZED"


class TestSummary:
    def test_summary(self, db_session, locked, evaluator_ids):
        _mark(db_session, locked, evaluator_ids[0], 80, comments="Good")
        _mark(db_session, locked, evaluator_ids[1], 60)
        _finalize(db_session, locked, evaluator_ids[0], evaluator_ids)

        summary = evaluation_service.get_summary(db_session, locked.id, evaluator_ids)

        assert summary.total_marks == 2
        assert summary.finalized_count == 1
        assert summary.average_score == Decimal("80.0000")
        assert summary.all_finalized is False
        assert summary.submission_status == S.EVAL_IN_PROGRESS.value
        assert [m.comments for m in summary.marks] == ["Good", None]

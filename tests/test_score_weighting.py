from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError
from app.services.score_weighting import mean4, round4, validate_score, weighted_score


class TestWeightedScore:
    """Per-document blend of supervisor score and committee average."""

    def test_worked_example(self):
        assert weighted_score(80, 90, 20, 80) == Decimal("88.0000")

    def test_result_has_four_places(self):
        result = weighted_score(Decimal("77.5"), Decimal("81.3333"), 30, 70)
        assert result == Decimal("80.1833")
        assert result.as_tuple().exponent == -4

    def test_full_supervisor_weight_ignores_committee(self):
        assert weighted_score(65, 10, 100, 0) == Decimal("65.0000")

    def test_missing_scores_count_as_zero(self):
        assert weighted_score(0, 90, 20, 80) == Decimal("72.0000")


class TestRounding:
    def test_half_up(self):
        assert round4(Decimal("1.00005")) == Decimal("1.0001")
        assert round4(Decimal("1.00004")) == Decimal("1.0000")

    def test_float_input_does_not_leak_binary_noise(self):
        assert round4(0.1) == Decimal("0.1000")

    def test_mean_of_nothing_is_none(self):
        assert mean4([]) is None

    def test_mean_rounds_once(self):
        assert mean4([Decimal("70"), Decimal("80"), Decimal("85")]) == Decimal("78.3333")


class TestValidateScore:
    @pytest.mark.parametrize("value", [0, 100, "55.5", Decimal("99.9999")])
    def test_accepts_in_range(self, value):
        assert validate_score(value) == Decimal(str(value))

    @pytest.mark.parametrize("value", [-1, Decimal("100.0001"), 250])
    def test_rejects_out_of_range(self, value):
        with pytest.raises(ValidationError):
            validate_score(value)

    def test_rejects_missing(self):
        with pytest.raises(ValidationError) as exc:
            validate_score(None, field="supervisor_score")
        assert exc.value.details == {"field": "supervisor_score"}

    def test_rejects_garbage(self):
        with pytest.raises(ValidationError):
            validate_score("abc")

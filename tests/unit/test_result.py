import pytest

from datajpa.data import OptionalResult
from datajpa.domain import Member


class TestOptionalResult:
    """Tests for the OptionalResult container"""

    def test_of_value(self):
        result = OptionalResult.of("AAA")

        assert result.is_present()
        assert not result.is_empty()
        assert result.get() == "AAA"
        assert bool(result) is True

    def test_of_none_rejected(self):
        with pytest.raises(ValueError):
            OptionalResult.of(None)

    def test_empty(self):
        result = OptionalResult.empty()

        assert result.is_empty()
        assert bool(result) is False
        with pytest.raises(LookupError, match="No value present"):
            result.get()

    def test_of_nullable(self):
        assert OptionalResult.of_nullable(None).is_empty()
        assert OptionalResult.of_nullable(0).get() == 0

    def test_falsy_values_are_present(self):
        """Present-but-falsy values are still present."""
        for value in (0, "", [], False):
            assert OptionalResult.of(value).is_present()

    def test_or_else(self):
        assert OptionalResult.of(1).or_else(2) == 1
        assert OptionalResult.empty().or_else(2) == 2
        assert OptionalResult.empty().or_else(None) is None

    def test_map(self):
        member = Member("AAA", 10, id=1)

        assert OptionalResult.of(member).map(lambda m: m.username).get() == "AAA"
        assert OptionalResult.of(member).map(lambda m: m.team_id).is_empty()
        assert OptionalResult.empty().map(lambda m: m.username).is_empty()

    def test_equality(self):
        assert OptionalResult.of(Member("AAA", id=1)) == OptionalResult.of(Member("AAA", id=1))
        assert OptionalResult.empty() == OptionalResult.empty()
        assert OptionalResult.of(1) != OptionalResult.empty()
        assert OptionalResult.of(1) != 1

    def test_repr(self):
        assert repr(OptionalResult.empty()) == "OptionalResult.empty"
        assert repr(OptionalResult.of("x")) == "OptionalResult['x']"

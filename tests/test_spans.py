"""
Tests for the span value types.
"""

import pytest
from subtitler.spans import AccurateTextSpan, TextSpan, TimeWindow


@pytest.fixture
def abc_span():
    return AccurateTextSpan.from_parts([
        TextSpan("a", 0.0, 1.0),
        TextSpan("b", 1.0, 2.0),
        TextSpan("c", 2.0, 3.0),
    ])


class TestTimeWindow:
    """Test TimeWindow construction and ordering."""

    def test_begin_after_end_rejected(self):
        with pytest.raises(ValueError):
            TimeWindow(2.0, 1.0)

    def test_zero_length_allowed(self):
        assert TimeWindow(1.0, 1.0).duration == 0.0

    def test_ordering_by_begin_then_end(self):
        windows = [TimeWindow(2.0, 3.0), TimeWindow(0.0, 5.0), TimeWindow(0.0, 1.0)]
        assert sorted(windows) == [
            TimeWindow(0.0, 1.0), TimeWindow(0.0, 5.0), TimeWindow(2.0, 3.0)
        ]

    def test_contains_is_inclusive(self):
        w = TimeWindow(1.0, 2.0)
        assert w.contains(1.0)
        assert w.contains(2.0)
        assert not w.contains(2.01)


class TestTextSpan:
    """Test plain span value semantics."""

    def test_structural_equality(self):
        assert TextSpan("hi", 1.0, 2.0) == TextSpan("hi", 1.0, 2.0)

    def test_immutable(self):
        span = TextSpan("hi", 1.0, 2.0)
        with pytest.raises(AttributeError):
            span.text = "bye"

    def test_shifted_returns_new_span(self):
        span = TextSpan("hi", 1.0, 2.0)
        moved = span.shifted(10.0)
        assert moved == TextSpan("hi", 11.0, 12.0)
        assert span.begin_sec == 1.0


class TestAccurateTextSpan:
    """Test part-based spans and their invariants."""

    def test_from_parts_joins_text_and_bounds(self, abc_span):
        assert abc_span.text == "abc"
        assert abc_span.begin_sec == 0.0
        assert abc_span.end_sec == 3.0
        assert len(abc_span.parts) == 3

    def test_empty_parts_rejected(self):
        with pytest.raises(ValueError):
            AccurateTextSpan.from_parts([])

    def test_overlapping_parts_rejected(self):
        with pytest.raises(ValueError):
            AccurateTextSpan.from_parts([
                TextSpan("a", 0.0, 1.5),
                TextSpan("b", 1.0, 2.0),
            ])

    def test_shifted_moves_every_part(self, abc_span):
        moved = abc_span.shifted(5.0)
        assert isinstance(moved, AccurateTextSpan)
        assert [p.begin_sec for p in moved.parts] == [5.0, 6.0, 7.0]
        assert moved.end_sec == 8.0
        assert moved.text == "abc"


class TestSplit:
    """Test AccurateTextSpan.split."""

    def test_split_on_part_boundary(self, abc_span):
        left, right = abc_span.split(1.0)
        assert type(left) is TextSpan
        assert left == TextSpan("a", 0.0, 1.0)
        assert isinstance(right, AccurateTextSpan)
        assert right.text == "bc"
        assert right.begin_sec == 1.0

    @pytest.mark.parametrize("cut", [0.5, 1.0, 1.25, 1.5, 2.0, 2.9])
    def test_split_preserves_text_and_meets_at_cut(self, abc_span, cut):
        left, right = abc_span.split(cut)
        assert left.end_sec == pytest.approx(cut)
        assert right.begin_sec == pytest.approx(cut)
        assert left.text + right.text == abc_span.text
        assert left.begin_sec == abc_span.begin_sec
        assert right.end_sec == abc_span.end_sec

    def test_split_single_straddling_part_gives_text_spans(self):
        span = AccurateTextSpan.from_parts([TextSpan("hello", 0.0, 1.0)])
        left, right = span.split(0.4)
        assert type(left) is TextSpan
        assert type(right) is TextSpan
        assert left.end_sec == 0.4
        assert right.begin_sec == 0.4
        assert left.text + right.text == "hello"
        assert left.text == "he"

    @pytest.mark.parametrize("cut", [-1.0, 0.0, 3.0, 4.0])
    def test_split_out_of_range(self, abc_span, cut):
        with pytest.raises(ValueError):
            abc_span.split(cut)

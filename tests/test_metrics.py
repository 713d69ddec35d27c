"""
Tests for metrics and identity helpers.
"""

from semindex.metrics import calculate_line_metrics, make_unit_id, normalize_path


class TestMakeUnitId:
    """Tests for make_unit_id."""

    def test_deterministic(self):
        """Same inputs give the same id."""
        assert make_unit_id("pkg/a.py", "f", 3) == make_unit_id("pkg/a.py", "f", 3)

    def test_length(self):
        """Ids are 16 hex characters."""
        unit_id = make_unit_id("a.go", "Server.Run", 10)
        assert len(unit_id) == 16
        int(unit_id, 16)

    def test_each_component_matters(self):
        """Path, name and start line all feed the id."""
        base = make_unit_id("a.py", "f", 1)
        assert make_unit_id("b.py", "f", 1) != base
        assert make_unit_id("a.py", "g", 1) != base
        assert make_unit_id("a.py", "f", 2) != base

    def test_path_separators_normalized(self):
        """Windows-style and ./ paths hash like POSIX paths."""
        assert make_unit_id("pkg\\a.py", "f", 1) == make_unit_id("pkg/a.py", "f", 1)
        assert make_unit_id("./pkg/a.py", "f", 1) == make_unit_id("pkg/a.py", "f", 1)


class TestNormalizePath:
    def test_strips_leading_dot_slash(self):
        assert normalize_path("./a/b.py") == "a/b.py"

    def test_backslashes(self):
        assert normalize_path("a\\b\\c.go") == "a/b/c.go"


class TestCalculateLineMetrics:
    """Tests for calculate_line_metrics."""

    def test_counts(self):
        """Blank, comment and code lines are counted separately."""
        content = "# header\n\nx = 1\n// c style\n/* block\n * more\n */\ny = 2\n"
        metrics = calculate_line_metrics(content)

        assert metrics.blank_lines == 1
        assert metrics.lines_of_comments == 5
        assert metrics.lines_of_code == 2
        assert metrics.total_lines == 8

    def test_empty(self):
        metrics = calculate_line_metrics("")
        assert metrics.total_lines == 0

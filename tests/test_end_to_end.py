"""
End-to-end: build an index, then ask for duplicates.
"""

import pytest

from semindex.builder import IndexBuilder
from semindex.classifier import DuplicateDetector, SimilarityLevel, find_duplicate_pairs
from semindex.extractor import extract_source
from semindex.scanner import scan_repository
from semindex.store import IndexStore

from conftest import FakeProvider, write_files


TOTAL_PRICE = '''\
def total_price(items):
    result = 0
    for item in items:
        result += item.price * item.quantity
    return result
'''

ORDER_SUM = '''\
import logging


def order_sum(items):
    result = 0
    for item in items:
        result += item.price * item.quantity
    return result
'''

GREET = '''\
def greet(name):
    message = "hello " + name
    print(message)
    return message
'''


@pytest.fixture
def built_index(tmp_path):
    pytest.importorskip("tree_sitter_python")
    write_files(tmp_path, {
        "shop/cart.py": TOTAL_PRICE,
        "billing/orders.py": ORDER_SUM,
        "ui/greeting.py": GREET,
    })
    report = IndexBuilder(FakeProvider()).build(tmp_path, scan_repository(tmp_path))
    assert report.ok
    return IndexStore(tmp_path).load()


class TestDuplicateDetection:
    """Identical bodies under different names are found."""

    def unit_named(self, index, name):
        return next(e.unit for e in index if e.unit.symbol_name == name)

    @pytest.mark.parametrize("query, expected", [
        ("total_price", "order_sum"),
        ("order_sum", "total_price"),
    ])
    def test_identical_bodies(self, built_index, query, expected):
        detector = DuplicateDetector(built_index)

        matches = detector.detect_duplicates(self.unit_named(built_index, query))

        assert [m.unit.symbol_name for m in matches] == [expected]
        assert matches[0].score == pytest.approx(1.0, abs=1e-5)
        assert matches[0].level is SimilarityLevel.NEAR_IDENTICAL

    def test_pairs(self, built_index):
        pairs = find_duplicate_pairs(built_index)

        assert len(pairs) == 1
        names = {pairs[0].first.symbol_name, pairs[0].second.symbol_name}
        assert names == {"total_price", "order_sum"}

    def test_unindexed_copy_found_with_provider(self, built_index):
        """A new copy in an unindexed file is embedded on the fly."""
        source = TOTAL_PRICE.replace("total_price", "basket_value")
        new_unit = extract_source(source, "new/basket.py", "python").units[0]

        detector = DuplicateDetector(built_index, provider=FakeProvider())
        matches = detector.detect_duplicates(new_unit)

        assert {m.unit.symbol_name for m in matches} == {"total_price", "order_sum"}

"""
Tests for the transaction classifier and its swappable code tables.
"""

from dataclasses import replace

import pytest

from insider_signals.compute.classify import Classifier, classify, is_qualifying
from insider_signals.config import CodeTable
from insider_signals.models import TxCategory


class TestDefaultTable:
    @pytest.mark.parametrize(
        "code,expected",
        [
            ("10", TxCategory.PUBLIC_BUY),
            ("11", TxCategory.PRIVATE_BUY),
            ("16", TxCategory.PRIVATE_BUY),
            ("30", TxCategory.PLAN_BUY),
            ("54", TxCategory.EXERCISE),
            ("56", TxCategory.GRANT),
            ("97", TxCategory.NOISE),
            ("00", TxCategory.NOISE),
            ("42", TxCategory.UNKNOWN),
            ("", TxCategory.UNKNOWN),
            (None, TxCategory.UNKNOWN),
        ],
    )
    def test_mapping(self, code, expected):
        assert classify(code, CodeTable()) == expected
        assert Classifier(CodeTable())(code) == expected

    def test_qualifying_categories(self):
        assert is_qualifying(TxCategory.PUBLIC_BUY)
        assert is_qualifying(TxCategory.EXERCISE)
        assert not is_qualifying(TxCategory.GRANT)
        assert not is_qualifying(TxCategory.NOISE)
        assert not is_qualifying(TxCategory.UNKNOWN)


class TestSwappedTable:
    def test_custom_table(self):
        table = CodeTable(PUBLIC_BUY=("P",), PRIVATE_BUY=(), PLAN_BUY=("J",), EXERCISE=("M",), GRANT=("A",), NOISE=("G",))
        c = Classifier(table)
        assert c("P") == TxCategory.PUBLIC_BUY
        assert c("A") == TxCategory.GRANT
        assert c("10") == TxCategory.UNKNOWN

    def test_first_listed_category_wins(self):
        table = replace(CodeTable(), PLAN_BUY=("30", "10"))
        assert classify("10", table) == TxCategory.PUBLIC_BUY

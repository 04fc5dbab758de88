"""
Tests for the scoring configuration: overrides, override files and env parsing.
"""

import dataclasses
import json

import pytest

from insider_signals.compute.classify import Classifier
from insider_signals.compute.evaluate import evaluate_insider
from insider_signals.config import (
    ScoringConfig,
    _env_fx_rates,
    _env_list,
    load_scoring_config,
    scoring_config_from_dict,
)
from insider_signals.models import TxCategory


class TestOverrides:
    def test_values_are_coerced_to_field_types(self):
        cfg = scoring_config_from_dict({"LOOKBACK_DAYS": "45", "LARGE_SIZE": 75000, "SCORING_VERSION": "exp_1"})
        assert cfg.LOOKBACK_DAYS == 45
        assert cfg.LARGE_SIZE == 75000.0
        assert cfg.SCORING_VERSION == "exp_1"
        # untouched fields keep their defaults
        assert cfg.RANK_BONUS == ScoringConfig().RANK_BONUS

    def test_unknown_key_is_rejected(self):
        with pytest.raises(RuntimeError):
            scoring_config_from_dict({"NOT_A_WEIGHT": 1})

    def test_invalid_value_is_rejected(self):
        with pytest.raises(RuntimeError):
            scoring_config_from_dict({"RANK_BONUS": "lots"})

    def test_code_table_swap(self):
        cfg = scoring_config_from_dict({"CODES": {"plan_buy": ["30", "31", "32"]}})

        assert cfg.CODES.PLAN_BUY == ("30", "31", "32")
        assert cfg.CODES.PUBLIC_BUY == ("10",)
        assert Classifier(cfg.CODES)("32") == TxCategory.PLAN_BUY

    def test_unknown_code_category(self):
        with pytest.raises(RuntimeError):
            scoring_config_from_dict({"CODES": {"OPTIONS": ["70"]}})

    def test_fx_rates_are_uppercased(self):
        cfg = scoring_config_from_dict({"FX_RATES": {"usd": "1.35", "eur": 1.5}})
        assert cfg.FX_RATES == {"USD": 1.35, "EUR": 1.5}

    def test_config_is_frozen(self):
        cfg = ScoringConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            cfg.RANK_BONUS = 0


class TestOverrideFile:
    def test_load_from_json(self, tmp_path):
        path = tmp_path / "scoring.json"
        path.write_text(json.dumps({"ESCALATION_TRIGGER_SCORE": 120, "RANK_KEYWORDS": ["ceo", "cfo"]}))

        cfg = load_scoring_config(str(path))

        assert cfg.ESCALATION_TRIGGER_SCORE == 120.0
        assert cfg.RANK_KEYWORDS == ("ceo", "cfo")

    def test_no_path_gives_defaults(self):
        assert load_scoring_config(None) == ScoringConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(RuntimeError):
            load_scoring_config(str(tmp_path / "missing.json"))

    def test_non_object_payload(self, tmp_path):
        path = tmp_path / "scoring.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(RuntimeError):
            load_scoring_config(str(path))


class TestEnvParsing:
    def test_fx_rates(self, monkeypatch):
        monkeypatch.setenv("TEST_FX", "usd:1.38, EUR:1.5, junk")
        assert _env_fx_rates("TEST_FX", {"USD": 1.40}) == {"USD": 1.38, "EUR": 1.5}

    def test_fx_rates_fall_back(self, monkeypatch):
        monkeypatch.setenv("TEST_FX", "garbage")
        assert _env_fx_rates("TEST_FX", {"USD": 1.40}) == {"USD": 1.40}

    def test_list(self, monkeypatch):
        monkeypatch.setenv("TEST_LIST", " V, TO ,,CN")
        assert _env_list("TEST_LIST", ("X",)) == ("V", "TO", "CN")
        monkeypatch.delenv("TEST_LIST")
        assert _env_list("TEST_LIST", ("X",)) == ("X",)


class TestListOverrides:
    def test_single_code_string_is_one_code(self):
        cfg = scoring_config_from_dict({"CODES": {"PUBLIC_BUY": "10"}})

        assert cfg.CODES.PUBLIC_BUY == ("10",)
        assert Classifier(cfg.CODES)("10") == TxCategory.PUBLIC_BUY

    def test_single_keyword_string_is_one_keyword(self, make_record):
        cfg = scoring_config_from_dict({"RANK_KEYWORDS": "director", "COMMON_CLASS_KEYWORDS": "common"})
        assert cfg.RANK_KEYWORDS == ("director",)
        assert cfg.COMMON_CLASS_KEYWORDS == ("common",)

        holder = make_record(quantity=10000, price=17.5, relationship="3 - 10% Security Holder")
        sig = evaluate_insider("T.TO", [holder], None, False, cfg)

        assert sig.reasons == ("Market Buy", "Common Shares", "Large Size")

    def test_non_list_value_is_rejected(self):
        with pytest.raises(RuntimeError):
            scoring_config_from_dict({"CODES": {"PLAN_BUY": 30}})
        with pytest.raises(RuntimeError):
            scoring_config_from_dict({"RANK_KEYWORDS": {"director": True}})


class TestScalarOverrides:
    def test_fractional_int_weight_is_rejected(self):
        with pytest.raises(RuntimeError):
            scoring_config_from_dict({"RANK_BONUS": 12.7})

    def test_integral_float_is_accepted(self):
        assert scoring_config_from_dict({"RANK_BONUS": 12.0}).RANK_BONUS == 12

    def test_bool_is_rejected(self):
        with pytest.raises(RuntimeError):
            scoring_config_from_dict({"SIZE_BONUS": True})


class TestFxRatesReadOnly:
    def test_default_rates_cannot_be_mutated(self):
        cfg = ScoringConfig()
        with pytest.raises(TypeError):
            cfg.FX_RATES["USD"] = 2.0
        assert cfg.FX_RATES["USD"] == 1.40

    def test_overridden_rates_cannot_be_mutated(self):
        cfg = scoring_config_from_dict({"FX_RATES": {"USD": 1.35}})
        with pytest.raises(TypeError):
            cfg.FX_RATES["EUR"] = 1.5

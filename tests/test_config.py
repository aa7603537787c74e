import json
import os

import pytest

from lead_scout.config import ScraperConfig, parse_sources, GOOGLE_MAPS, YELLOW_PAGES
from lead_scout.site_selectors import DEFAULT_SELECTORS, merge_selectors


class TestParseSources:

    @pytest.mark.parametrize("answer, expected", [
        ("1", [GOOGLE_MAPS]),
        ("2", [YELLOW_PAGES]),
        ("3", [GOOGLE_MAPS, YELLOW_PAGES]),
        ("Google", [GOOGLE_MAPS]),
        ("YELLOW pages", [YELLOW_PAGES]),
        ("google, yellow", [GOOGLE_MAPS, YELLOW_PAGES]),
    ])
    def test_answers(self, answer, expected):
        assert parse_sources(answer) == expected

    @pytest.mark.parametrize("answer", ["", None, "bing"])
    def test_defaults_to_google_maps(self, answer):
        assert parse_sources(answer) == [GOOGLE_MAPS]


class TestScraperConfig:

    def test_excel_path(self):
        assert ScraperConfig(output_file="leads").excel_path == os.path.join(".", "leads.xlsx")
        assert ScraperConfig(output_file="").excel_path == os.path.join(".", "business_leads.xlsx")
        assert ScraperConfig(output_file="leads.xlsx").excel_path == os.path.join(".", "leads.xlsx")

    def test_classification_needs_a_key(self):
        assert not ScraperConfig(openai_api_key="").classification_enabled
        assert ScraperConfig(openai_api_key="sk-test").classification_enabled

    def test_unknown_strategy_falls_back_to_paginate(self):
        assert ScraperConfig(yellow_pages_strategy="teleport").yellow_pages_strategy == "paginate"

    def test_pool_sizes(self):
        config = ScraperConfig()
        assert config.detail_workers == 2
        assert config.email_workers == 3

    def test_selector_override_file(self, tmp_path):
        path = tmp_path / "selectors.json"
        path.write_text(json.dumps({"yellow_pages": {"listing": {"name": [".biz-title"]}}}))
        config = ScraperConfig(selectors_file=str(path))
        assert config.selectors["yellow_pages"]["listing"]["name"] == [".biz-title"]
        assert config.selectors["yellow_pages"]["listing"]["phone"] == DEFAULT_SELECTORS["yellow_pages"]["listing"]["phone"]

    def test_missing_override_file_uses_defaults(self, tmp_path):
        config = ScraperConfig(selectors_file=str(tmp_path / "absent.json"))
        assert config.selectors == DEFAULT_SELECTORS


def test_merge_selectors_keeps_extra_keys():
    merged = merge_selectors({"new_source": {"a": 1}}, {"google_maps": {"b": 2}})
    assert merged == {"google_maps": {"b": 2}, "new_source": {"a": 1}}


def test_config_selectors_do_not_alias_defaults(tmp_path):
    defaults = list(DEFAULT_SELECTORS["yellow_pages"]["listing"]["phone"])
    config = ScraperConfig(selectors_file=str(tmp_path / "absent.json"))
    config.selectors["yellow_pages"]["listing"]["phone"].insert(0, ".tracked-phone")
    assert DEFAULT_SELECTORS["yellow_pages"]["listing"]["phone"] == defaults
    assert ScraperConfig(selectors_file=str(tmp_path / "absent.json")).selectors["yellow_pages"]["listing"]["phone"] == defaults

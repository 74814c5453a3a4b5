"""Tests for the relevance scorer."""

from affordance_discovery.models import Category, PackageRecord
from affordance_discovery.scoring import (
    CATEGORY_KEYWORDS,
    annotate,
    categorize,
    rank,
    score,
    suggest_for_functionality,
)


def _pkg(name: str, description: str | None = None) -> PackageRecord:
    return PackageRecord(name=name, version="1.0.0", description=description)


class TestScore:
    def test_exact_name_without_keywords(self):
        # exact (100) + substring (50) + word in name (30)
        assert score("qqq", _pkg("qqq")) == 180

    def test_no_relation_scores_zero(self):
        assert score("qqq", _pkg("zzz")) == 0

    def test_description_words(self):
        with_desc = score("qqq", _pkg("zzz", "a qqqish thing"))
        assert with_desc == 20

    def test_deterministic(self):
        record = _pkg("axios", "Promise based HTTP client for the browser and node.js")
        assert score("http client", record) == score("http client", record)

    def test_functionality_bonus(self):
        plain = score("http client", _pkg("zzz"))
        known = score("http client", _pkg("got"))
        assert known - plain >= 40

    def test_case_insensitive(self):
        assert score("REACT", _pkg("react")) == score("react", _pkg("react"))

    def test_keyword_tables_have_no_duplicates(self):
        for info in CATEGORY_KEYWORDS.values():
            assert len(info.keywords) == len(set(info.keywords))


class TestCategorize:
    def test_testing_package(self):
        assert categorize(_pkg("vitest", "Next generation testing framework")) == Category.TESTING

    def test_network_package(self):
        assert categorize(_pkg("express", "Fast web server framework")) == Category.NETWORK

    def test_defaults_to_utility(self):
        assert categorize(_pkg("qqq")) == Category.UTILITY

    def test_annotate_sets_fields(self):
        annotated = annotate(_pkg("pytest", "simple powerful testing"), "testing")
        assert annotated.category == "testing"
        assert annotated.score == score("testing", _pkg("pytest", "simple powerful testing"))
        assert annotated.name == "pytest"

    def test_annotate_without_query(self):
        assert annotate(_pkg("qqq")).score is None


class TestRank:
    def test_http_client_scenario(self):
        records = [
            _pkg("websocket-helper", "Helpers"),
            _pkg("axios", "Promise based HTTP client for the browser and node.js"),
        ]
        ranked = rank("http client", records, Category.NETWORK, 10)
        assert [r.name for r in ranked][0] == "axios"
        assert {r.name for r in ranked} == {"axios", "websocket-helper"}

    def test_category_filter(self):
        records = [_pkg("jest", "Delightful testing"), _pkg("express", "web server")]
        ranked = rank("jest", records, Category.TESTING, 10)
        assert [r.name for r in ranked] == ["jest"]

    def test_drops_zero_scores(self):
        assert rank("qqq", [_pkg("zzz")], Category.ALL, 10) == []

    def test_stable_for_ties(self):
        records = [_pkg("qqq-a"), _pkg("qqq-b"), _pkg("qqq-c")]
        ranked = rank("qqq", records, Category.ALL, 10)
        assert [r.name for r in ranked] == ["qqq-a", "qqq-b", "qqq-c"]

    def test_truncates(self):
        records = [_pkg(f"qqq{i}") for i in range(8)]
        assert len(rank("qqq", records, Category.ALL, 3)) == 3


class TestFunctionalitySuggestions:
    def test_direct(self):
        assert suggest_for_functionality("HTTP client")[0] == "axios"

    def test_partial_dedupes(self):
        result = suggest_for_functionality("testing")
        assert "jest" in result
        assert len(result) == len(set(result))

    def test_unknown(self):
        assert suggest_for_functionality("quantum teleportation") == []

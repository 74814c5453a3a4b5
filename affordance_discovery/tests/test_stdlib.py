"""Tests for standard-library registries and the suggester."""

import pytest

from affordance_discovery.models import Ecosystem
from affordance_discovery.stdlib import GO, JAVA, NODE, PYTHON, REGISTRIES, RUST
from affordance_discovery.suggest import suggest


class TestNode:
    def test_plain_and_prefixed(self):
        assert NODE.is_standard_library("fs")
        assert NODE.is_standard_library("node:fs")
        assert NODE.is_standard_library("fs/promises")
        assert NODE.is_standard_library("node:fs/promises")

    def test_prefix_only_modules(self):
        assert NODE.is_standard_library("node:test")
        assert not NODE.is_standard_library("test")

    def test_third_party(self):
        assert not NODE.is_standard_library("express")
        assert not NODE.is_standard_library("")

    def test_describe(self):
        info = NODE.describe("node:crypto")
        assert info.description == "Cryptographic functionality"
        assert info.category == "security"

    def test_validity_reason(self):
        assert NODE.validity_reason("fs") == "Built-in Node.js module: File system access"

    def test_matches_includes_prefixed_only(self):
        assert "node:test" in NODE.matches("test")


class TestPython:
    @pytest.mark.parametrize("name", ["os", "json", "asyncio", "tomllib", "zoneinfo", "__future__"])
    def test_members(self, name):
        assert PYTHON.is_standard_library(name)

    def test_third_party(self):
        assert not PYTHON.is_standard_library("requests")
        assert not PYTHON.is_standard_library("requests.adapters")
        assert not PYTHON.is_standard_library("osx.path")
        assert not PYTHON.is_standard_library(".core")

    @pytest.mark.parametrize("name", ["os.path", "concurrent.futures", "xml.etree.ElementTree"])
    def test_dotted_submodules(self, name):
        assert PYTHON.is_standard_library(name)

    def test_dotted_description_falls_back_to_root(self):
        assert PYTHON.describe("os.path").description == "Operating system interfaces"

    def test_default_description(self):
        assert PYTHON.describe("bisect").description == "Python standard library module"


class TestGo:
    def test_exact_paths(self):
        assert GO.is_standard_library("fmt")
        assert GO.is_standard_library("net/http")

    def test_first_element_rule(self):
        assert GO.is_standard_library("net/http/cookiejar")
        assert GO.is_standard_library("crypto/ecdh")

    def test_module_paths_are_not_standard(self):
        assert not GO.is_standard_library("github.com/gin-gonic/gin")
        assert not GO.is_standard_library("golang.org/x/sync")
        assert not GO.is_standard_library("mycompany/internal")


class TestRust:
    def test_roots_and_paths(self):
        assert RUST.is_standard_library("std")
        assert RUST.is_standard_library("core")
        assert RUST.is_standard_library("std::sync::mpsc")

    def test_crates(self):
        assert not RUST.is_standard_library("serde")
        assert not RUST.is_standard_library("stdx")


class TestJava:
    def test_namespace_prefixes(self):
        assert JAVA.is_standard_library("java.util")
        assert JAVA.is_standard_library("java.util.zip")
        assert JAVA.is_standard_library("javax.servlet")
        assert JAVA.is_standard_library("org.w3c.dom")

    def test_third_party(self):
        assert not JAVA.is_standard_library("org.springframework.web")
        assert not JAVA.is_standard_library("javalin")


class TestRegistries:
    def test_one_per_ecosystem(self):
        assert set(REGISTRIES) == set(Ecosystem)

    @pytest.mark.parametrize("ecosystem", list(Ecosystem))
    def test_every_curated_name_is_standard(self, ecosystem):
        registry = REGISTRIES[ecosystem]
        for name in registry.all_names():
            assert registry.is_standard_library(name), name
            assert registry.validity_reason(name)


class TestSuggest:
    def test_bidirectional_containment(self):
        result = suggest("lodash-es", ["lodash", "react"], [])
        assert result == ["lodash"]
        assert suggest("axio", ["axios"], []) == ["axios"]

    def test_declared_before_standard(self):
        result = suggest("path", ["path-browserify"], ["path", "path/posix"])
        assert result == ["path-browserify", "path", "path/posix"]

    def test_capped_at_five(self):
        declared = [f"util{i}" for i in range(10)]
        assert len(suggest("util", declared, ["util"])) == 5

    def test_deduplicates(self):
        assert suggest("fs", ["fs"], ["fs", "fs/promises"]) == ["fs", "fs/promises"]

    def test_case_sensitive(self):
        assert suggest("React", ["react"], []) == []

    def test_unrelated(self):
        assert suggest("totally-fake-pkg-9", ["react", "vitest"], NODE.all_names()) == []

"""Tests for the ecosystem discovery engines against on-disk fixture projects."""

import json
import sys
from unittest.mock import AsyncMock

import pytest

from affordance_discovery.cache import TTLCache
from affordance_discovery.engines import (
    GoEngine,
    JavaEngine,
    JavaScriptEngine,
    PythonEngine,
    RustEngine,
)
from affordance_discovery.models import (
    Category,
    DiscoverRequest,
    Ecosystem,
    ExportKind,
    IntrospectRequest,
    SearchRequest,
    ValidateRequest,
)
from affordance_discovery.stdlib import REGISTRIES


@pytest.fixture
def tmp_repo(tmp_path):
    """Create a temporary repo root."""
    return tmp_path


@pytest.fixture
def cache():
    cache = TTLCache(ttl=300, max_size=100, sweep=False)
    yield cache
    cache.close()


@pytest.fixture
def no_tools(monkeypatch):
    """Keep engines from shelling out to npm, node, pip or conda."""
    run = AsyncMock(return_value=None)
    monkeypatch.setattr("affordance_discovery.engines.javascript.run_command", run)
    monkeypatch.setattr("affordance_discovery.engines.python.run_command", run)
    monkeypatch.setattr("affordance_discovery.introspect.javascript.run_command", run)
    return run


def _validate(statement, **kwargs):
    return ValidateRequest(import_statement=statement, **kwargs)


# --- JavaScript ---


@pytest.fixture
def js_repo(tmp_repo):
    (tmp_repo / "package.json").write_text(json.dumps({
        "name": "web",
        "dependencies": {"react": "^18.2.0", "lodash": "^4.17.21"},
        "devDependencies": {"vitest": "^1.0.0", "@testing-library/react": "^14.0.0"},
    }))
    react = tmp_repo / "node_modules" / "react"
    react.mkdir(parents=True)
    (react / "package.json").write_text(json.dumps({
        "name": "react", "description": "React is a JavaScript library for building user interfaces.",
        "main": "index.js",
    }))
    (react / "index.js").write_text(
        "const scheduler = require('scheduler');\n"
        "function useState(initial) {}\n"
        "function _internal() {}\n"
        "module.exports = { useState, _internal };\n"
    )
    (react / "jsx-runtime.js").write_text("exports.jsx = function (type, props) {};\n")
    (tmp_repo / "src").mkdir()
    (tmp_repo / "src" / "utils.ts").write_text("export const x = 1;\n")
    return tmp_repo


@pytest.fixture
def js_engine(js_repo, cache, no_tools):
    return JavaScriptEngine(cache, js_repo)


class TestJavaScriptValidate:
    async def test_dev_dependency_is_valid(self, js_engine):
        outcome = await js_engine.validate_import(_validate("import { describe, it } from 'vitest'"))
        assert outcome.valid is True
        assert outcome.package_name == "vitest"
        assert outcome.reason is None

    async def test_scoped_subpath(self, js_engine):
        outcome = await js_engine.validate_import(
            _validate("import { render } from '@testing-library/react/pure'"),
        )
        assert outcome.valid is True
        assert outcome.package_name == "@testing-library/react"

    async def test_installed_path(self, js_engine, js_repo):
        outcome = await js_engine.validate_import(_validate("import React from 'react'"))
        assert outcome.resolved_path == str((js_repo / "node_modules" / "react").resolve())

    async def test_unknown_package(self, js_engine):
        outcome = await js_engine.validate_import(_validate("import x from 'totally-fake-pkg-9'"))
        assert outcome.valid is False
        assert outcome.package_name == "totally-fake-pkg-9"
        assert outcome.reason == "Package 'totally-fake-pkg-9' is not installed or available"
        assert len(outcome.suggestions) <= 5

    async def test_suggestions_from_manifest(self, js_engine):
        outcome = await js_engine.validate_import(_validate("import x from 'lodash-es'"))
        assert outcome.valid is False
        assert outcome.suggestions[0] == "lodash"

    @pytest.mark.parametrize("statement, name", [
        ("import fs from 'fs'", "fs"),
        ("import { readFile } from 'node:fs/promises'", "node:fs/promises"),
        ("import { test } from 'node:test'", "node:test"),
    ])
    async def test_builtins(self, js_engine, statement, name):
        outcome = await js_engine.validate_import(_validate(statement))
        assert outcome.valid is True
        assert outcome.package_name == name
        assert outcome.reason.startswith("Built-in Node.js module: ")

    async def test_bare_test_is_not_builtin(self, js_engine):
        outcome = await js_engine.validate_import(_validate("import t from 'test'"))
        assert outcome.valid is False

    async def test_unparseable(self, js_engine):
        outcome = await js_engine.validate_import(_validate("this is not an import"))
        assert outcome.valid is False
        assert outcome.package_name == "unknown"
        assert outcome.reason == "Could not parse import statement"

    async def test_relative_paths(self, js_engine, js_repo):
        found = await js_engine.validate_import(
            _validate("import { x } from './utils'", project_path=str(js_repo / "src")),
        )
        assert found.valid is True
        assert found.resolved_path == str((js_repo / "src" / "utils.ts").resolve())
        missing = await js_engine.validate_import(
            _validate("import y from './nope'", project_path=str(js_repo / "src")),
        )
        assert missing.valid is False
        assert missing.reason == "Local file './nope' not found"

    async def test_project_path_changes_manifest(self, js_engine, tmp_path_factory):
        other = tmp_path_factory.mktemp("other")
        (other / "package.json").write_text(json.dumps({"dependencies": {"express": "4"}}))
        outcome = await js_engine.validate_import(
            _validate("const e = require('express')", project_path=str(other)),
        )
        assert outcome.valid is True


class TestValidateCaching:
    async def test_repeat_is_a_cache_hit(self, js_engine, cache):
        first = await js_engine.validate_import(_validate("import x from 'lodash-es'"))
        second = await js_engine.validate_import(_validate("import x from 'lodash-es'"))
        assert second is first
        stats = cache.stats()
        assert (stats.hits, stats.misses) == (1, 1)

    async def test_project_path_is_part_of_the_key(self, js_engine, js_repo, cache):
        await js_engine.validate_import(_validate("import React from 'react'"))
        other = await js_engine.validate_import(
            _validate("import React from 'react'", project_path=str(js_repo / "src")),
        )
        assert other.valid is True
        assert cache.stats().hits == 0
        assert cache.stats().size == 2

    async def test_statement_containing_delimiter(self, js_engine, js_repo, cache):
        src = js_repo / "src"
        await js_engine.validate_import(_validate(f"import x from 'react':{src}"))
        await js_engine.validate_import(_validate("import x from 'react'", project_path=str(src)))
        assert cache.stats().hits == 0
        assert cache.stats().size == 2


class TestJavaScriptDiscover:
    async def test_declared_and_installed_state(self, js_engine, js_repo):
        batch = await js_engine.discover_packages(DiscoverRequest())
        by_name = {p.name: p for p in batch.packages}
        assert set(by_name) == {"react", "lodash"}
        assert by_name["react"].installed is True
        assert by_name["react"].description.startswith("React is")
        assert by_name["lodash"].installed is False
        assert by_name["react"].declared_path == str(js_repo.resolve() / "package.json")

    async def test_dev_dependencies_on_request(self, js_engine):
        batch = await js_engine.discover_packages(DiscoverRequest(include_dev_dependencies=True))
        assert {"vitest", "@testing-library/react"} <= {p.name for p in batch.packages}

    async def test_search_term_limit(self, js_engine):
        batch = await js_engine.discover_packages(
            DiscoverRequest(search_term="test", include_dev_dependencies=True, max_results=5),
        )
        assert 0 < len(batch.packages) <= 5
        assert all("test" in p.name.lower() for p in batch.packages)
        assert batch.packages[0].name == "vitest"
        assert batch.total_found >= len(batch.packages)
        assert any(p.version == "stdlib" for p in batch.packages)

    async def test_global_packages(self, js_engine, no_tools):
        no_tools.return_value = json.dumps({"dependencies": {"typescript": {"version": "5.4.0"}}})
        batch = await js_engine.discover_packages(DiscoverRequest(search_term="type"))
        first = batch.packages[0]
        assert (first.name, first.version, first.installed) == ("typescript", "5.4.0", True)
        assert no_tools.await_args.args[0][:3] == ["npm", "list", "-g"]

    async def test_cached(self, js_engine, cache):
        first = await js_engine.discover_packages(DiscoverRequest(search_term="re"))
        second = await js_engine.discover_packages(DiscoverRequest(search_term="re"))
        assert second == first
        assert cache.stats().hits == 1


class TestJavaScriptIntrospect:
    async def test_builtin(self, js_engine):
        descriptor = await js_engine.introspect_module(IntrospectRequest(module_name="fs"))
        assert descriptor.resolved_path == "fs"
        assert [(e.name, e.kind) for e in descriptor.exports] == [("default", ExportKind.NAMESPACE)]
        assert descriptor.exports[0].description == "File system access"

    async def test_installed_package(self, js_engine, js_repo):
        descriptor = await js_engine.introspect_module(IntrospectRequest(module_name="react"))
        assert descriptor.resolved_path == str((js_repo / "node_modules" / "react" / "index.js").resolve())
        assert [e.name for e in descriptor.exports] == ["useState"]
        assert descriptor.submodules == ["jsx-runtime"]
        assert descriptor.dependencies == ["scheduler"]

    async def test_include_private(self, js_engine):
        descriptor = await js_engine.introspect_module(
            IntrospectRequest(module_name="react", include_private=True),
        )
        assert [e.name for e in descriptor.exports] == ["useState", "_internal"]

    async def test_subpath(self, js_engine):
        descriptor = await js_engine.introspect_module(IntrospectRequest(module_name="react/jsx-runtime"))
        assert [e.name for e in descriptor.exports] == ["jsx"]

    async def test_unresolved(self, js_engine):
        descriptor = await js_engine.introspect_module(IntrospectRequest(module_name="totally-fake-pkg-9"))
        assert descriptor.resolved_path == ""
        assert descriptor.exports == []


class TestSearchAffordances:
    async def test_ranked_and_annotated(self, js_engine):
        batch = await js_engine.search_affordances(SearchRequest(query="test runner"))
        assert batch.packages
        scores = [p.score for p in batch.packages]
        assert scores == sorted(scores, reverse=True)
        assert all(p.category for p in batch.packages)
        assert "vitest" in {p.name for p in batch.packages}

    async def test_category_filter(self, js_engine):
        batch = await js_engine.search_affordances(
            SearchRequest(query="http", category=Category.NETWORK, max_results=3),
        )
        assert len(batch.packages) <= 3
        assert batch.total_found >= len(batch.packages)


# --- Python ---


@pytest.fixture
def py_repo(tmp_repo):
    (tmp_repo / "pyproject.toml").write_text(
        '[project]\nname = "svc"\ndependencies = ["requests>=2", "Flask_SQLAlchemy"]\n'
        '[project.optional-dependencies]\ndev = ["pytest"]\n'
    )
    package = tmp_repo / "src" / "svc"
    (package / "api").mkdir(parents=True)
    (package / "__init__.py").write_text("from .core import run\n\n__all__ = ['run', 'VERSION']\nVERSION = '1'\n")
    (package / "core.py").write_text("import requests\n\ndef run(port: int = 8000) -> None:\n    pass\n")
    (package / "api" / "__init__.py").write_text("")
    (package / "api" / "routes.py").write_text("")
    return tmp_repo


@pytest.fixture
def py_engine(py_repo, cache, no_tools):
    return PythonEngine(cache, py_repo)


class TestPythonEngine:
    async def test_stdlib(self, py_engine):
        outcome = await py_engine.validate_import(_validate("from collections import OrderedDict"))
        assert outcome.valid is True
        assert outcome.package_name == "collections"

    async def test_normalized_declaration(self, py_engine):
        outcome = await py_engine.validate_import(_validate("import flask_sqlalchemy"))
        assert outcome.valid is True

    async def test_dev_declaration(self, py_engine):
        outcome = await py_engine.validate_import(_validate("import pytest"))
        assert outcome.valid is True

    async def test_own_package(self, py_engine, py_repo):
        outcome = await py_engine.validate_import(_validate("from svc.core import run"))
        assert outcome.valid is True
        assert outcome.resolved_path == str(py_repo.resolve() / "src" / "svc" / "__init__.py")

    async def test_relative_import(self, py_engine, py_repo):
        package = py_repo / "src" / "svc"
        found = await py_engine.validate_import(_validate("from .core import run", project_path=str(package)))
        assert found.valid is True
        missing = await py_engine.validate_import(_validate("from .nope import x", project_path=str(package)))
        assert missing.valid is False
        assert missing.reason == "Relative module '.nope' not found"

    async def test_undeclared(self, py_engine):
        outcome = await py_engine.validate_import(_validate("import totally_fake_pkg_9"))
        assert outcome.valid is False
        assert "totally_fake_pkg_9" in outcome.reason

    async def test_introspect_own_package(self, py_engine):
        descriptor = await py_engine.introspect_module(IntrospectRequest(module_name="svc", max_depth=2))
        exports = {e.name: e for e in descriptor.exports}
        assert set(exports) == {"run", "VERSION"}
        assert exports["run"].kind == ExportKind.FUNCTION
        assert descriptor.submodules == ["core", "api.routes"]

    async def test_introspect_stdlib(self, py_engine):
        descriptor = await py_engine.introspect_module(IntrospectRequest(module_name="json"))
        assert descriptor.resolved_path == "json"
        assert descriptor.exports[0].name == "json"

    @pytest.mark.parametrize("name", ["os.path", "concurrent.futures", "xml.etree.ElementTree"])
    async def test_introspect_dotted_stdlib(self, py_engine, name):
        descriptor = await py_engine.introspect_module(IntrospectRequest(module_name=name))
        assert descriptor.resolved_path == name
        assert [(e.name, e.kind) for e in descriptor.exports] == [(name, ExportKind.NAMESPACE)]

    async def test_dotted_stdlib_import_is_valid(self, py_engine):
        outcome = await py_engine.validate_import(_validate("import xml.etree.ElementTree as ET"))
        assert outcome.valid is True
        assert outcome.reason


class TestPythonInstalledPackages:
    async def test_pip_list(self, py_engine, no_tools):
        no_tools.return_value = json.dumps([{"name": "rich", "version": "13.7.1"}])
        batch = await py_engine.discover_packages(DiscoverRequest(search_term="rich"))
        first = batch.packages[0]
        assert (first.name, first.version, first.installed) == ("rich", "13.7.1", True)
        assert no_tools.await_args_list[0].args[0][1:4] == ["-m", "pip", "list"]

    async def test_conda_fallback(self, py_engine, no_tools):
        no_tools.side_effect = [None, json.dumps([{"name": "numpy", "version": "1.26.4", "channel": "conda-forge"}])]
        batch = await py_engine.discover_packages(DiscoverRequest(search_term="numpy"))
        assert [(p.name, p.installed) for p in batch.packages] == [("numpy", True)]
        assert no_tools.await_args_list[1].args[0][:2] == ["conda", "list"]

    async def test_no_tools_leaves_manifest_only(self, py_engine):
        batch = await py_engine.discover_packages(DiscoverRequest())
        assert {p.name for p in batch.packages} == {"requests", "Flask_SQLAlchemy"}


class TestPythonRuntimeTier:
    @pytest.fixture(autouse=True)
    def current_interpreter(self, monkeypatch):
        monkeypatch.setattr(
            "affordance_discovery.engines.python.project_interpreter", lambda base: sys.executable,
        )

    async def test_exports_come_from_the_resolved_file(self, py_engine, py_repo):
        package = py_repo / ".venv" / "lib" / "python3.12" / "site-packages" / "pytest"
        package.mkdir(parents=True)
        (package / "__init__.py").write_text("from ._core import *\n")
        (package / "_core.py").write_text("def venv_only():\n    pass\n")
        descriptor = await py_engine.introspect_module(IntrospectRequest(module_name="pytest"))
        assert descriptor.resolved_path == str(package.resolve() / "__init__.py")
        assert [e.name for e in descriptor.exports] == ["venv_only"]

    async def test_module_calling_sys_exit(self, py_engine, py_repo):
        (py_repo / "src" / "boom.py").write_text("import sys\n\nsys.exit(3)\n")
        descriptor = await py_engine.introspect_module(IntrospectRequest(module_name="boom"))
        assert descriptor.resolved_path.endswith("boom.py")
        assert descriptor.exports == []


# --- Rust ---


@pytest.fixture
def rust_repo(tmp_repo):
    (tmp_repo / "Cargo.toml").write_text(
        '[package]\nname = "my-app"\nversion = "0.1.0"\n\n'
        '[dependencies]\nserde_json = "1.0"\ntokio-util = { version = "0.7" }\n\n'
        '[dev-dependencies]\ncriterion = "0.5"\n'
    )
    (tmp_repo / "src").mkdir()
    (tmp_repo / "src" / "lib.rs").write_text("pub fn start() {}\nfn hidden() {}\npub mod net;\n")
    (tmp_repo / "src" / "net.rs").write_text("pub fn bind() {}\n")
    return tmp_repo


class TestRustEngine:
    @pytest.mark.parametrize("statement", [
        "use serde_json::Value;",
        "use tokio_util::codec::Framed;",
        "extern crate criterion;",
        "use crate::config::Settings;",
        "use super::*;",
        "use my_app::net;",
        "use std::collections::HashMap;",
    ])
    async def test_valid(self, rust_repo, cache, statement):
        outcome = await RustEngine(cache, rust_repo).validate_import(_validate(statement))
        assert outcome.valid is True

    async def test_unknown_crate(self, rust_repo, cache):
        outcome = await RustEngine(cache, rust_repo).validate_import(_validate("use rand::Rng;"))
        assert outcome.valid is False
        assert outcome.reason == "Crate 'rand' is not found in Cargo.toml"

    async def test_introspect_own_crate(self, rust_repo, cache):
        engine = RustEngine(cache, rust_repo)
        descriptor = await engine.introspect_module(IntrospectRequest(module_name="crate"))
        assert {e.name for e in descriptor.exports} == {"start", "net"}
        assert descriptor.submodules == ["net"]
        assert descriptor.dependencies[:2] == ["serde_json", "tokio-util"]


# --- Go ---


@pytest.fixture
def go_repo(tmp_repo):
    (tmp_repo / "go.mod").write_text(
        "module example.com/app\n\ngo 1.22\n\nrequire github.com/gin-gonic/gin v1.9.1\n"
    )
    (tmp_repo / "internal" / "store").mkdir(parents=True)
    (tmp_repo / "internal" / "store" / "store.go").write_text(
        "package store\n\ntype Store struct{}\n\nfunc Open() *Store { return nil }\n\nfunc helper() {}\n"
    )
    return tmp_repo


class TestGoEngine:
    @pytest.mark.parametrize("statement", [
        'import "fmt"',
        'import "net/http/httptest"',
        'import "github.com/gin-gonic/gin/binding"',
        'import store "example.com/app/internal/store"',
    ])
    async def test_valid(self, go_repo, cache, statement):
        outcome = await GoEngine(cache, go_repo).validate_import(_validate(statement))
        assert outcome.valid is True

    async def test_missing_own_package(self, go_repo, cache):
        outcome = await GoEngine(cache, go_repo).validate_import(_validate('import "example.com/app/nope"'))
        assert outcome.valid is False
        assert outcome.reason == "Package 'example.com/app/nope' is not found in module example.com/app"

    async def test_not_required(self, go_repo, cache):
        outcome = await GoEngine(cache, go_repo).validate_import(_validate('import "github.com/spf13/cobra"'))
        assert outcome.valid is False
        assert outcome.reason == "Package 'github.com/spf13/cobra' is not found in go.mod"

    async def test_introspect_own_package(self, go_repo, cache):
        descriptor = await GoEngine(cache, go_repo).introspect_module(
            IntrospectRequest(module_name="example.com/app/internal/store"),
        )
        assert {e.name for e in descriptor.exports} == {"Store", "Open"}
        assert descriptor.resolved_path == str(go_repo.resolve() / "internal" / "store")


# --- Java ---


@pytest.fixture
def java_repo(tmp_repo):
    (tmp_repo / "pom.xml").write_text("""<?xml version="1.0"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <groupId>com.acme</groupId>
  <artifactId>orders</artifactId>
  <dependencies>
    <dependency>
      <groupId>com.fasterxml.jackson.core</groupId>
      <artifactId>jackson-databind</artifactId>
      <version>2.17.0</version>
    </dependency>
    <dependency>
      <groupId>org.junit.jupiter</groupId>
      <artifactId>junit-jupiter</artifactId>
      <version>5.10.0</version>
      <scope>test</scope>
    </dependency>
  </dependencies>
</project>
""")
    package = tmp_repo / "src" / "main" / "java" / "com" / "acme" / "orders"
    package.mkdir(parents=True)
    (package / "Order.java").write_text("package com.acme.orders;\n\npublic class Order {}\n")
    return tmp_repo


class TestJavaEngine:
    @pytest.mark.parametrize("statement", [
        "import java.util.List;",
        "import com.fasterxml.jackson.databind.ObjectMapper;",
        "import static org.junit.jupiter.api.Assertions.assertEquals;",
        "import com.acme.orders.Order;",
    ])
    async def test_valid(self, java_repo, cache, statement):
        outcome = await JavaEngine(cache, java_repo).validate_import(_validate(statement))
        assert outcome.valid is True

    async def test_missing_own_package(self, java_repo, cache):
        outcome = await JavaEngine(cache, java_repo).validate_import(_validate("import com.acme.billing.Invoice;"))
        assert outcome.valid is False
        assert outcome.reason == "Package 'com.acme.billing' is not found in project sources"

    async def test_undeclared(self, java_repo, cache):
        outcome = await JavaEngine(cache, java_repo).validate_import(_validate("import org.apache.commons.lang3.StringUtils;"))
        assert outcome.valid is False
        assert outcome.reason == "Package 'org.apache.commons.lang3' is not found in build dependencies"

    async def test_introspect_sources(self, java_repo, cache):
        descriptor = await JavaEngine(cache, java_repo).introspect_module(
            IntrospectRequest(module_name="com.acme.orders"),
        )
        assert [e.name for e in descriptor.exports] == ["Order"]
        assert descriptor.dependencies == ["com.fasterxml.jackson.core:jackson-databind"]


# --- Standard library across engines ---


_ENGINES = {
    Ecosystem.JAVASCRIPT: (JavaScriptEngine, "import x from '{}'"),
    Ecosystem.PYTHON: (PythonEngine, "import {}"),
    Ecosystem.RUST: (RustEngine, "use {};"),
    Ecosystem.GO: (GoEngine, 'import "{}"'),
    Ecosystem.JAVA: (JavaEngine, "import {}.*;"),
}


@pytest.mark.parametrize("ecosystem", list(Ecosystem))
async def test_every_standard_name_validates(ecosystem, tmp_repo, cache, no_tools):
    engine_type, template = _ENGINES[ecosystem]
    engine = engine_type(cache, tmp_repo)
    for name in REGISTRIES[ecosystem].all_names():
        outcome = await engine.validate_import(_validate(template.format(name)))
        assert outcome.valid is True, name
        assert outcome.reason, name
        assert outcome.suggestions == []
    no_tools.assert_not_awaited()

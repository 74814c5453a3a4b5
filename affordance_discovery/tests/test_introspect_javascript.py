"""Tests for JavaScript / TypeScript export extraction and package layout."""

import json

import pytest

from affordance_discovery.introspect.javascript import (
    entry_point,
    find_installed_package,
    manifest_exports,
    parse_source,
    structural_surface,
    types_entry,
)
from affordance_discovery.models import ExportKind


def _by_name(exports):
    return {e.name: e for e in exports}


@pytest.fixture
def tmp_repo(tmp_path):
    """Create a temporary repo root."""
    return tmp_path


class TestEsModules:
    def test_named_declarations(self):
        source = b"""
import React from 'react';
import { join } from 'node:path';
import helper from './helper';
export function add(a, b = 1, ...rest) { return a + b; }
export async function load(url) {}
export class Store {}
export const VERSION = '1.0';
export const double = (x) => x * 2;
"""
        surface = parse_source(source)
        exports = _by_name(surface.exports)
        assert set(exports) == {"add", "load", "Store", "VERSION", "double"}
        assert exports["add"].kind == ExportKind.FUNCTION
        assert [p.name for p in exports["add"].parameters] == ["a", "b", "...rest"]
        assert [p.optional for p in exports["add"].parameters] == [False, True, True]
        assert exports["load"].signature.startswith("async function load(")
        assert exports["Store"].kind == ExportKind.CLASS
        assert exports["VERSION"].kind == ExportKind.CONSTANT
        assert exports["VERSION"].signature == "const VERSION"
        assert exports["double"].kind == ExportKind.FUNCTION
        assert surface.dependencies == ["react", "node:path"]

    def test_default_and_clause(self):
        source = b"""
function impl() {}
const limit = 3;
export { impl as run, limit };
export default impl;
export * as utils from './utils';
"""
        exports = _by_name(parse_source(source).exports)
        assert exports["run"].kind == ExportKind.FUNCTION
        assert exports["limit"].kind == ExportKind.CONSTANT
        assert exports["default"].kind == ExportKind.FUNCTION
        assert exports["utils"].kind == ExportKind.NAMESPACE


class TestCommonJs:
    def test_module_exports_object(self):
        source = b"""
const lodash = require('lodash');
function merge(a, b) {}
module.exports = { merge, name: 'x', build: function () {} };
"""
        surface = parse_source(source, ".cjs")
        exports = _by_name(surface.exports)
        assert exports["merge"].kind == ExportKind.FUNCTION
        assert exports["name"].kind == ExportKind.CONSTANT
        assert exports["build"].kind == ExportKind.FUNCTION
        assert surface.dependencies == ["lodash"]

    def test_exports_assignment(self):
        source = b"exports.parse = function (input) {};\nmodule.exports.VERSION = '2';\n"
        exports = _by_name(parse_source(source).exports)
        assert exports["parse"].kind == ExportKind.FUNCTION
        assert exports["VERSION"].kind == ExportKind.CONSTANT


class TestTypeScript:
    def test_declaration_file(self):
        source = b"""
export declare function create(name: string, size?: number): Widget;
export interface Widget { id: string }
export type Id = string;
export enum Mode { A, B }
export declare namespace util {}
"""
        exports = _by_name(parse_source(source, ".d.ts").exports)
        create = exports["create"]
        assert create.kind == ExportKind.FUNCTION
        assert create.return_type == "Widget"
        assert [(p.name, p.type, p.optional) for p in create.parameters] == [
            ("name", "string", False), ("size", "number", True),
        ]
        assert exports["Widget"].kind == ExportKind.INTERFACE
        assert exports["Id"].kind == ExportKind.TYPE
        assert exports["Mode"].kind == ExportKind.TYPE
        assert exports["util"].kind == ExportKind.NAMESPACE


class TestPackageLayout:
    def _package(self, root, name, manifest, files):
        package_dir = root / "node_modules" / name
        package_dir.mkdir(parents=True)
        (package_dir / "package.json").write_text(json.dumps(manifest))
        for rel, content in files.items():
            path = package_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content)
        return package_dir

    def test_find_installed_walks_up(self, tmp_repo):
        package_dir = self._package(tmp_repo, "left-pad", {"name": "left-pad"}, {})
        nested = tmp_repo / "src" / "deep"
        nested.mkdir(parents=True)
        assert find_installed_package("left-pad", nested) == package_dir.resolve()
        assert find_installed_package("right-pad", nested) is None

    def test_entry_point_prefers_exports(self, tmp_repo):
        package_dir = self._package(
            tmp_repo, "@scope/kit",
            {"exports": {".": {"import": "./esm/index.mjs", "require": "./cjs/index.js"}}, "main": "./cjs/index.js"},
            {"esm/index.mjs": "export const a = 1;", "cjs/index.js": "exports.a = 1;"},
        )
        assert entry_point(package_dir) == (package_dir / "esm" / "index.mjs").resolve()

    def test_entry_point_main_without_extension(self, tmp_repo):
        package_dir = self._package(tmp_repo, "pkg", {"main": "lib/main"}, {"lib/main.js": ""})
        assert entry_point(package_dir) == (package_dir / "lib" / "main.js").resolve()

    def test_types_file_fills_empty_entry(self, tmp_repo):
        package_dir = self._package(
            tmp_repo, "typed", {"main": "index.js", "types": "index.d.ts"},
            {"index.js": "", "index.d.ts": "export declare function go(): void;"},
        )
        surface = structural_surface(entry_point(package_dir), types_entry(package_dir))
        assert [e.name for e in surface.exports] == ["go"]

    def test_manifest_exports(self):
        manifest = {"exports": {".": "./index.js", "./fp": "./fp.js", "./package.json": "./package.json"}}
        names = [e.name for e in manifest_exports(manifest)]
        assert names == ["default", "fp", "package.json"]
        assert all(e.kind == ExportKind.NAMESPACE for e in manifest_exports(manifest))
        assert manifest_exports({"main": "x.js"}) == []

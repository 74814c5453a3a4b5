"""Keyword-weighted relevance scoring for functionality search.

Everything here is pure: identical inputs always give identical scores,
and the keyword tables are immutable module constants.
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from .models import Category, PackageRecord


@dataclass(frozen=True)
class CategoryKeywords:
    keywords: tuple[str, ...]
    weight: float = 1.0


def _unique(*words: str) -> tuple[str, ...]:
    return tuple(dict.fromkeys(words))


CATEGORY_KEYWORDS: Mapping[Category, CategoryKeywords] = MappingProxyType({
    Category.UI: CategoryKeywords(_unique(
        "react", "vue", "angular", "svelte", "component", "ui", "interface", "design",
        "styled", "css", "bootstrap", "material", "antd", "chakra", "semantic",
        "tailwind", "theme", "layout", "grid", "flex", "button", "form", "input",
        "modal", "dropdown", "menu", "navigation", "chart", "graph", "visualization",
        "datepicker", "calendar", "slider", "tooltip", "popover", "toast",
        "notification", "animation", "transition", "icon", "image", "gallery",
        "carousel", "accordion", "tabs", "pagination", "table", "list", "widget",
        "gui", "tkinter", "qt", "swing", "javafx",
    )),
    Category.DATA: CategoryKeywords(_unique(
        "database", "sql", "nosql", "mongodb", "postgres", "mysql", "sqlite", "redis",
        "orm", "query", "schema", "migration", "json", "xml", "csv", "yaml", "parser",
        "serialization", "serde", "validation", "transform", "filter", "sort",
        "aggregate", "cache", "storage", "persistence", "indexing", "search",
        "elasticsearch", "analytics", "metrics", "logging", "monitoring", "backup",
        "sync", "replication", "dataframe", "pandas", "numpy", "jdbc", "hibernate",
        "jackson",
    )),
    Category.NETWORK: CategoryKeywords(_unique(
        "http", "https", "request", "client", "server", "api", "rest", "graphql",
        "grpc", "websocket", "socket", "tcp", "udp", "proxy", "middleware", "cors",
        "auth", "jwt", "oauth", "session", "cookie", "express", "koa", "fastify",
        "hapi", "nest", "apollo", "axios", "fetch", "superagent", "curl", "download",
        "upload", "stream", "compress", "gzip", "deflate", "ssl", "tls", "certificate",
        "encryption", "security", "url", "flask", "django", "fastapi", "aiohttp",
        "httpx", "hyper", "reqwest", "spring", "netty",
    )),
    Category.TESTING: CategoryKeywords(_unique(
        "test", "testing", "jest", "mocha", "chai", "jasmine", "karma", "cypress",
        "selenium", "playwright", "puppeteer", "vitest", "pytest", "junit",
        "mockito", "testify", "mock", "stub", "spy", "fixture", "assertion",
        "expect", "coverage", "benchmark", "performance", "unit", "integration",
        "e2e", "snapshot", "suite", "spec", "proptest", "hypothesis",
    )),
    Category.BUILD: CategoryKeywords(_unique(
        "build", "webpack", "rollup", "vite", "parcel", "esbuild", "babel",
        "typescript", "compiler", "transpiler", "bundler", "minify", "optimize",
        "uglify", "terser", "postcss", "sass", "less", "stylus", "plugin", "loader",
        "preset", "config", "eslint", "prettier", "lint", "format", "gulp", "grunt",
        "task", "deploy", "setuptools", "maven", "gradle", "cargo", "proc_macro",
        "codegen",
    )),
    Category.UTILITY: CategoryKeywords(_unique(
        "util", "helper", "lodash", "underscore", "ramda", "moment", "date", "time",
        "string", "number", "math", "crypto", "hash", "uuid", "random", "color",
        "path", "file", "directory", "fs", "buffer", "array", "object", "collection",
        "functional", "promise", "async", "await", "throttle", "debounce", "retry",
        "queue", "tree", "algorithm", "binary", "regex", "pattern", "match",
        "itertools", "guava", "commons",
    )),
})

FUNCTIONALITY_PACKAGES: Mapping[str, tuple[str, ...]] = MappingProxyType({
    # HTTP / API
    "http client": (
        "axios", "node-fetch", "superagent", "got", "ky", "undici",
        "requests", "httpx", "aiohttp", "urllib3",
        "reqwest", "hyper", "ureq",
        "net/http", "github.com/go-resty/resty/v2",
        "com.squareup.okhttp3:okhttp", "org.apache.httpcomponents.client5:httpclient5",
        "java.net.http",
    ),
    "http server": (
        "express", "koa", "fastify", "hapi", "@nestjs/core",
        "flask", "fastapi", "django", "starlette",
        "axum", "actix-web", "warp", "rocket",
        "github.com/gin-gonic/gin", "github.com/labstack/echo/v4", "github.com/go-chi/chi/v5",
        "org.springframework.boot:spring-boot-starter-web", "io.javalin:javalin",
    ),
    "api testing": ("supertest", "nock", "msw", "responses", "respx", "wiremock"),
    "websocket": ("ws", "socket.io", "websockets", "tokio-tungstenite", "github.com/gorilla/websocket"),
    "graphql": ("graphql", "apollo-server", "@apollo/client", "graphene", "strawberry-graphql", "async-graphql"),
    # Database
    "database": ("mongoose", "sequelize", "typeorm", "prisma", "knex", "sqlalchemy", "diesel", "sqlx", "gorm.io/gorm"),
    "mongodb": ("mongoose", "mongodb", "pymongo", "motor"),
    "postgresql": ("pg", "postgres", "psycopg", "psycopg2", "asyncpg", "tokio-postgres", "github.com/jackc/pgx/v5", "org.postgresql:postgresql"),
    "mysql": ("mysql", "mysql2", "pymysql", "mysqlclient", "github.com/go-sql-driver/mysql"),
    "redis": ("redis", "ioredis", "github.com/redis/go-redis/v9"),
    "orm": ("sequelize", "typeorm", "prisma", "objection", "sqlalchemy", "peewee", "diesel", "sea-orm", "gorm.io/gorm", "org.hibernate.orm:hibernate-core"),
    # UI
    "react": ("react", "react-dom", "react-router", "react-redux", "styled-components"),
    "vue": ("vue", "vue-router", "vuex", "pinia", "nuxt"),
    "angular": ("@angular/core", "@angular/common", "@angular/router"),
    "ui components": ("antd", "@mui/material", "@chakra-ui/react", "semantic-ui-react"),
    "styling": ("styled-components", "@emotion/react", "tailwindcss", "bootstrap"),
    "animation": ("framer-motion", "react-spring", "lottie-react", "gsap"),
    "charts": ("chart.js", "recharts", "d3", "plotly.js", "matplotlib", "plotly", "seaborn"),
    # Testing
    "testing": ("jest", "mocha", "chai", "jasmine", "vitest", "pytest", "unittest", "github.com/stretchr/testify", "org.junit.jupiter:junit-jupiter"),
    "e2e testing": ("cypress", "playwright", "puppeteer", "selenium-webdriver", "selenium"),
    "mocking": ("jest", "sinon", "msw", "nock", "pytest-mock", "mockall", "org.mockito:mockito-core"),
    # Build / dev tools
    "bundling": ("webpack", "rollup", "vite", "parcel", "esbuild"),
    "transpiling": ("@babel/core", "typescript", "@swc/core"),
    "linting": ("eslint", "prettier", "ruff", "flake8", "black", "clippy"),
    "task runner": ("gulp", "grunt", "npm-run-all", "invoke", "nox", "tox"),
    # Utility
    "date handling": ("moment", "date-fns", "dayjs", "luxon", "arrow", "pendulum", "python-dateutil", "chrono"),
    "validation": ("joi", "yup", "zod", "ajv", "pydantic", "marshmallow", "validator", "github.com/go-playground/validator/v10"),
    "logging": ("winston", "pino", "bunyan", "debug", "loguru", "structlog", "log", "tracing", "env_logger", "go.uber.org/zap", "github.com/sirupsen/logrus", "org.slf4j:slf4j-api"),
    "utilities": ("lodash", "underscore", "ramda", "rxjs", "toolz", "more-itertools", "itertools", "com.google.guava:guava"),
    "file processing": ("fs-extra", "glob", "chokidar", "sharp", "watchdog", "walkdir", "notify"),
    "crypto": ("crypto-js", "bcrypt", "jsonwebtoken", "uuid", "cryptography", "pyjwt", "ring", "rustls"),
    "process management": ("pm2", "forever", "nodemon", "concurrently", "supervisor"),
    "cli": ("commander", "yargs", "click", "typer", "argparse", "clap", "github.com/spf13/cobra", "info.picocli:picocli"),
    "async runtime": ("tokio", "async-std", "asyncio", "trio", "anyio"),
    # Data processing
    "json": ("json5", "hjson", "jsonpath", "fast-json-stringify", "orjson", "ujson", "serde_json", "com.fasterxml.jackson.core:jackson-databind", "com.google.code.gson:gson"),
    "xml": ("xml2js", "fast-xml-parser", "xmldom", "lxml", "quick-xml"),
    "csv": ("csv-parser", "fast-csv", "papaparse", "pandas", "csv"),
    "yaml": ("js-yaml", "yaml", "pyyaml", "ruamel.yaml", "serde_yaml", "gopkg.in/yaml.v3"),
    "serialization": ("serde", "msgpack", "protobuf", "pickle", "google.golang.org/protobuf"),
})


def _lower_text(record: PackageRecord) -> tuple[str, str]:
    return record.name.lower(), (record.description or "").lower()


def score(query: str, record: PackageRecord) -> float:
    """Additive relevance of ``record`` for a free-text query."""
    query_lower = query.lower()
    name, description = _lower_text(record)
    total = 0.0

    if name == query_lower:
        total += 100
    if name in query_lower or query_lower in name:
        total += 50

    description_words = description.split()
    for word in query_lower.split():
        if word in name:
            total += 30
        if any(word in d for d in description_words):
            total += 20

    for info in CATEGORY_KEYWORDS.values():
        hits = sum(
            1 for kw in info.keywords
            if kw in query_lower or kw in name or kw in description
        )
        if hits:
            total += hits * 10 * info.weight

    for phrase, packages in FUNCTIONALITY_PACKAGES.items():
        if phrase in query_lower and name in packages:
            total += 40

    return total


def matches_category(record: PackageRecord, category: Category) -> bool:
    if category == Category.ALL:
        return True
    name, description = _lower_text(record)
    return any(kw in name or kw in description for kw in CATEGORY_KEYWORDS[category].keywords)


def categorize(record: PackageRecord) -> Category:
    """Category with the most weighted keyword hits; name hits count double."""
    name, description = _lower_text(record)
    best, best_score = Category.UTILITY, 0.0
    for category, info in CATEGORY_KEYWORDS.items():
        hits = 0
        for kw in info.keywords:
            if kw in name:
                hits += 2
            if kw in description:
                hits += 1
        weighted = hits * info.weight
        if weighted > best_score:
            best, best_score = category, weighted
    return best


def annotate(record: PackageRecord, query: Optional[str] = None) -> PackageRecord:
    update: dict = {"category": categorize(record).value}
    if query is not None:
        update["score"] = score(query, record)
    return record.model_copy(update=update)


def rank(
    query: str,
    records: Iterable[PackageRecord],
    category: Category = Category.ALL,
    max_results: int = 20,
) -> list[PackageRecord]:
    """Score, filter by category, drop zero scores, sort stably, truncate."""
    scored = [
        (score(query, r), r)
        for r in records
        if matches_category(r, category)
    ]
    scored = [pair for pair in scored if pair[0] > 0]
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [r for _, r in scored[:max_results]]


def suggest_for_functionality(functionality: str) -> list[str]:
    """Packages known to provide a functionality phrase."""
    needle = functionality.lower().strip()
    direct = FUNCTIONALITY_PACKAGES.get(needle)
    if direct:
        return list(direct)
    found: list[str] = []
    for phrase, packages in FUNCTIONALITY_PACKAGES.items():
        if phrase in needle or needle in phrase:
            found.extend(packages)
    return list(dict.fromkeys(found))

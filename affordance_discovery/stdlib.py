"""Curated standard-library snapshots, one registry per ecosystem.

These are process-wide constants. They are not derived from an installed
toolchain and are not guaranteed to be complete.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional

from .models import Ecosystem


@dataclass(frozen=True)
class StdlibInfo:
    description: str
    category: str


@dataclass(frozen=True)
class StdlibRegistry:
    ecosystem: Ecosystem
    label: str
    names: tuple[str, ...]
    descriptions: Mapping[str, tuple[str, str]] = field(default_factory=dict)
    default_description: str = "Standard library module"
    default_category: str = "core"
    # e.g. "node:" - "node:fs" is the same module as "fs"
    alias_prefix: Optional[str] = None
    # names that only exist behind the alias prefix ("node:test")
    prefixed_only: frozenset[str] = frozenset()
    # dotted/path prefixes that mark the whole namespace as standard
    namespace_prefixes: tuple[str, ...] = ()
    # Go-style: the first path element of any standard package is a curated root
    first_element_rule: bool = False
    # Python-style: "os.path" and "xml.etree.ElementTree" belong to their curated root
    dotted_root_rule: bool = False

    def __post_init__(self):
        object.__setattr__(self, "_members", frozenset(self.names))

    def _canonical(self, identifier: str) -> str:
        if self.alias_prefix and identifier.startswith(self.alias_prefix):
            bare = identifier[len(self.alias_prefix):]
            if bare in self.prefixed_only:
                return identifier
            return bare
        return identifier

    def is_standard_library(self, identifier: str) -> bool:
        if not identifier:
            return False
        if identifier in self.prefixed_only and not (
            self.alias_prefix and identifier.startswith(self.alias_prefix)
        ):
            return False
        canonical = self._canonical(identifier)
        if canonical in self._members:
            return True
        if self.alias_prefix and identifier.startswith(self.alias_prefix):
            if identifier[len(self.alias_prefix):] in self.prefixed_only:
                return True
        if any(canonical.startswith(p) for p in self.namespace_prefixes):
            return True
        if self.first_element_rule:
            first = canonical.split("/", 1)[0]
            return "." not in first and first in self._members
        if self.dotted_root_rule:
            return canonical.split(".", 1)[0] in self._members
        return False

    def describe(self, identifier: str) -> StdlibInfo:
        canonical = self._canonical(identifier)
        bare = canonical
        if self.alias_prefix and canonical.startswith(self.alias_prefix):
            bare = canonical[len(self.alias_prefix):]
        fallback = (self.default_description, self.default_category)
        if self.dotted_root_rule:
            fallback = self.descriptions.get(canonical.split(".", 1)[0], fallback)
        description, category = self.descriptions.get(
            canonical,
            self.descriptions.get(bare, fallback),
        )
        return StdlibInfo(description=description, category=category)

    def matches(self, term: str) -> list[str]:
        """Curated names containing ``term`` (case-insensitive), in registry order."""
        needle = term.lower()
        return [n for n in self.all_names() if needle in n.lower()]

    def all_names(self) -> list[str]:
        extra = [f"{self.alias_prefix}{n}" for n in sorted(self.prefixed_only)] if self.alias_prefix else []
        return list(self.names) + extra

    def validity_reason(self, identifier: str) -> str:
        return f"{self.label}: {self.describe(identifier).description}"


# --- Node.js ---

_NODE_DESCRIPTIONS: dict[str, tuple[str, str]] = {
    "assert": ("Assertion testing utilities", "testing"),
    "assert/strict": ("Strict assertion mode", "testing"),
    "async_hooks": ("Track asynchronous resources", "core"),
    "buffer": ("Binary data handling with Buffer", "data"),
    "child_process": ("Spawn and manage child processes", "process"),
    "cluster": ("Multi-process load sharing", "process"),
    "console": ("Debugging console", "core"),
    "constants": ("Deprecated OS and crypto constants", "core"),
    "crypto": ("Cryptographic functionality", "security"),
    "dgram": ("UDP datagram sockets", "network"),
    "diagnostics_channel": ("Named channels for diagnostic messages", "core"),
    "dns": ("Name resolution", "network"),
    "dns/promises": ("Promise-based name resolution", "network"),
    "domain": ("Deprecated error-handling domains", "core"),
    "events": ("Event emitter", "core"),
    "fs": ("File system access", "filesystem"),
    "fs/promises": ("Promise-based file system access", "filesystem"),
    "http": ("HTTP server and client", "network"),
    "http2": ("HTTP/2 server and client", "network"),
    "https": ("HTTPS server and client", "network"),
    "inspector": ("V8 inspector protocol", "debugging"),
    "module": ("Module system internals", "core"),
    "net": ("TCP and IPC sockets", "network"),
    "os": ("Operating system information", "system"),
    "path": ("File path utilities", "filesystem"),
    "path/posix": ("POSIX path utilities", "filesystem"),
    "path/win32": ("Windows path utilities", "filesystem"),
    "perf_hooks": ("Performance measurement APIs", "debugging"),
    "process": ("Current process information and control", "process"),
    "punycode": ("Deprecated punycode encoding", "data"),
    "querystring": ("URL query string parsing", "network"),
    "readline": ("Line-by-line stream reading", "io"),
    "readline/promises": ("Promise-based line reading", "io"),
    "repl": ("Read-eval-print loop", "debugging"),
    "sea": ("Single executable application helpers", "core"),
    "sqlite": ("Embedded SQLite database", "data"),
    "stream": ("Streaming data interfaces", "io"),
    "stream/consumers": ("Stream consumer helpers", "io"),
    "stream/promises": ("Promise-based stream utilities", "io"),
    "stream/web": ("WHATWG web streams", "io"),
    "string_decoder": ("Decode buffers into strings", "data"),
    "sys": ("Deprecated alias of util", "core"),
    "test": ("Built-in test runner", "testing"),
    "test/reporters": ("Test runner reporters", "testing"),
    "timers": ("Scheduling timers", "core"),
    "timers/promises": ("Promise-based timers", "core"),
    "tls": ("TLS/SSL sockets", "network"),
    "trace_events": ("Trace event collection", "debugging"),
    "tty": ("Terminal handling", "io"),
    "url": ("URL parsing and resolution", "network"),
    "util": ("Utility functions", "core"),
    "util/types": ("Type checks for built-in objects", "core"),
    "v8": ("V8 engine APIs", "core"),
    "vm": ("Compile and run code in V8 contexts", "core"),
    "wasi": ("WebAssembly system interface", "core"),
    "worker_threads": ("Threads for parallel JavaScript", "process"),
    "zlib": ("Compression and decompression", "data"),
}

NODE = StdlibRegistry(
    ecosystem=Ecosystem.JAVASCRIPT,
    label="Built-in Node.js module",
    names=tuple(n for n in _NODE_DESCRIPTIONS if n not in ("test", "test/reporters", "sea", "sqlite")),
    descriptions=MappingProxyType(_NODE_DESCRIPTIONS),
    default_description="Node.js core module",
    alias_prefix="node:",
    prefixed_only=frozenset({"test", "test/reporters", "sea", "sqlite"}),
)


# --- Python ---

_PYTHON_MODULES = (
    "__future__", "_thread", "abc", "argparse", "array", "ast", "asyncio", "atexit",
    "base64", "bdb", "binascii", "bisect", "builtins", "bz2", "calendar", "cmath",
    "cmd", "code", "codecs", "codeop", "collections", "colorsys", "compileall",
    "concurrent", "configparser", "contextlib", "contextvars", "copy", "copyreg",
    "cProfile", "csv", "ctypes", "curses", "dataclasses", "datetime", "dbm",
    "decimal", "difflib", "dis", "doctest", "email", "encodings", "ensurepip",
    "enum", "errno", "faulthandler", "fcntl", "filecmp", "fileinput", "fnmatch",
    "fractions", "ftplib", "functools", "gc", "getopt", "getpass", "gettext",
    "glob", "graphlib", "grp", "gzip", "hashlib", "heapq", "hmac", "html", "http",
    "idlelib", "imaplib", "importlib", "inspect", "io", "ipaddress", "itertools",
    "json", "keyword", "linecache", "locale", "logging", "lzma", "mailbox",
    "marshal", "math", "mimetypes", "mmap", "modulefinder", "msvcrt",
    "multiprocessing", "netrc", "numbers", "operator", "optparse", "os",
    "pathlib", "pdb", "pickle", "pickletools", "pkgutil", "platform", "plistlib",
    "poplib", "posix", "pprint", "profile", "pstats", "pty", "pwd", "py_compile",
    "pyclbr", "pydoc", "queue", "quopri", "random", "re", "readline", "reprlib",
    "resource", "rlcompleter", "runpy", "sched", "secrets", "select", "selectors",
    "shelve", "shlex", "shutil", "signal", "site", "smtplib", "socket",
    "socketserver", "sqlite3", "ssl", "stat", "statistics", "string",
    "stringprep", "struct", "subprocess", "symtable", "sys", "sysconfig",
    "syslog", "tabnanny", "tarfile", "tempfile", "termios", "textwrap",
    "threading", "time", "timeit", "tkinter", "token", "tokenize", "tomllib",
    "trace", "traceback", "tracemalloc", "tty", "turtle", "types", "typing",
    "unicodedata", "unittest", "urllib", "uuid", "venv", "warnings", "wave",
    "weakref", "webbrowser", "winreg", "winsound", "wsgiref", "xml", "xmlrpc",
    "zipapp", "zipfile", "zipimport", "zlib", "zoneinfo",
)

_PYTHON_DESCRIPTIONS: dict[str, tuple[str, str]] = {
    "asyncio": ("Asynchronous I/O, event loop and coroutines", "concurrency"),
    "argparse": ("Command-line argument parsing", "cli"),
    "collections": ("Container datatypes", "data"),
    "csv": ("CSV file reading and writing", "data"),
    "dataclasses": ("Data classes", "data"),
    "datetime": ("Dates and times", "utility"),
    "functools": ("Higher-order functions", "utility"),
    "hashlib": ("Secure hashes and message digests", "security"),
    "http": ("HTTP modules (client, server, cookies)", "network"),
    "itertools": ("Iterator building blocks", "utility"),
    "json": ("JSON encoder and decoder", "data"),
    "logging": ("Logging facility", "utility"),
    "os": ("Operating system interfaces", "system"),
    "pathlib": ("Object-oriented filesystem paths", "filesystem"),
    "re": ("Regular expressions", "utility"),
    "socket": ("Low-level networking interface", "network"),
    "sqlite3": ("DB-API interface for SQLite databases", "data"),
    "subprocess": ("Subprocess management", "process"),
    "threading": ("Thread-based parallelism", "concurrency"),
    "typing": ("Type hint support", "core"),
    "unittest": ("Unit testing framework", "testing"),
    "urllib": ("URL handling modules", "network"),
    "uuid": ("UUID objects", "utility"),
    "xml": ("XML processing modules", "data"),
}

PYTHON = StdlibRegistry(
    ecosystem=Ecosystem.PYTHON,
    label="Python standard library module",
    names=_PYTHON_MODULES,
    descriptions=MappingProxyType(_PYTHON_DESCRIPTIONS),
    default_description="Python standard library module",
    dotted_root_rule=True,
)


# --- Go ---

_GO_PACKAGES = (
    "archive/tar", "archive/zip", "bufio", "bytes", "cmp", "compress/bzip2",
    "compress/flate", "compress/gzip", "compress/lzw", "compress/zlib",
    "container/heap", "container/list", "container/ring", "context", "crypto",
    "crypto/aes", "crypto/cipher", "crypto/ecdsa", "crypto/ed25519",
    "crypto/hmac", "crypto/md5", "crypto/rand", "crypto/rsa", "crypto/sha1",
    "crypto/sha256", "crypto/sha512", "crypto/subtle", "crypto/tls",
    "crypto/x509", "database/sql", "database/sql/driver", "debug/elf",
    "embed", "encoding", "encoding/base32", "encoding/base64",
    "encoding/binary", "encoding/csv", "encoding/gob", "encoding/hex",
    "encoding/json", "encoding/pem", "encoding/xml", "errors", "expvar",
    "flag", "fmt", "go/ast", "go/format", "go/parser", "go/token", "hash",
    "hash/crc32", "hash/fnv", "html", "html/template", "image", "image/color",
    "image/png", "image/jpeg", "io", "io/fs", "io/ioutil", "iter", "log",
    "log/slog", "maps", "math", "math/big", "math/bits", "math/rand",
    "math/rand/v2", "mime", "mime/multipart", "net", "net/http",
    "net/http/httptest", "net/http/httputil", "net/http/pprof", "net/mail",
    "net/netip", "net/rpc", "net/smtp", "net/textproto", "net/url", "os",
    "os/exec", "os/signal", "os/user", "path", "path/filepath", "plugin",
    "reflect", "regexp", "regexp/syntax", "runtime", "runtime/debug",
    "runtime/pprof", "slices", "sort", "strconv", "strings", "sync",
    "sync/atomic", "syscall", "testing", "testing/fstest", "testing/quick",
    "text/scanner", "text/tabwriter", "text/template", "time", "unicode",
    "unicode/utf16", "unicode/utf8", "unique", "unsafe",
)

_GO_DESCRIPTIONS: dict[str, tuple[str, str]] = {
    "fmt": ("Formatted I/O", "io"),
    "net/http": ("HTTP client and server implementations", "network"),
    "encoding/json": ("JSON encoding and decoding", "data"),
    "context": ("Deadlines, cancellation and request-scoped values", "concurrency"),
    "sync": ("Basic synchronization primitives", "concurrency"),
    "os": ("Platform-independent operating system functionality", "system"),
    "testing": ("Support for automated tests", "testing"),
    "database/sql": ("Generic SQL database interface", "data"),
    "log/slog": ("Structured logging", "utility"),
    "strings": ("String manipulation", "utility"),
    "time": ("Measuring and displaying time", "utility"),
}

GO = StdlibRegistry(
    ecosystem=Ecosystem.GO,
    label="Go standard library package",
    names=_GO_PACKAGES,
    descriptions=MappingProxyType(_GO_DESCRIPTIONS),
    default_description="Go standard library package",
    first_element_rule=True,
)


# --- Rust ---

_RUST_CRATES = (
    "std", "core", "alloc", "proc_macro", "test",
    "std::collections", "std::env", "std::error", "std::fmt", "std::fs",
    "std::hash", "std::io", "std::iter", "std::mem", "std::net", "std::ops",
    "std::path", "std::process", "std::rc", "std::sync", "std::thread",
    "std::time", "std::cell", "std::cmp", "std::convert", "std::ffi",
    "std::borrow", "std::boxed", "std::string", "std::vec", "std::str",
    "std::option", "std::result", "std::marker", "std::num", "std::os",
    "std::any", "std::array", "std::char", "std::default", "std::future",
    "std::pin", "std::ptr", "std::slice", "std::task", "core::fmt",
    "core::mem", "core::ptr", "alloc::vec", "alloc::string",
)

_RUST_DESCRIPTIONS: dict[str, tuple[str, str]] = {
    "std": ("The Rust standard library", "core"),
    "core": ("Dependency-free foundation of the standard library", "core"),
    "alloc": ("Heap allocation and collections", "core"),
    "proc_macro": ("Procedural macro support", "build"),
    "test": ("Built-in test harness support", "testing"),
    "std::collections": ("Collection types", "data"),
    "std::fs": ("Filesystem manipulation", "filesystem"),
    "std::io": ("Core I/O traits and helpers", "io"),
    "std::net": ("TCP/UDP networking primitives", "network"),
    "std::sync": ("Synchronization primitives", "concurrency"),
    "std::thread": ("Native threads", "concurrency"),
}

RUST = StdlibRegistry(
    ecosystem=Ecosystem.RUST,
    label="Rust standard library module",
    names=_RUST_CRATES,
    descriptions=MappingProxyType(_RUST_DESCRIPTIONS),
    default_description="Rust standard library module",
    namespace_prefixes=("std::", "core::", "alloc::"),
)


# --- Java ---

_JAVA_PACKAGES = (
    "java.lang", "java.lang.reflect", "java.lang.annotation", "java.util",
    "java.util.concurrent", "java.util.concurrent.atomic", "java.util.function",
    "java.util.stream", "java.util.regex", "java.util.logging", "java.io",
    "java.nio", "java.nio.file", "java.nio.charset", "java.net", "java.net.http",
    "java.math", "java.text", "java.time", "java.time.format", "java.sql",
    "java.security", "java.beans", "java.awt", "javax.swing", "javax.crypto",
    "javax.net", "javax.net.ssl", "javax.sql", "javax.xml",
    "javax.xml.parsers", "javax.annotation", "javax.naming", "javax.script",
    "javax.management", "org.w3c.dom", "org.xml.sax", "org.ietf.jgss",
)

_JAVA_DESCRIPTIONS: dict[str, tuple[str, str]] = {
    "java.lang": ("Fundamental classes of the Java language", "core"),
    "java.util": ("Collections framework and utility classes", "utility"),
    "java.util.concurrent": ("Concurrency utilities", "concurrency"),
    "java.util.stream": ("Functional-style stream operations", "data"),
    "java.io": ("Stream-based I/O", "io"),
    "java.nio.file": ("File system access via paths", "filesystem"),
    "java.net": ("Networking", "network"),
    "java.net.http": ("HTTP client", "network"),
    "java.time": ("Dates, times, instants and durations", "utility"),
    "java.sql": ("JDBC database access", "data"),
    "javax.crypto": ("Cryptographic operations", "security"),
}

JAVA = StdlibRegistry(
    ecosystem=Ecosystem.JAVA,
    label="Java standard library package",
    names=_JAVA_PACKAGES,
    descriptions=MappingProxyType(_JAVA_DESCRIPTIONS),
    default_description="Java standard library package",
    namespace_prefixes=("java.", "javax.", "org.w3c.", "org.xml.", "org.ietf."),
)


REGISTRIES: dict[Ecosystem, StdlibRegistry] = {
    Ecosystem.JAVASCRIPT: NODE,
    Ecosystem.PYTHON: PYTHON,
    Ecosystem.RUST: RUST,
    Ecosystem.GO: GO,
    Ecosystem.JAVA: JAVA,
}

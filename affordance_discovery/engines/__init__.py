from .base import DiscoveryEngine
from .go import GoEngine
from .java import JavaEngine
from .javascript import JavaScriptEngine
from .python import PythonEngine
from .rust import RustEngine

__all__ = [
    "DiscoveryEngine",
    "GoEngine",
    "JavaEngine",
    "JavaScriptEngine",
    "PythonEngine",
    "RustEngine",
]

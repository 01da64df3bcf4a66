"""
Property-based test runner with a counterexample lifecycle.

This package provides a framework to:
- discover ``prop_*`` property functions in a project's test directory
- check them with a hypothesis-backed engine
- keep the inputs that falsified them, and retry them
- archive those inputs as a regression corpus and replay it
"""

__all__ = [
    "build",
    "cli",
    "config",
    "cover",
    "engine",
    "errors",
    "file_tree",
    "function_finder",
    "models",
    "options",
    "reporting",
    "runner",
    "store",
    "workspace",
]

"""In-process backend holding the builtin tools.

Importing this package triggers the @builtin_backend.register_tool decorators.
"""
from ..backends import LocalBackend

builtin_backend = LocalBackend("builtin")

from . import calculator  # noqa: E402,F401

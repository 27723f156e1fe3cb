"""Shared pytest fixtures and helpers for authflow tests."""

from .core import *  # noqa: F401,F403
from .dummies import *  # noqa: F401,F403

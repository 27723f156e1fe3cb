"""Test configuration and fixtures for authflow."""

from tests.fixtures import *  # noqa: F401,F403

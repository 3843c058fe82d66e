"""
Shared pytest fixtures for lbsim tests.
"""

import logging
from typing import List

import pytest


@pytest.fixture(autouse=True)
def reset_lbsim_logging():
    """Reset the lbsim logger before and after each test.

    The CLI may attach console handlers; they must not leak between tests.
    """
    logger = logging.getLogger("lbsim")

    def _reset():
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            if not isinstance(handler, logging.NullHandler):
                handler.close()
        logger.addHandler(logging.NullHandler())
        logger.setLevel(logging.NOTSET)

    _reset()
    yield
    _reset()


class ScriptedRng:
    """Stands in for numpy's Generator, replaying a fixed list of draws."""

    def __init__(self, values: List[int]) -> None:
        self.values = list(values)
        self.calls = []

    def integers(self, low, high=None):
        self.calls.append((low, high))
        return self.values.pop(0)


@pytest.fixture
def scripted_rng():
    return ScriptedRng

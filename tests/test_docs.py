"""
The examples in the module docstrings run as written.
"""

import doctest

import pytest

from norbital import (
    constants,
    diagnostics,
    dynamics,
    interactions,
    io_cfg,
    kernel,
    particles,
    timing,
    vectors,
    viz,
)


@pytest.mark.parametrize("module", [
    constants, diagnostics, dynamics, interactions, io_cfg,
    kernel, particles, timing, vectors, viz,
], ids=lambda m: m.__name__)
def test_docstring_examples(module):
    result = doctest.testmod(module, optionflags=doctest.NORMALIZE_WHITESPACE)
    assert result.failed == 0

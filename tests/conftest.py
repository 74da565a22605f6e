"""Shared test fixtures."""

from __future__ import annotations

import pytest

from glyphwall import Config


class ScriptedRandom:
    """Stand-in for random.Random that replays fixed draws.

    ``randoms`` feeds ``random()``; ``choices`` are indices used by ``choice()``
    (index 0 once the script runs out).
    """

    def __init__(self, randoms=(), choices=()):
        self.randoms = list(randoms)
        self.choices = list(choices)
        self.random_calls = 0
        self.choice_calls = 0

    def random(self) -> float:
        self.random_calls += 1
        if not self.randoms:
            raise AssertionError("random() called more often than scripted")
        return self.randoms.pop(0)

    def choice(self, seq):
        self.choice_calls += 1
        i = self.choices.pop(0) if self.choices else 0
        return seq[i]


@pytest.fixture
def scripted():
    return ScriptedRandom


@pytest.fixture
def small_config() -> Config:
    cfg = Config()
    cfg.canvas_size.width = 200
    cfg.canvas_size.height = 100
    cfg.grid.seamless_rendering = False
    cfg.symbols.list = ["a", "b", "c", "d"]
    cfg.clustering.count = 2
    cfg.clustering.max_radius = 100
    return cfg


@pytest.fixture
def flat_config(small_config) -> Config:
    """Opaque shapes, invisible glyphs, no clusters: every pale fill is 1.0."""
    cfg = small_config
    cfg.clustering.count = 0
    cfg.clustering.min_dim_opacity = 1.0
    cfg.symbols.default_icon_opacity = 0.0
    cfg.shape.fill_opacity = 1.0
    cfg.shape.stroke_width = 0
    cfg.colors.background = "#000000"
    cfg.colors.default_shape_fill_color = "#ff0000"
    return cfg

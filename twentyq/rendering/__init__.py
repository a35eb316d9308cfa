"""Rendering - HTML pages and live-update fragments."""

from .renderer import GameRenderer

__all__ = ["GameRenderer"]

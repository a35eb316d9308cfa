"""
Renderer - Turns game snapshots into HTML for pages and live updates.

Live-update fragments travel as a single SSE data line, so every
fragment is collapsed onto one line before it leaves the renderer.
Autoescaping is on for all templates; player text is never trusted.
"""

from __future__ import annotations

from jinja2 import Environment, PackageLoader, TemplateError, select_autoescape

from ..engine_core.state import GameSnapshot, Verdict
from ..exceptions import RenderError
from ..observability.logging import get_logger

logger = get_logger(__name__)


def _single_line(html: str) -> str:
    return html.replace("\r", "").replace("\n", "")


class GameRenderer:
    """
    Jinja2-backed renderer for every page and fragment the service emits.

    Usage:
        renderer = GameRenderer()
        page = renderer.render_game_page(session_id, is_oracle=True)
        fragment = renderer.render_responses(machine.snapshot())
    """

    def __init__(self, environment: Environment | None = None) -> None:
        self.environment = environment or Environment(
            loader=PackageLoader("twentyq.rendering", "templates"),
            autoescape=select_autoescape(["html"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render_index(self) -> str:
        """Home page with the new-game form."""
        return self._render("index.html")

    def render_game_page(self, session_id: str, is_oracle: bool) -> str:
        """Page shell for one session. Turns arrive over the event stream."""
        return self._render("game_base.html", game_id=session_id, is_oracle=is_oracle)

    def render_responses(self, snapshot: GameSnapshot) -> str:
        """
        One-line fragment of every turn, plus the verdict once the game is over.

        This is what the broadcast hub stores and fans out verbatim.
        """
        html = self._render(
            "game_items.html", turns=snapshot.turns, game_over=snapshot.is_over,
        )
        if snapshot.is_over:
            html += self._render(
                "game_over.html",
                correct=snapshot.verdict == Verdict.CORRECT,
            )
        return _single_line(html)

    def _render(self, template_name: str, **context) -> str:
        try:
            template = self.environment.get_template(template_name)
            return template.render(**context)
        except TemplateError as e:
            logger.error("render_failed", template=template_name, error=str(e))
            raise RenderError(f"Failed to render {template_name}") from e

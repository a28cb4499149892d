"""MessageRenderer — Jinja2-based rendering of notification emails.

Loads templates from the ``template/`` directory.  Each message has a
``<name>.txt.jinja2`` plain-text body and a ``<name>.html.jinja2`` HTML
alternative; only the HTML templates are autoescaped.
"""

from __future__ import annotations

from pathlib import Path

import jinja2

# --- Message name -> subject line ---
_SUBJECTS: dict[str, str] = {
    "rejection_alert": "Test Rejected for {tester_name}",
    "report": "Test Report: {tester_name}",
}


class MessageRenderer:
    """Render notification subjects and bodies.

    Args:
        template_dir: optional override for the template directory.
            Defaults to ``template/`` sibling of this module.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        if template_dir is None:
            template_dir = Path(__file__).parent / "template"
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            autoescape=jinja2.select_autoescape(
                enabled_extensions=("html.jinja2",),
                default_for_string=False,
            ),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def render(self, name: str, **context) -> tuple[str, str, str]:
        """Return ``(subject, text, html)`` for the named message."""
        subject = _SUBJECTS[name].format(**context)
        text = self._env.get_template(f"{name}.txt.jinja2").render(**context)
        html = self._env.get_template(f"{name}.html.jinja2").render(**context)
        return subject, text, html

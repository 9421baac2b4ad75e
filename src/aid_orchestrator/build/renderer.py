"""
Template rendering for generated build artifacts.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from jinja2 import (
    BaseLoader,
    Environment,
    PackageLoader,
    StrictUndefined,
    TemplateError,
    TemplateNotFound,
)

from aid_orchestrator.errors import ArtifactIOFailure

DOCKERFILE_TEMPLATE = "dockerfile.j2"
RUNNER_TEMPLATE = "runner.py.j2"


class TemplateRenderer:
    """
    Maps (template name, context) to rendered text. Holds no state beyond
    the Jinja2 environment.

    :param loader: Jinja2 loader; defaults to the templates shipped in
        ``aid_orchestrator/templates``.
    """

    def __init__(self, loader: Optional[BaseLoader] = None) -> None:
        self.env = Environment(
            loader=loader or PackageLoader("aid_orchestrator", "templates"),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )

    def render(self, name: str, context: Dict[str, Any]) -> str:
        try:
            template = self.env.get_template(name)
        except TemplateNotFound as e:
            raise ArtifactIOFailure(f"Cannot read template {name}") from e
        except TemplateError as e:
            raise ArtifactIOFailure(f"Cannot parse template {name}: {e}") from e
        try:
            return template.render(**context)
        except TemplateError as e:
            raise ArtifactIOFailure(f"Cannot render template {name}: {e}") from e

"""Template rendering for email notifications using Jinja2.

This module wraps Jinja2 template rendering with strict undefined checking so a
missing variable fails the render instead of producing a half-filled email.
"""

import logging
from typing import Any, Mapping, Optional

from jinja2 import BaseLoader, Environment, PackageLoader, StrictUndefined, TemplateError

from .models import RenderError

logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".html.j2"


class TemplateRenderer:
    """Renders named email templates using Jinja2.

    A template name such as ``interview-assigned-candidate`` resolves to
    ``interview-assigned-candidate.html.j2`` in the
    ``recruit_notify.notifications`` email_templates package directory.
    Templates are cached by the Jinja2 environment after first load.
    """

    def __init__(
        self,
        template_dir: str = "email_templates",
        loader: Optional[BaseLoader] = None,
    ):
        """Initialize template renderer with Jinja2 environment.

        Args:
            template_dir: Directory name within the recruit_notify.notifications package
            loader: Alternative Jinja2 loader (e.g. DictLoader in tests)
        """
        self.env = Environment(
            loader=loader or PackageLoader("recruit_notify.notifications", template_dir),
            autoescape=True,
            undefined=StrictUndefined,
        )

        logger.debug(f"Initialized TemplateRenderer with templates from {template_dir}")

    def render(self, template_name: str, variables: Mapping[str, Any]) -> str:
        """Render a named template with the provided variables.

        Args:
            template_name: Template identifier without suffix
            variables: Template variables

        Returns:
            Rendered message body

        Raises:
            RenderError: If the template is missing or rendering fails
        """
        try:
            template = self.env.get_template(f"{template_name}{TEMPLATE_SUFFIX}")
            body = template.render(dict(variables))
            logger.debug(f"Rendered template {template_name}")
            return body

        except TemplateError as e:
            error_msg = f"Template rendering failed for '{template_name}': {e}"
            logger.error(error_msg, extra={"event": "notification.render.failure"})
            raise RenderError(error_msg) from e
        except (TypeError, ValueError) as e:
            error_msg = f"Unexpected error rendering '{template_name}': {e}"
            logger.error(error_msg, exc_info=True, extra={"event": "notification.render.failure"})
            raise RenderError(error_msg) from e

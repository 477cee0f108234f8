"""
Templates used to scaffold new migration files.

A template is a text file with ``__placeholder__`` tokens. Rendering replaces
each token named in the substitution map with its value and leaves every
other token as it is. All tokens are replaced in one pass, so values are
inserted verbatim.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from migrator.core.exceptions import TemplateNotFound
from migrator.log.logging import logger

DEFAULT_TEMPLATE = "default"
STUBS_DIR = Path(__file__).parent / "stubs"
TEMPLATE_SUFFIX = ".tpl"
PLACEHOLDER_RE = re.compile(r"__(\w+?)__")


@dataclass
class MigrationTemplate:
    """
    A named migration template.

    Attributes:
        name: Name used to select the template.
        path: Path to the template file.
        description: One-line summary shown by the ``templates`` command.
        aliases: Alternative names that select the same template.
    """

    name: str
    path: str
    description: str = ""
    aliases: list[str] = field(default_factory=list)


BUILTIN_TEMPLATES = [
    MigrationTemplate(
        name="default",
        path=str(STUBS_DIR / "default.tpl"),
        description="Empty migration with up() and down()",
    ),
    MigrationTemplate(
        name="add_table",
        path=str(STUBS_DIR / "add_table.tpl"),
        description="Create a table (placeholders: table)",
        aliases=["create_table", "table"],
    ),
    MigrationTemplate(
        name="delete_table",
        path=str(STUBS_DIR / "delete_table.tpl"),
        description="Drop a table (placeholders: table)",
        aliases=["drop_table"],
    ),
    MigrationTemplate(
        name="query",
        path=str(STUBS_DIR / "query.tpl"),
        description="Run raw SQL (placeholders: up, down)",
        aliases=["sql"],
    ),
]


class TemplatesCollection:
    """Registry of migration templates, keyed by name and alias."""

    def __init__(self, include_builtin: bool = True):
        self._templates: dict[str, MigrationTemplate] = {}
        if include_builtin:
            for template in BUILTIN_TEMPLATES:
                self.register_template(template)

    def register_template(self, template: MigrationTemplate) -> None:
        """Add or replace a template."""
        self._templates[template.name] = template

    def register_directory(self, directory: str) -> int:
        """
        Register every ``*.tpl`` file in ``directory``; the file stem is the name.

        Returns:
            Number of templates registered.
        """
        if not os.path.isdir(directory):
            logger.warning(
                "Templates directory not found",
                event_type="templates_dir_missing",
                templates_dir=directory,
            )
            return 0

        count = 0
        for path in sorted(Path(directory).glob(f"*{TEMPLATE_SUFFIX}")):
            self.register_template(
                MigrationTemplate(name=path.stem, path=str(path), description=f"Custom template {path.name}")
            )
            count += 1
        return count

    def all(self) -> list[MigrationTemplate]:
        return list(self._templates.values())

    def select_template(self, name: Optional[str]) -> str:
        """
        Resolve a template name or alias to a registered template name.

        Args:
            name: Requested name; None selects the default template.

        Raises:
            TemplateNotFound: If nothing matches.
        """
        if not name:
            name = DEFAULT_TEMPLATE

        if name in self._templates:
            return name

        for template in self._templates.values():
            if name in template.aliases:
                return template.name

        raise TemplateNotFound(name)

    def get_template_path(self, name: str) -> str:
        return self._templates[self.select_template(name)].path

    def render(self, template_name: Optional[str], substitutions: Mapping[str, str]) -> str:
        """Read a template and replace its ``__key__`` placeholders."""
        path = self.get_template_path(template_name)
        with open(path, encoding="utf-8") as f:
            return replace_placeholders(f.read(), substitutions)


def replace_placeholders(content: str, substitutions: Mapping[str, str]) -> str:
    """Replace every ``__key__`` token with its value; unknown tokens stay."""
    return PLACEHOLDER_RE.sub(
        lambda m: str(substitutions[m.group(1)]) if m.group(1) in substitutions else m.group(0),
        content,
    )

"""
Creation of new migration files from templates.
"""

import os
from datetime import datetime
from typing import Mapping, Optional

from migrator.log.logging import logger
from migrator.migrations.naming import class_name_for, is_identifier, next_identifier, validate_name
from migrator.migrations.templates import TemplatesCollection


class Scaffolder:
    """Writes ``<identifier>.py`` migration files into a directory."""

    def __init__(self, directory: str, templates: TemplatesCollection):
        self._directory = str(directory)
        self._templates = templates

    def existing_identifiers(self) -> list[str]:
        if not os.path.isdir(self._directory):
            return []
        stems = (f[: -len(".py")] for f in os.listdir(self._directory) if f.endswith(".py"))
        return sorted(s for s in stems if is_identifier(s))

    def create_migration(
        self,
        name: str,
        template_name: Optional[str] = None,
        replace: Optional[Mapping[str, str]] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Create a migration file.

        Args:
            name: Migration name (lowercase, underscores).
            template_name: Template name or alias; None selects the default.
            replace: Placeholder values for the template. ``className`` is
                always set to the derived script class name.
            now: Creation time; defaults to the current time.

        Returns:
            The new migration identifier.

        Raises:
            ValueError: If the name is invalid.
            TemplateNotFound: If the template does not exist.
        """
        validate_name(name)
        template_name = self._templates.select_template(template_name)

        os.makedirs(self._directory, exist_ok=True)

        identifier = next_identifier(name, self.existing_identifiers(), now)
        substitutions = {**(replace or {}), "className": class_name_for(identifier)}
        content = self._templates.render(template_name, substitutions)

        file_path = os.path.join(self._directory, f"{identifier}.py")
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(content)

        logger.info(
            f"Created migration {identifier}",
            event_type="migration_created",
            migration=identifier,
            template=template_name,
            path=file_path,
        )

        return identifier

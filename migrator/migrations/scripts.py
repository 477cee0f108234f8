"""
Script stores: where migration identifiers come from and how scripts are built.

Scripts are built through an explicit registry mapping identifier to a
factory. ``RegistryScriptStore`` serves migrations registered in code;
``FileScriptStore`` discovers ``<identifier>.py`` files and registers a
factory for each file it loads.
"""

import importlib.util
import inspect
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from migrator.core.exceptions import UnresolvableMigration
from migrator.log.logging import logger
from migrator.migrations.models import MigrationScript
from migrator.migrations.naming import class_name_for, is_identifier

ScriptFactory = Callable[[], Any]


class ScriptRegistry:
    """Map of migration identifier to a zero-argument script factory."""

    def __init__(self) -> None:
        self._factories: dict[str, ScriptFactory] = {}

    def register(self, identifier: str, factory: Optional[ScriptFactory] = None):
        """
        Register a factory for ``identifier``.

        Can be called directly or used as a class decorator::

            @registry.register("2024_01_01_000000_000000_add_users")
            class AddUsers2024_01_01_000000_000000(MigrationScript):
                ...
        """
        if factory is not None:
            self._factories[identifier] = factory
            return factory

        def decorator(target: ScriptFactory) -> ScriptFactory:
            self._factories[identifier] = target
            return target

        return decorator

    def unregister(self, identifier: str) -> None:
        self._factories.pop(identifier, None)

    def get(self, identifier: str) -> Optional[ScriptFactory]:
        return self._factories.get(identifier)

    def identifiers(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._factories

    def __iter__(self) -> Iterator[str]:
        return iter(self.identifiers())

    def __len__(self) -> int:
        return len(self._factories)


def build_script(identifier: str, factory: ScriptFactory) -> Any:
    """Call ``factory`` and wrap any error as UnresolvableMigration."""
    try:
        return factory()
    except Exception as e:
        raise UnresolvableMigration(
            f"Unable to construct migration {identifier}: {e}", identifier
        ) from e


class ScriptStore(ABC):
    """Source of migration identifiers and scripts."""

    @abstractmethod
    def list_all(self) -> list[str]:
        """All known identifiers, sorted lexically."""

    @abstractmethod
    def exists(self, identifier: str) -> bool:
        """Whether a script for ``identifier`` is available."""

    @abstractmethod
    def load(self, identifier: str) -> Any:
        """
        Build a fresh script object for ``identifier``.

        Raises:
            UnresolvableMigration: If no script can be built.
        """


class RegistryScriptStore(ScriptStore):
    """Script store over migrations registered in code."""

    def __init__(self, registry: ScriptRegistry):
        self._registry = registry

    def list_all(self) -> list[str]:
        return self._registry.identifiers()

    def exists(self, identifier: str) -> bool:
        return identifier in self._registry

    def load(self, identifier: str) -> Any:
        factory = self._registry.get(identifier)
        if factory is None:
            raise UnresolvableMigration(f"Migration {identifier} is not registered", identifier)
        return build_script(identifier, factory)


class FileScriptStore(ScriptStore):
    """
    Script store over a directory of migration files.

    Each file is named ``<identifier>.py`` and defines a class named
    ``class_name_for(identifier)``. Loaded classes are registered in the
    store's registry so a file is imported at most once per store.
    """

    def __init__(
        self,
        directory: str,
        db: Any = None,
        registry: Optional[ScriptRegistry] = None,
    ):
        """
        Initialize the file script store.

        Args:
            directory: Directory containing migration files.
            db: Database handle passed to every script constructor.
            registry: Registry to populate; a private one is created if omitted.
        """
        self._directory = str(directory)
        self._db = db
        self._registry = registry if registry is not None else ScriptRegistry()

    @property
    def directory(self) -> str:
        return self._directory

    def file_path(self, identifier: str) -> str:
        """Path of the file that holds ``identifier``."""
        return os.path.join(self._directory, f"{identifier}.py")

    def list_all(self) -> list[str]:
        if not os.path.isdir(self._directory):
            logger.warning(
                "Migrations directory not found",
                event_type="migrations_dir_missing",
                migrations_dir=self._directory,
            )
            return []

        identifiers = []
        for filename in os.listdir(self._directory):
            if not filename.endswith(".py") or filename.startswith("_"):
                continue
            stem = filename[: -len(".py")]
            if not is_identifier(stem):
                logger.warning(
                    "Skipping invalid migration filename",
                    event_type="migration_skip",
                    filename=filename,
                )
                continue
            identifiers.append(stem)

        identifiers.sort()

        logger.debug(
            "Discovered migrations",
            event_type="migrations_discovered",
            count=len(identifiers),
        )

        return identifiers

    def exists(self, identifier: str) -> bool:
        return os.path.isfile(self.file_path(identifier))

    def load(self, identifier: str) -> Any:
        factory = self._registry.get(identifier)
        if factory is None:
            script_class = self._load_class(identifier)
            db = self._db
            factory = self._registry.register(identifier, lambda: script_class(db))
        return build_script(identifier, factory)

    def _load_class(self, identifier: str) -> type:
        """Import the migration file and return its script class."""
        if not is_identifier(identifier):
            raise UnresolvableMigration(f"Malformed migration identifier: {identifier}", identifier)

        file_path = self.file_path(identifier)
        if not self.exists(identifier):
            raise UnresolvableMigration(f"Migration file not found: {file_path}", identifier)

        class_name = class_name_for(identifier)

        try:
            spec = importlib.util.spec_from_file_location(f"migration_{identifier}", file_path)
            if spec is None or spec.loader is None:
                raise ImportError(f"no loader for {file_path}")

            module = importlib.util.module_from_spec(spec)
            spec.loader.exec_module(module)
        except Exception as e:
            logger.error(
                "Error loading migration file",
                event_type="migration_load_error",
                migration=identifier,
                error=str(e),
            )
            raise UnresolvableMigration(f"Error loading migration {identifier}: {e}", identifier) from e

        script_class = getattr(module, class_name, None)
        if not inspect.isclass(script_class):
            raise UnresolvableMigration(
                f"Migration file {Path(file_path).name} must define class {class_name}",
                identifier,
            )
        if not issubclass(script_class, MigrationScript):
            logger.debug(
                "Migration class does not subclass MigrationScript",
                event_type="migration_duck_typed",
                migration=identifier,
            )
        return script_class

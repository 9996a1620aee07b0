"""How a session's subprocess is attached to the operator.

Most commands run as a plain subprocess. A few are interactive: the Django
shell runs a Python REPL, runserver is attached the same way with
highlighting off, and dbshell runs the database's SQL client. The SQL
dialect is inferred from the configured database engine.

Specializations are looked up by command name in an AttachmentRegistry.
Commands without one get the plain attachment.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from django_assist.core.metadata import ProjectMetadata

logger = logging.getLogger(__name__)


class SqlDialect(StrEnum):
    """SQL dialects recognized from Django database engines."""

    MYSQL = "mysql"
    ORACLE = "oracle"
    POSTGRES = "postgres"
    SQLITE = "sqlite"


def sql_dialect_for_engine(engine: str | None) -> SqlDialect | None:
    """Infer the SQL dialect from an ENGINE setting.

    Examples:
        >>> sql_dialect_for_engine("django.db.backends.postgresql")
        <SqlDialect.POSTGRES: 'postgres'>
        >>> sql_dialect_for_engine("django.contrib.gis.db.backends.spatialite") is None
        True

    """
    if not engine:
        return None
    lowered = engine.lower()
    for dialect in SqlDialect:
        if dialect.value in lowered:
            return dialect
    return None


@dataclass(frozen=True)
class Attachment:
    """Presentation and input mode of a session.

    Attributes:
        kind: "plain", "python-shell" or "database-shell".
        interactive: Whether the process reads operator input on stdin.
        highlight: Syntax used to render output (None for plain text).
        sql_dialect: Dialect for database shells.

    """

    kind: str
    interactive: bool = False
    highlight: str | None = None
    sql_dialect: SqlDialect | None = None


Specialization = Callable[["ProjectMetadata | None"], Attachment]

PLAIN = Attachment(kind="plain")


def plain_attachment(metadata: "ProjectMetadata | None" = None) -> Attachment:
    return PLAIN


def python_shell_attachment(metadata: "ProjectMetadata | None" = None) -> Attachment:
    return Attachment(kind="python-shell", interactive=True, highlight="python")


def server_attachment(metadata: "ProjectMetadata | None" = None) -> Attachment:
    """Python shell attachment without highlighting, for runserver output."""
    return Attachment(kind="python-shell", interactive=True, highlight=None)


def database_shell_attachment(metadata: "ProjectMetadata | None" = None) -> Attachment:
    """Database shell with the dialect of the default database.

    Raises:
        DiscoveryError: Propagated when the engine lookup fails.

    """
    engine = metadata.database_engine() if metadata is not None else None
    dialect = sql_dialect_for_engine(engine)
    if engine and dialect is None:
        logger.info("Unrecognized database engine %s, no SQL dialect", engine)
    return Attachment(kind="database-shell", interactive=True, highlight="sql", sql_dialect=dialect)


class AttachmentRegistry:
    """Maps command names to attachment specializations."""

    def __init__(
        self,
        specializations: dict[str, Specialization] | None = None,
        default: Specialization = plain_attachment,
    ) -> None:
        self._specializations: dict[str, Specialization] = dict(specializations or {})
        self.default = default

    def register(self, command: str, specialization: Specialization) -> None:
        self._specializations[command] = specialization

    def resolve(self, command: str) -> Specialization:
        """Specialization for a command, or the default."""
        return self._specializations.get(command, self.default)

    def attach(self, command: str, metadata: "ProjectMetadata | None" = None) -> Attachment:
        return self.resolve(command)(metadata)

    def commands(self) -> list[str]:
        return sorted(self._specializations)


def default_attachments() -> AttachmentRegistry:
    """Registry with the built-in specializations."""
    return AttachmentRegistry(
        {
            "shell": python_shell_attachment,
            "shell_plus": python_shell_attachment,
            "runserver": server_attachment,
            "runserver_plus": server_attachment,
            "dbshell": database_shell_attachment,
        }
    )

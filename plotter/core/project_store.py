"""
ProjectStore: sole owner of the current Project.

create / touch / validate / serialize / deserialize, plus session persistence
through PersistenceGateway and exchange-document save/load. Callers get frozen
copies back; nothing outside the store can mutate the current project.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from plotter.core.config import settings
from plotter.core.export import JSON_SUFFIX, export_filename, validate_filename
from plotter.core.storage import PersistenceGateway
from plotter.models import (
    DEFAULT_VIEWPORT,
    EXCHANGE_FORMAT_VERSION,
    Project,
    ValidationFault,
    ViewportSize,
    utc_timestamp,
)

_log = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "Untitled Project"


def coerce_viewport(viewport: ViewportSize | dict[str, Any]) -> ViewportSize:
    if isinstance(viewport, ViewportSize):
        return viewport
    try:
        return ViewportSize.model_validate(viewport)
    except ValidationError as e:
        raise ValidationFault(f"Invalid viewport size: {viewport!r}") from e


class ProjectStore:
    """
    Holds the single in-memory Project and converts it to and from storage forms.

    The in-memory project is only replaced after a candidate passes validate();
    storage failures are logged and leave the in-memory state as it was.
    """

    def __init__(
        self,
        gateway: PersistenceGateway | None = None,
        *,
        write_legacy_keys: bool | None = None,
    ) -> None:
        self._gateway = gateway
        self._project: Project | None = None
        self._write_legacy_keys = (
            settings.STORAGE_WRITE_LEGACY_KEYS
            if write_legacy_keys is None
            else write_legacy_keys
        )

    @property
    def current(self) -> Project | None:
        return self._project

    @property
    def gateway(self) -> PersistenceGateway | None:
        return self._gateway

    # -----------------------------------------------------------------
    # Value operations
    # -----------------------------------------------------------------

    @staticmethod
    def touch(project: Project) -> Project:
        """Copy with updated_at = now. The input is not modified."""
        return project.model_copy(update={"updated_at": utc_timestamp()})

    @staticmethod
    def validate(candidate: Any) -> bool:
        """True iff candidate (Project or mapping) satisfies every Project constraint."""
        if isinstance(candidate, Project):
            candidate = candidate.model_dump(by_alias=True)
        if not isinstance(candidate, dict):
            return False
        try:
            Project.model_validate(candidate)
        except ValidationError:
            return False
        return True

    @staticmethod
    def serialize(project: Project) -> str:
        """Exchange document text; the script is written verbatim (no ASCII escaping)."""
        return json.dumps(project.to_document(), ensure_ascii=False, indent=2)

    @staticmethod
    def deserialize(text: str | bytes) -> Project:
        """Parse an exchange document. Raises ValidationFault; never repairs input."""
        try:
            data = json.loads(text)
        except (TypeError, ValueError, RecursionError) as e:
            raise ValidationFault("Invalid JSON format: unable to parse project") from e
        return ProjectStore._from_document(data)

    @staticmethod
    def _from_document(data: Any) -> Project:
        if not isinstance(data, dict):
            raise ValidationFault("Invalid project structure: expected a JSON object")
        version = data.get("version")
        if version is not None and version != EXCHANGE_FORMAT_VERSION:
            raise ValidationFault(f"Unsupported project version: {version!r}")
        try:
            return Project.model_validate(data)
        except ValidationError as e:
            raise ValidationFault(
                "Invalid project structure: missing required fields or invalid data"
            ) from e

    # -----------------------------------------------------------------
    # Current project
    # -----------------------------------------------------------------

    def create(
        self,
        name: str,
        viewport: ViewportSize | dict[str, Any],
        script: str = "",
    ) -> Project:
        """New current project with created_at == updated_at == now."""
        now = utc_timestamp()
        try:
            project = Project(
                name=name,
                script=script,
                viewport=coerce_viewport(viewport),
                created_at=now,
                updated_at=now,
            )
        except ValidationError as e:
            raise ValidationFault(f"Invalid project: {e.errors()[0]['msg']}") from e
        self._project = project
        return project

    def replace(self, project: Project) -> Project:
        if not self.validate(project):
            raise ValidationFault("Invalid project: cannot set as current")
        self._project = project
        return project

    def update(
        self,
        *,
        script: str | None = None,
        viewport: ViewportSize | dict[str, Any] | None = None,
        name: str | None = None,
    ) -> Project:
        """Touched copy of the current project with the given fields replaced."""
        if self._project is None:
            raise ValidationFault("No current project")
        changes: dict[str, Any] = {}
        if script is not None:
            if not isinstance(script, str):
                raise ValidationFault("Invalid script: must be a string")
            changes["script"] = script
        if viewport is not None:
            changes["viewport"] = coerce_viewport(viewport)
        if name is not None:
            if not isinstance(name, str) or not name:
                raise ValidationFault("Invalid project name: must be a non-empty string")
            changes["name"] = name
        project = self.touch(self._project.model_copy(update=changes))
        self._project = project
        return project

    # -----------------------------------------------------------------
    # Session persistence
    # -----------------------------------------------------------------

    def persist(self) -> bool:
        """Write the current project to session storage. False means memory-only."""
        project = self._project
        if project is None or self._gateway is None:
            return False
        keys = self._gateway.keys
        ok = self._gateway.save(keys["PROJECT"], project.to_document())
        if ok and self._write_legacy_keys:
            self._gateway.save(keys["CODE"], project.script)
            self._gateway.save(keys["VIEWPORT"], project.viewport.model_dump())
            self._gateway.save(keys["PROJECT_NAME"], project.name)
        if not ok:
            _log.warning("session save failed; continuing with in-memory project only")
        return ok

    def restore(self) -> Project | None:
        """Load the session snapshot (or the legacy per-field keys) as current."""
        if self._gateway is None:
            return None
        keys = self._gateway.keys
        data = self._gateway.load(keys["PROJECT"])
        if data is not None:
            try:
                project = self._from_document(data)
            except ValidationFault as e:
                _log.warning("ignoring invalid session snapshot: %s", e)
            else:
                self._project = project
                return project
        return self._restore_legacy()

    def _restore_legacy(self) -> Project | None:
        keys = self._gateway.keys  # type: ignore[union-attr]
        code = self._gateway.load(keys["CODE"])  # type: ignore[union-attr]
        if not isinstance(code, str):
            return None
        name = self._gateway.load(keys["PROJECT_NAME"])  # type: ignore[union-attr]
        viewport = self._gateway.load(keys["VIEWPORT"])  # type: ignore[union-attr]
        try:
            viewport = coerce_viewport(viewport)
        except ValidationFault:
            viewport = DEFAULT_VIEWPORT
        if not isinstance(name, str) or not name:
            name = DEFAULT_PROJECT_NAME
        _log.info("restored project from legacy session keys")
        return self.create(name, viewport, code)

    def clear_session(self) -> bool:
        self._project = None
        if self._gateway is None:
            return False
        return self._gateway.clear()

    # -----------------------------------------------------------------
    # Exchange documents
    # -----------------------------------------------------------------

    def save_document(
        self,
        filename: str | None = None,
        *,
        script: str | None = None,
        viewport: ViewportSize | dict[str, Any] | None = None,
    ) -> tuple[str, str]:
        """
        (file name, document text) for downloading the current project.

        With a filename the project is renamed first and the rename persisted.
        script and viewport replace those fields in the document only, so an
        editor holding code that does not render yet still saves what it holds.
        The document carries a fresh updated_at.
        """
        if self._project is None:
            raise ValidationFault("Invalid project: cannot save to file")
        changes: dict[str, Any] = {}
        if script is not None:
            if not isinstance(script, str):
                raise ValidationFault("Invalid script: must be a string")
            changes["script"] = script
        if viewport is not None:
            changes["viewport"] = coerce_viewport(viewport)
        if filename is not None:
            try:
                filename = validate_filename(filename)
            except ValueError as e:
                raise ValidationFault(str(e)) from e
            name = export_filename(filename, JSON_SUFFIX)[: -len(JSON_SUFFIX)]
            self.update(name=name)
            self.persist()
        project = self.touch(self._project)
        if changes:
            project = project.model_copy(update=changes)
        return export_filename(project.name, JSON_SUFFIX), self.serialize(project)

    def load_document(self, text: str | bytes) -> Project:
        """Deserialize and make current; on ValidationFault the current project is kept."""
        project = self.deserialize(text)
        self._project = project
        self.persist()
        return project

    def save_to_file(self, path: str | Path) -> Path:
        """Write the current project as an exchange document at path."""
        if self._project is None:
            raise ValidationFault("Invalid project: cannot save to file")
        target = Path(path)
        if target.suffix.lower() != JSON_SUFFIX:
            target = target.with_name(export_filename(target.name, JSON_SUFFIX))
        target.write_text(self.serialize(self.touch(self._project)), encoding="utf-8")
        _log.info("project %r saved to %s", self._project.name, target)
        return target

    async def load_from_file(self, path: str | Path) -> Project:
        """Read path on a worker thread, then load_document()."""
        if Path(path).suffix.lower() != JSON_SUFFIX:
            raise ValidationFault("Invalid file type: expected .json file")
        try:
            text = await asyncio.to_thread(Path(path).read_bytes)
        except OSError as e:
            raise ValidationFault(f"Failed to read file: {e}") from e
        return self.load_document(text)

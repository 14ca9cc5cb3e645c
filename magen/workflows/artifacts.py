# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Feature artifact storage inside a project.

Directory structure:
    {project_path}/magi-sdd/
    ├── 001-offline-sync/
    │   ├── feature-brief.md
    │   ├── requirements.md
    │   └── PRD.md
    └── 002-push-notifications/
        └── ...

Feature directories are numbered in creation order; the part after the
number is the feature ID.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from magen.core.errors import ArtifactError

logger = logging.getLogger(__name__)

MAGI_SDD_DIR_NAME = "magi-sdd"

FEATURE_ID_PATTERN = re.compile(r"^[a-z0-9-]+$")
FEATURE_DIR_PATTERN = re.compile(r"^(\d{3})-(.+)$")


class MagiArtifact(str, Enum):
    """Artifacts stored in a feature directory."""

    PRD = "prd"
    FEATURE_BRIEF = "feature-brief"
    REQUIREMENTS = "requirements"

    @property
    def filename(self) -> str:
        return _ARTIFACT_FILENAMES[self]


_ARTIFACT_FILENAMES = {
    MagiArtifact.PRD: "PRD.md",
    MagiArtifact.FEATURE_BRIEF: "feature-brief.md",
    MagiArtifact.REQUIREMENTS: "requirements.md",
}


class MagiWorkspace:
    """The ``magi-sdd`` directory of one project."""

    def __init__(self, project_path: Union[str, Path]):
        self.project_path = Path(project_path).expanduser()

    @property
    def path(self) -> Path:
        return self.project_path / MAGI_SDD_DIR_NAME

    def ensure(self) -> Path:
        """Create the workspace directory if needed. Safe to call repeatedly."""
        self.path.mkdir(parents=True, exist_ok=True)
        return self.path

    def _feature_dirs(self) -> list[tuple[int, str, Path]]:
        if not self.path.is_dir():
            return []
        found = []
        for entry in sorted(self.path.iterdir()):
            match = FEATURE_DIR_PATTERN.match(entry.name)
            if entry.is_dir() and match:
                found.append((int(match.group(1)), match.group(2), entry))
        return found

    def existing_feature_ids(self) -> list[str]:
        """Feature IDs already present, without their number prefix."""
        return [feature_id for _, feature_id, _ in self._feature_dirs()]

    def next_feature_number(self) -> int:
        numbers = [number for number, _, _ in self._feature_dirs() if number > 0]
        return max(numbers) + 1 if numbers else 1

    def find_feature_directory(self, feature_id: str) -> Optional[Path]:
        for _, existing_id, path in self._feature_dirs():
            if existing_id == feature_id:
                return path
        return None

    def create_feature_directory(self, feature_id: str, reuse_existing: bool = True) -> Path:
        """Create ``NNN-<feature_id>``, or reuse the existing directory for the ID.

        Raises:
            ArtifactError: If the feature ID is not kebab-case
        """
        if not FEATURE_ID_PATTERN.match(feature_id):
            raise ArtifactError(
                f'Invalid feature ID format: "{feature_id}". Must be in kebab-case '
                "(lowercase letters, numbers, and hyphens only)",
                recovery_hint="Recommend a kebab-case feature ID such as 'offline-sync'.",
            )

        if reuse_existing:
            existing = self.find_feature_directory(feature_id)
            if existing is not None:
                return existing

        feature_dir = self.path / f"{self.next_feature_number():03d}-{feature_id}"
        feature_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created feature directory: {feature_dir}")
        return feature_dir

    def artifact_path(self, feature_id: str, artifact: MagiArtifact) -> Path:
        """Path of an artifact in an existing feature directory.

        Raises:
            ArtifactError: If the feature directory does not exist
        """
        feature_dir = self.find_feature_directory(feature_id)
        if feature_dir is None:
            raise ArtifactError(
                f"Cannot determine feature directory for featureId: {feature_id}. "
                "Feature directory may not exist yet.",
                path=str(self.path),
            )
        return feature_dir / artifact.filename

    def read_artifact(self, feature_id: str, artifact: MagiArtifact) -> str:
        """Artifact content, or an empty string if it does not exist yet."""
        feature_dir = self.find_feature_directory(feature_id)
        if feature_dir is None:
            return ""
        path = feature_dir / artifact.filename
        if not path.is_file():
            return ""
        return path.read_text(encoding="utf-8")

    def write_artifact(self, feature_id: str, artifact: MagiArtifact, content: str) -> Path:
        """Write an artifact into the feature directory.

        Raises:
            ArtifactError: If the feature directory is missing or the write fails
        """
        path = self.artifact_path(feature_id, artifact)
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise ArtifactError(
                f"Failed to write {artifact.filename}: {e}", path=str(path), cause=e
            ) from e
        logger.info(f"Wrote {artifact.filename} to: {path}")
        return path


__all__ = [
    "MAGI_SDD_DIR_NAME",
    "MagiArtifact",
    "MagiWorkspace",
]

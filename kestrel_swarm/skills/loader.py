"""Skill discovery from SKILL.md files"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import frontmatter

from kestrel_swarm.skills.state import SkillState

logger = logging.getLogger(__name__)


class Skill:
    """Skill definition from a SKILL.md file"""

    name: str
    description: str
    location: Path
    content: str
    tools: Optional[List[str]]
    permissions: Dict[str, Dict[str, Any]]

    def __init__(
        self,
        name: str,
        description: str,
        location: Path,
        content: str,
        tools: Optional[List[str]] = None,
        permissions: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self.name = name
        self.description = description
        self.location = location
        self.content = content
        self.tools = tools
        self.permissions = permissions or {}

    @property
    def file_path(self) -> Path:
        return self.location / "SKILL.md"

    def state(self) -> SkillState:
        """SkillState to activate on an agent session."""
        return SkillState(str(self.file_path), tools=self.tools, permissions=self.permissions)


class SkillLoader:
    """Loader for skills stored as <base_dir>/<source>/<skill>/SKILL.md"""

    SKILL_SOURCES: Tuple[str, ...] = (".kestrel/skills", ".claude/skills")

    def __init__(self, base_dir: Path):
        """Initialize skill loader

        Args:
            base_dir: Base directory for skill discovery
        """
        self.base_dir = Path(base_dir)
        self._skills_cache: Optional[List[Skill]] = None

    def clear_cache(self) -> None:
        self._skills_cache = None

    def _iter_skill_files(self) -> Iterable[Path]:
        for source in self.SKILL_SOURCES:
            skill_dir = self.base_dir / source
            if not skill_dir.exists():
                continue
            yield from sorted(skill_dir.rglob("*/SKILL.md"))

    def discover_skills(self) -> List[Skill]:
        """Discover all available skills

        Returns:
            Skills found in the standard locations. Files that fail to parse
            are logged and skipped.
        """
        if self._skills_cache is not None:
            return list(self._skills_cache)

        skills: List[Skill] = []
        for skill_file in self._iter_skill_files():
            try:
                skills.append(self._load_skill_file(skill_file))
            except (OSError, ValueError) as e:
                logger.error(f"Failed to load skill {skill_file}: {e}")

        self._skills_cache = skills
        return list(skills)

    def _load_skill_file(self, file_path: Path) -> Skill:
        meta, body = frontmatter.parse(file_path.read_text(encoding="utf-8"))
        meta_dict = dict(meta)

        name = meta_dict.get("name") or file_path.parent.name
        tools = meta_dict.get("tools")
        if tools is not None and not isinstance(tools, list):
            raise ValueError(f"'tools' must be a list in {file_path}")
        permissions = meta_dict.get("permissions") or {}
        if not isinstance(permissions, dict):
            raise ValueError(f"'permissions' must be a mapping in {file_path}")

        return Skill(
            name=str(name),
            description=str(meta_dict.get("description", "")),
            location=file_path.parent,
            content=body.strip(),
            tools=[str(tool) for tool in tools] if tools is not None else None,
            permissions=permissions,
        )

    def get_skill_by_name(self, name: str) -> Optional[Skill]:
        for skill in self.discover_skills():
            if skill.name.lower() == name.lower():
                return skill
        return None

    def list_skills(self) -> List[str]:
        return [skill.name for skill in self.discover_skills()]


__all__ = ["Skill", "SkillLoader"]

"""Skills: named operating modes that narrow an agent's active tools."""

from kestrel_swarm.skills.loader import Skill, SkillLoader
from kestrel_swarm.skills.state import SkillState

__all__ = ["Skill", "SkillLoader", "SkillState"]

"""
实体：人格 + 编排
"""
from .personality import PersonalityService, default_personality
from .service import EntityService, parse_thought_response

__all__ = ["PersonalityService", "default_personality", "EntityService", "parse_thought_response"]

"""
Persona lookup table.

Every persona id the host may pass resolves to a member of ``Persona``;
ids that are not in the table resolve to ``Persona.DEFAULT``.
"""

from enum import Enum
from typing import Dict, List, Optional, Union

from .models.data_models import PersonaProfile


class Persona(str, Enum):
    FOX = "fox"
    DOLPHIN = "dolphin"
    OWL = "owl"
    DEFAULT = "default"


_PROFILES: Dict[Persona, PersonaProfile] = {
    Persona.FOX: PersonaProfile(
        id="fox",
        display_name="小狐狸",
        avatar="🦊",
        accent_color="#FF6B6B",
        greeting="你好呀！我是小狐狸，很高兴认识你！有什么想聊的吗？",
        voice="nova",
    ),
    Persona.DOLPHIN: PersonaProfile(
        id="dolphin",
        display_name="小海豚",
        avatar="🐬",
        accent_color="#4ECDC4",
        greeting="嗨！我是小海豚，我最喜欢和朋友们一起学习新知识啦！",
        voice="shimmer",
    ),
    Persona.OWL: PersonaProfile(
        id="owl",
        display_name="小猫头鹰",
        avatar="🦉",
        accent_color="#45B7D1",
        greeting="你好！我是小猫头鹰，我知道很多有趣的知识，想听听吗？",
        voice="fable",
    ),
}
# Unknown ids fall back to the fox.
_PROFILES[Persona.DEFAULT] = _PROFILES[Persona.FOX]


def resolve_persona(persona_id: Optional[Union[str, Persona]]) -> Persona:
    """Map a loosely-typed persona id to a Persona, never failing."""
    if isinstance(persona_id, Persona):
        return persona_id
    try:
        return Persona((persona_id or "").strip().lower())
    except ValueError:
        return Persona.DEFAULT


def get_profile(persona_id: Optional[Union[str, Persona]]) -> PersonaProfile:
    """Get the profile for a persona id (unknown ids get the default profile)."""
    return _PROFILES[resolve_persona(persona_id)]


def list_profiles() -> List[PersonaProfile]:
    """Known persona profiles, without the DEFAULT alias."""
    return [profile for persona, profile in _PROFILES.items() if persona != Persona.DEFAULT]

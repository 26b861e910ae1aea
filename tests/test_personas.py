"""
Tests for persona lookup.
"""

import pytest

from voice_chat.personas import Persona, get_profile, list_profiles, resolve_persona


class TestPersonas:

    @pytest.mark.parametrize("persona_id,expected", [
        ("fox", Persona.FOX),
        ("Dolphin", Persona.DOLPHIN),
        (" owl ", Persona.OWL),
        ("dragon", Persona.DEFAULT),
        ("", Persona.DEFAULT),
        (None, Persona.DEFAULT),
    ])
    def test_resolve(self, persona_id, expected):
        assert resolve_persona(persona_id) == expected

    def test_default_profile_is_fox(self):
        assert get_profile("unknown") == get_profile(Persona.FOX)
        assert get_profile("unknown").display_name == "小狐狸"

    def test_profiles(self):
        profiles = {p.id: p for p in list_profiles()}
        assert set(profiles) == {"fox", "dolphin", "owl"}
        assert profiles["dolphin"].avatar == "🐬"
        assert profiles["owl"].display_name == "小猫头鹰"
        assert all(p.greeting for p in profiles.values())

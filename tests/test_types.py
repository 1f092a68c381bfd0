import pytest

from persona_chat.exception.custom_exception import PersonaKeyFormatError
from persona_chat.types import PersonaAttributes, PersonaKey


class TestPersonaKey:
    def test_from_token_id(self):
        key = PersonaKey.from_token_id(42)

        assert str(key) == "persona:42"
        assert key.token_id == "42"

    def test_parse_round_trip(self):
        assert PersonaKey.parse("p:42") == PersonaKey("p", "42")
        assert PersonaKey.parse(PersonaKey("p", "42")) is not None

    @pytest.mark.parametrize("raw", ["42", ":42", "persona:", "a:b:c", None, 42])
    def test_parse_rejects_malformed(self, raw):
        with pytest.raises(PersonaKeyFormatError):
            PersonaKey.parse(raw)

    @pytest.mark.parametrize("token", ["", "  ", None, "4:2"])
    def test_from_token_id_rejects_malformed(self, token):
        with pytest.raises(PersonaKeyFormatError):
            PersonaKey.from_token_id(token)


class TestPersonaAttributes:
    def test_missing_fields_read_not_specified(self):
        block = PersonaAttributes(bio="Sailor.").to_prompt_block()

        assert block.splitlines() == [
            "Bio: Sailor.",
            "Background: Not specified.",
            "Interests: Not specified.",
            "Goals: Not specified.",
            "Personality traits: Not specified.",
        ]

    def test_camel_case_alias_and_comma_strings(self):
        attrs = PersonaAttributes.model_validate(
            {"personalityTraits": "bold, kind", "interests": None, "bio": None}
        )

        assert attrs.personality_traits == ["bold", "kind"]
        assert attrs.interests == []
        assert attrs.bio == ""

    def test_unknown_fields_ignored(self):
        attrs = PersonaAttributes.model_validate({"bio": "x", "walletAddress": "0xabc"})

        assert attrs.bio == "x"

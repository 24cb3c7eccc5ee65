"""Character profile source.

Profiles are read-only JSON presets, one file per character:

  {profiles_dir}/{character_id}.json

The default directory is the packaged wellmate/presets/characters. Loaded
profiles are cached for the lifetime of the ProfileSource; unknown or
invalid ids yield None, and require_profile() turns that into
MissingProfileError.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from wellmate.models import CharacterProfile

logger = logging.getLogger(__name__)

DEFAULT_PROFILES_DIR = Path(__file__).parent / "presets" / "characters"


class MissingProfileError(LookupError):
    """Raised when a character id has no profile. Never defaulted silently."""

    def __init__(self, character_id: str) -> None:
        super().__init__(f"Character profile not found: {character_id}")
        self.character_id = character_id


class ProfileSource:
    def __init__(self, profiles_dir: Path | None = None) -> None:
        self._dir = profiles_dir or DEFAULT_PROFILES_DIR
        self._cache: dict[str, CharacterProfile] = {}

    def _profile_path(self, character_id: str) -> Path:
        return self._dir / f"{character_id}.json"

    def get_profile(self, character_id: str) -> CharacterProfile | None:
        cached = self._cache.get(character_id)
        if cached is not None:
            return cached

        path = self._profile_path(character_id)
        if not character_id or not path.is_file() or path.parent != self._dir:
            logger.warning("Character profile not found for id %r", character_id)
            return None
        try:
            profile = CharacterProfile.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (ValueError, ValidationError) as e:
            logger.error("Invalid character profile %s: %s", path, e)
            return None
        if profile.id != character_id:
            logger.error("Profile %s declares id %r", path, profile.id)
            return None

        self._cache[character_id] = profile
        return profile

    def require_profile(self, character_id: str) -> CharacterProfile:
        profile = self.get_profile(character_id)
        if profile is None:
            raise MissingProfileError(character_id)
        return profile

    def available_ids(self) -> list[str]:
        if not self._dir.is_dir():
            return []
        return sorted(p.stem for p in self._dir.glob("*.json"))

    def clear_cache(self) -> None:
        self._cache.clear()

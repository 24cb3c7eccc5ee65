import asyncio
import json
import random
from datetime import datetime, timezone
from pathlib import Path

import pytest

from wellmate.profiles import ProfileSource
from wellmate.storage import Storage
from wellmate.templates import TemplateResolver

CHARACTER_ID = "baiqi"


@pytest.fixture
def storage(tmp_path: Path) -> Storage:
    """Fresh JSON store per test."""
    return Storage(tmp_path / "data")


@pytest.fixture
def profiles() -> ProfileSource:
    """The packaged character presets."""
    return ProfileSource()


@pytest.fixture
def resolver(profiles: ProfileSource) -> TemplateResolver:
    return TemplateResolver(profiles, random.Random(7))


@pytest.fixture
def profiles_dir(tmp_path: Path) -> Path:
    path = tmp_path / "profiles"
    path.mkdir()
    return path


@pytest.fixture
def write_profile(profiles_dir: Path):
    """Write a minimal profile JSON into profiles_dir; returns a ProfileSource over it."""

    def _write(character_id: str = "sparse", **fields) -> ProfileSource:
        data = {"id": character_id, "name": {"en": "Sparse"}, **fields}
        (profiles_dir / f"{character_id}.json").write_text(
            json.dumps(data, ensure_ascii=False), encoding="utf-8"
        )
        return ProfileSource(profiles_dir)

    return _write


class StubLLM:
    """Records every call; replies with a fixed string or raises."""

    def __init__(self, reply: str = "I'm here with you.", error: Exception | None = None,
                 delay: float = 0.0) -> None:
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: list[tuple[str, list[dict[str, str]]]] = []

    async def __call__(self, stage: str, messages: list[dict[str, str]]) -> str:
        self.calls.append((stage, messages))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply

    @property
    def last_prompt(self) -> str:
        return self.calls[-1][1][-1]["content"]


@pytest.fixture
def make_llm():
    return StubLLM


def at(hour: int, minute: int = 0, day: int = 15) -> datetime:
    """A fixed, timezone-aware instant on 2025-06-{day} at hour:minute UTC."""
    return datetime(2025, 6, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    return at

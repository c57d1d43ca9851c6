"""Tests for card identifier generation."""

from collections.abc import Collection

import pytest

from src.tapcards.domain.errors import GenerationExhausted
from src.tapcards.domain.identifiers import CARD_ID_ALPHABET, CardIdGenerator, random_card_uid

pytestmark = pytest.mark.unit


async def nothing_taken(candidates: Collection[str]) -> set[str]:
    return set()


def scripted(*values: str):
    """Draw function returning `values` in order."""
    it = iter(values)
    return lambda: next(it)


def test_random_card_uid_alphabet_and_length():
    uid = random_card_uid(8)
    assert len(uid) == 8
    assert set(uid) <= set(CARD_ID_ALPHABET)


async def test_generates_requested_count():
    uids = await CardIdGenerator().generate(1000, nothing_taken)
    assert len(uids) == 1000
    assert len(set(uids)) == 1000


async def test_forced_collision_is_retried():
    """A candidate already in the registry is redrawn."""
    existing = {"AAAAAAAA"}

    async def taken(candidates: Collection[str]) -> set[str]:
        return existing & set(candidates)

    generator = CardIdGenerator(draw=scripted("AAAAAAAA", "BBBBBBBB"))
    assert await generator.generate(1, taken) == ["BBBBBBBB"]


async def test_duplicates_within_a_batch_are_redrawn():
    generator = CardIdGenerator(draw=scripted("AAAAAAAA", "AAAAAAAA", "CCCCCCCC"))
    assert await generator.generate(2, nothing_taken) == ["AAAAAAAA", "CCCCCCCC"]


async def test_exhaustion_after_max_attempts():
    calls = 0

    async def everything_taken(candidates: Collection[str]) -> set[str]:
        nonlocal calls
        calls += 1
        return set(candidates)

    generator = CardIdGenerator(max_attempts=3, draw=lambda: "AAAAAAAA")
    with pytest.raises(GenerationExhausted) as exc_info:
        await generator.generate(1, everything_taken)

    assert exc_info.value.attempts == 3
    assert calls == 3
    assert exc_info.value.status_code == 500

"""Tests for pairing codes and the in-memory pairing store."""

from __future__ import annotations

import pytest

from sigbridge.pairing import (
    PAIRING_CODE_ALPHABET,
    PAIRING_CODE_LENGTH,
    InMemoryPairingStore,
    build_pairing_reply,
    generate_pairing_code,
)

pytestmark = pytest.mark.unit


def test_generate_pairing_code_shape() -> None:
    code = generate_pairing_code()
    assert len(code) == PAIRING_CODE_LENGTH
    assert set(code) <= set(PAIRING_CODE_ALPHABET)


def test_build_pairing_reply() -> None:
    text = build_pairing_reply("signal", "Your Signal number: +15550001111", "ABCD2345")
    assert "Your Signal number: +15550001111" in text
    assert "Pairing code: ABCD2345" in text
    assert "--provider signal ABCD2345" in text


class TestInMemoryPairingStore:
    async def test_upsert_created_once(self) -> None:
        store = InMemoryPairingStore()
        first = await store.upsert("signal", "+15550001111")
        second = await store.upsert("signal", "+15550001111", {"name": "Alice"})
        assert first.created
        assert not second.created
        assert first.code == second.code

    async def test_distinct_senders_get_distinct_codes(self) -> None:
        store = InMemoryPairingStore()
        a = await store.upsert("signal", "+15550001111")
        b = await store.upsert("signal", "uuid:abc")
        assert a.code != b.code
        assert sorted(await store.list_pending("signal")) == sorted(
            [("+15550001111", a.code), ("uuid:abc", b.code)]
        )

    async def test_approve_moves_sender_to_allow_list(self) -> None:
        store = InMemoryPairingStore()
        request = await store.upsert("signal", "+15550001111")

        assert await store.approve("signal", request.code.lower()) == "+15550001111"
        assert await store.read_allow_from("signal") == ["+15550001111"]
        assert await store.list_pending("signal") == []

    async def test_approve_unknown_code(self) -> None:
        store = InMemoryPairingStore()
        assert await store.approve("signal", "NOPE") is None
        assert await store.read_allow_from("signal") == []

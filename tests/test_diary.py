"""
Tests for the mood journal
"""

from types import SimpleNamespace

import pytest
import pytest_asyncio
from httpx import AsyncClient

from luna.services.diary_service import detect_mood_pattern

from conftest import FakeGateway, auth_headers_for, make_identity


async def write(client: AsyncClient, user_id: str, content: str, mood=None):
    body = {"content": content}
    if mood is not None:
        body["mood"] = mood
    return await client.post(
        f"/api/identities/{user_id}/diary", json=body, headers=auth_headers_for(user_id),
    )


@pytest_asyncio.fixture
async def plenitude_identity(database):
    """Tier-3 identity, the plan that includes the journal"""
    return await make_identity(plan="plenitude", email="maria@example.com", whatsapp="31977776666")


def test_detect_mood_pattern():
    entries = [SimpleNamespace(mood=m) for m in ["anxious", "happy", "anxious", None, "anxious", "anxious"]]
    assert detect_mood_pattern(entries) == "Mood 'anxious' in 3 of the last 5 entries"

    assert detect_mood_pattern([SimpleNamespace(mood="sad"), SimpleNamespace(mood="happy")]) is None
    assert detect_mood_pattern([SimpleNamespace(mood=None)]) is None
    assert detect_mood_pattern([]) is None


@pytest.mark.asyncio
async def test_journal_requires_plenitude(client: AsyncClient, identity):
    response = await write(client, identity.id, "Today felt heavy.", "sad")
    assert response.status_code == 403
    assert "plenitude" in response.json()["error"]

    listing = await client.get(f"/api/identities/{identity.id}/diary", headers=auth_headers_for(identity.id))
    assert listing.status_code == 200
    assert listing.json() == []


@pytest.mark.asyncio
async def test_write_and_list_newest_first(client: AsyncClient, plenitude_identity):
    user = plenitude_identity
    headers = auth_headers_for(user.id)

    first = await write(client, user.id, "We had an amazing talk yesterday.", "happy")
    assert first.status_code == 201
    entry = first.json()
    assert entry["mood"] == "happy"
    assert entry["userId"] == user.id
    assert entry["aiResponse"] is None

    assert (await write(client, user.id, "Not sure about my choices...")).status_code == 201

    entries = (await client.get(f"/api/identities/{user.id}/diary", headers=headers)).json()
    assert [e["content"] for e in entries] == [
        "Not sure about my choices...", "We had an amazing talk yesterday.",
    ]
    assert entries[0]["mood"] is None

    limited = await client.get(f"/api/identities/{user.id}/diary", params={"limit": 1}, headers=headers)
    assert len(limited.json()) == 1


@pytest.mark.asyncio
async def test_write_rejects_blank_and_unknown_mood(client: AsyncClient, plenitude_identity):
    user = plenitude_identity

    response = await write(client, user.id, "   ")
    assert response.status_code == 400
    assert response.json() == {"error": "Entry content is required"}

    response = await write(client, user.id, "Hello", "ecstatic")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_edit_entry(client: AsyncClient, plenitude_identity):
    user = plenitude_identity
    headers = auth_headers_for(user.id)
    entry = (await write(client, user.id, "First draft", "confused")).json()

    response = await client.patch(
        f"/api/diary/{entry['id']}", json={"content": "Second draft", "mood": "in_love"}, headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["content"] == "Second draft"
    assert response.json()["mood"] == "in_love"

    response = await client.patch(f"/api/diary/{entry['id']}", json={"mood": None}, headers=headers)
    assert response.json()["mood"] is None
    assert response.json()["content"] == "Second draft"

    response = await client.patch("/api/diary/missing", json={"mood": "sad"}, headers=headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Diary entry not found"}


@pytest.mark.asyncio
async def test_other_identity_cannot_touch_entry(client: AsyncClient, identity, plenitude_identity):
    user = plenitude_identity
    entry = (await write(client, user.id, "Private thoughts", "sad")).json()
    other = auth_headers_for(identity.id)

    response = await client.patch(f"/api/diary/{entry['id']}", json={"mood": "happy"}, headers=other)
    assert response.status_code == 403

    response = await client.post(f"/api/diary/{entry['id']}/reflection", headers=other)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_reflection_stores_answer_and_pattern(client: AsyncClient, plenitude_identity, gateway: FakeGateway):
    user = plenitude_identity
    headers = auth_headers_for(user.id)
    for text in ["Worried about work", "Can't sleep again", "Insecure about us"]:
        entry = (await write(client, user.id, text, "anxious")).json()

    response = await client.post(f"/api/diary/{entry['id']}/reflection", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["aiResponse"] == gateway.transcript
    assert data["patternDetected"] == "Mood 'anxious' in 3 of the last 3 entries"
    prompt = gateway.prompts[-1]
    assert "Insecure about us" in prompt
    assert "Worried about work" in prompt  # Earlier entry given as context

    entries = (await client.get(f"/api/identities/{user.id}/diary", headers=headers)).json()
    assert entries[0]["aiResponse"] == gateway.transcript


@pytest.mark.asyncio
async def test_reflection_without_pattern(client: AsyncClient, plenitude_identity, gateway: FakeGateway):
    user = plenitude_identity
    entry = (await write(client, user.id, "A calm day", "happy")).json()

    response = await client.post(f"/api/diary/{entry['id']}/reflection", headers=auth_headers_for(user.id))

    assert response.json()["patternDetected"] is None
    assert "Earlier entries" not in gateway.prompts[-1]

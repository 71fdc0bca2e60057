"""Integration tests — /api/acronyms and /api/categories."""
import pytest
from sqlalchemy import func, select

from tests.helpers import bearer_headers
from tilapp.db.models.acronym import AcronymCategoryPivot

pytestmark = pytest.mark.asyncio


async def _create(client, headers, short="TIL", long="Today I Learned") -> dict:
    resp = await client.post("/api/acronyms", json={"short": short, "long": long}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _category(client, headers, name="Learning") -> dict:
    resp = await client.post("/api/categories", json={"name": name}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


# ─── Reads ────────────────────────────────────────────────────────────────────

async def test_list_empty(client):
    resp = await client.get("/api/acronyms")
    assert resp.status_code == 200
    assert resp.json() == []


async def test_get_missing_is_404(client):
    resp = await client.get("/api/acronyms/999")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "ACR_001"


async def test_first_on_empty_is_404(client):
    assert (await client.get("/api/acronyms/first")).status_code == 404


async def test_search_without_term_is_400(client):
    resp = await client.get("/api/acronyms/search")
    assert resp.status_code == 400


async def test_search_or_match(client, alice_headers):
    await _create(client, alice_headers, "TIL", "Today I Learned")
    await _create(client, alice_headers, "OMG", "Oh My God")

    by_short = (await client.get("/api/acronyms/search", params={"term": "OMG"})).json()
    by_long = (await client.get("/api/acronyms/search", params={"term": "Today I Learned"})).json()
    assert [a["short"] for a in by_short] == ["OMG"]
    assert [a["short"] for a in by_long] == ["TIL"]


async def test_sorted_and_first(client, alice_headers):
    await _create(client, alice_headers, "OMG", "Oh My God")
    await _create(client, alice_headers, "AFK", "Away From Keyboard")

    sorted_ = (await client.get("/api/acronyms/sorted")).json()
    assert [a["short"] for a in sorted_] == ["AFK", "OMG"]
    assert (await client.get("/api/acronyms/first")).json()["short"] == "OMG"


async def test_most_recent(client, alice_headers):
    first = await _create(client, alice_headers, "AFK", "Away From Keyboard")
    await _create(client, alice_headers, "OMG", "Oh My God")
    await client.put(
        f"/api/acronyms/{first['id']}",
        json={"short": "AFK", "long": "Away From Keys"},
        headers=alice_headers,
    )
    recent = (await client.get("/api/acronyms/mostRecent")).json()
    assert recent[0]["short"] == "AFK"


async def test_joined_projection_and_owner(client, alice, alice_headers):
    created = await _create(client, alice_headers)

    joined = (await client.get("/api/acronyms/users")).json()
    assert joined == [
        {
            "id": created["id"],
            "short": "TIL",
            "long": "Today I Learned",
            "user": {"id": alice.id, "name": "Alice", "username": "alice"},
        }
    ]

    owner = (await client.get(f"/api/acronyms/{created['id']}/user")).json()
    assert owner == {"id": alice.id, "name": "Alice", "username": "alice"}
    assert "password_hash" not in owner
    assert "email" not in owner


async def test_raw_listing(client, alice_headers):
    await _create(client, alice_headers)
    raw = (await client.get("/api/acronyms/raw")).json()
    assert [a["short"] for a in raw] == ["TIL"]


# ─── Writes ───────────────────────────────────────────────────────────────────

async def test_create_requires_token(client):
    resp = await client.post("/api/acronyms", json={"short": "TIL", "long": "x"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "AUTH_005"


async def test_create_with_bad_token(client):
    resp = await client.post(
        "/api/acronyms",
        json={"short": "TIL", "long": "x"},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "AUTH_003"


async def test_create_owned_by_actor(client, alice, alice_headers):
    created = await _create(client, alice_headers)
    assert created["user_id"] == alice.id


async def test_update_reassigns_owner_to_editor(client, alice_headers, make_user):
    created = await _create(client, alice_headers)
    bob = await make_user("bob")
    bob_headers = await bearer_headers(client, "bob")

    resp = await client.put(
        f"/api/acronyms/{created['id']}",
        json={"short": "TIL", "long": "Today I Learnt"},
        headers=bob_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["user_id"] == bob.id
    assert resp.json()["long"] == "Today I Learnt"


async def test_any_authenticated_user_may_delete(client, alice_headers, make_user):
    created = await _create(client, alice_headers)
    await make_user("bob")
    bob_headers = await bearer_headers(client, "bob")

    resp = await client.delete(f"/api/acronyms/{created['id']}", headers=bob_headers)
    assert resp.status_code == 204
    assert (await client.get(f"/api/acronyms/{created['id']}")).status_code == 404


# ─── Categories ───────────────────────────────────────────────────────────────

async def test_scenario_register_create_attach(client, make_user):
    """alice creates TIL, attaches "Learning", and reads back exactly that category."""
    await make_user("alice", email="alice@x.com")
    headers = await bearer_headers(client, "alice")
    acronym = await _create(client, headers, "TIL", "Today I Learned")
    category = await _category(client, headers, "Learning")

    resp = await client.post(
        f"/api/acronyms/{acronym['id']}/categories/{category['id']}", headers=headers
    )
    assert resp.status_code == 201

    categories = (await client.get(f"/api/acronyms/{acronym['id']}/categories")).json()
    assert [{"name": c["name"]} for c in categories] == [{"name": "Learning"}]


async def test_attach_twice_keeps_one_pivot(client, db_session, alice_headers):
    acronym = await _create(client, alice_headers)
    category = await _category(client, alice_headers)
    url = f"/api/acronyms/{acronym['id']}/categories/{category['id']}"

    assert (await client.post(url, headers=alice_headers)).status_code == 201
    assert (await client.post(url, headers=alice_headers)).status_code == 201

    count = (
        await db_session.execute(select(func.count()).select_from(AcronymCategoryPivot))
    ).scalar_one()
    assert count == 1


async def test_detach(client, alice_headers):
    acronym = await _create(client, alice_headers)
    category = await _category(client, alice_headers)
    url = f"/api/acronyms/{acronym['id']}/categories/{category['id']}"
    await client.post(url, headers=alice_headers)

    assert (await client.delete(url, headers=alice_headers)).status_code == 204
    assert (await client.get(f"/api/acronyms/{acronym['id']}/categories")).json() == []


async def test_attach_unknown_category_is_404(client, alice_headers):
    acronym = await _create(client, alice_headers)
    resp = await client.post(
        f"/api/acronyms/{acronym['id']}/categories/42", headers=alice_headers
    )
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "CAT_001"


async def test_category_create_is_idempotent(client, alice_headers):
    first = await _category(client, alice_headers, "Learning")
    second = await _category(client, alice_headers, "Learning")
    assert first["id"] == second["id"]
    assert len((await client.get("/api/categories")).json()) == 1


async def test_category_acronyms(client, alice_headers):
    acronym = await _create(client, alice_headers)
    await _create(client, alice_headers, "OMG", "Oh My God")
    category = await _category(client, alice_headers)
    await client.post(
        f"/api/acronyms/{acronym['id']}/categories/{category['id']}", headers=alice_headers
    )

    assert (await client.get(f"/api/categories/{category['id']}")).json()["name"] == "Learning"
    listed = (await client.get(f"/api/categories/{category['id']}/acronyms")).json()
    assert [a["short"] for a in listed] == ["TIL"]


async def test_category_create_requires_token(client):
    resp = await client.post("/api/categories", json={"name": "Learning"})
    assert resp.status_code == 401


async def test_blank_category_name_is_422(client, alice_headers):
    resp = await client.post("/api/categories", json={"name": "   "}, headers=alice_headers)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "GEN_001"
    assert (await client.get("/api/categories")).json() == []


async def test_soft_deleted_owner_reads_as_missing(client, alice, alice_headers, admin_headers):
    created = await _create(client, alice_headers)
    await client.delete(f"/api/users/{alice.id}", headers=admin_headers)

    resp = await client.get(f"/api/acronyms/{created['id']}/user")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "USR_001"
    assert (await client.get(f"/api/users/{alice.id}")).status_code == 404

    page = await client.get(f"/acronyms/{created['id']}")
    assert page.status_code == 200
    assert "Created by a former member" in page.text

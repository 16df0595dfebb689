"""Current-user profile endpoint tests."""

from httpx import AsyncClient


async def test_profile_of_new_user(authed_client: AsyncClient, user) -> None:
    response = await authed_client.get("/api/v1/users/me")

    assert response.status_code == 200
    data = response.json()
    assert data["id"] == str(user.id)
    assert data["username"] == "octocat"
    assert data["total_xp"] == 0
    assert data["level"] == 1
    assert data["xp_into_level"] == 0
    assert data["xp_for_level"] == 100
    assert data["current_streak"] == 0
    assert data["longest_streak"] == 0


async def test_profile_level_progress(authed_client: AsyncClient, db_session, user) -> None:
    user.total_xp = 450
    user.level = 3
    await db_session.commit()

    data = (await authed_client.get("/api/v1/users/me")).json()

    assert data["level"] == 3
    assert data["xp_into_level"] == 50
    assert data["xp_for_level"] == 500

"""API tests for the compatibility matching endpoints."""

from __future__ import annotations

from datetime import date

import pytest

from app.core.clock import utcnow, year_age
from app.core.security import create_access_token


def auth_headers(user) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture()
def community(make_user, make_interest):
    music = make_interest("Music", "Arts")
    hiking = make_interest("Hiking", "Outdoors")
    users = {
        "me": make_user(full_name="Me", interest_ids=(music.id,)),
        "twin": make_user(full_name="Twin", interest_ids=(music.id,)),
        "man": make_user(full_name="Man", gender="Male"),
        "far": make_user(
            full_name="Far",
            date_of_birth=date(1960, 1, 1),
            city="Ankara",
            interest_ids=(hiking.id,),
        ),
        "gone": make_user(full_name="Gone", interest_ids=(music.id,), is_active=False),
    }
    return users


def test_compatible_users_are_sorted_and_filtered(client, community):
    headers = auth_headers(community["me"])

    everyone = client.get("/api/matching/compatible-users", headers=headers)
    assert everyone.status_code == 200, everyone.text
    body = everyone.json()
    assert [item["user"]["full_name"] for item in body] == ["Twin", "Man", "Far"]
    assert [item["compatibility_score"] for item in body] == [0.95, 0.7, 0.11]

    women = client.get("/api/matching/compatible-users", params={"gender_filter": "Female"}, headers=headers)
    assert [item["user"]["full_name"] for item in women.json()] == ["Twin", "Far"]

    young = client.get("/api/matching/compatible-users", params={"max_age": 40, "limit": 1}, headers=headers)
    assert [item["user"]["full_name"] for item in young.json()] == ["Twin"]

    inverted = client.get(
        "/api/matching/compatible-users", params={"min_age": 40, "max_age": 30}, headers=headers
    )
    assert inverted.status_code == 400


def test_pairwise_compatibility(client, community):
    headers = auth_headers(community["me"])

    response = client.get(f"/api/matching/compatibility/{community['twin'].id}", headers=headers)
    assert response.json() == {
        "user_id": community["me"].id,
        "target_user_id": community["twin"].id,
        "compatibility_score": 0.95,
        "compatibility_level": "Excellent",
    }

    itself = client.get(f"/api/matching/compatibility/{community['me'].id}", headers=headers)
    assert itself.status_code == 400
    assert itself.json() == {"detail": "Cannot calculate compatibility with yourself"}

    assert client.get("/api/matching/compatibility/9999", headers=headers).status_code == 404
    assert client.get(f"/api/matching/compatibility/{community['gone'].id}", headers=headers).status_code == 404


def test_reactions_record_one_match_per_pair(client, community):
    headers = auth_headers(community["me"])
    twin_id = community["twin"].id

    liked = client.post("/api/matching/react", json={"target_user_id": twin_id, "is_like": True}, headers=headers)
    assert liked.status_code == 200
    assert liked.json()["created"] is True
    assert liked.json()["match_status"] == "accepted"

    reverse = client.post(
        "/api/matching/react",
        json={"target_user_id": community["me"].id, "is_like": False},
        headers=auth_headers(community["twin"]),
    )
    assert reverse.json()["created"] is False
    assert reverse.json()["match_id"] == liked.json()["match_id"]
    assert reverse.json()["match_status"] == "accepted"

    disliked = client.post(
        "/api/matching/react", json={"target_user_id": community["far"].id, "is_like": False}, headers=headers
    )
    assert disliked.json()["match_status"] == "rejected"

    itself = client.post(
        "/api/matching/react", json={"target_user_id": community["me"].id, "is_like": True}, headers=headers
    )
    assert itself.status_code == 400

    profile = client.get("/api/matching/profile", headers=headers).json()
    assert profile["total_matches"] == 2
    assert profile["interests"] == ["Music"]
    assert profile["age"] == year_age(date(1995, 6, 15), utcnow().date())


def test_statistics(client, community):
    response = client.get("/api/matching/statistics", headers=auth_headers(community["me"]))

    assert response.status_code == 200
    body = response.json()
    age = year_age(date(1995, 6, 15), utcnow().date())
    assert (body["recommended_min_age"], body["recommended_max_age"]) == (max(18, age - 5), age + 5)
    assert [(item["name"], item["user_count"]) for item in body["popular_interests"]] == [
        ("Music", 3),
        ("Hiking", 1),
    ]
    assert len(body["tips"]) == 5
    assert body["profile"]["user_id"] == community["me"].id


def test_create_groups(client, community):
    headers = auth_headers(community["me"])
    user_ids = [community[name].id for name in ("me", "twin", "man", "far")]

    too_small = client.post("/api/matching/create-groups", json={"user_ids": user_ids, "group_size": 1}, headers=headers)
    assert too_small.status_code == 400
    assert too_small.json() == {"detail": "Group size must be between 2 and 20"}

    response = client.post("/api/matching/create-groups", json={"user_ids": user_ids, "group_size": 2}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["total_groups"] == 2
    assert body["total_users"] == 4
    assert sorted(user for group in body["groups"] for user in group) == sorted(user_ids)


def test_matching_requires_authentication(client):
    assert client.get("/api/matching/profile").status_code == 401

"""
tests/test_api_routes.py — FastAPI Route Integration Tests
===========================================================

Drives the HTTP surface through ``TestClient`` against the in-memory
database:
- health
- auth guards (missing / invalid / expired tokens)
- error body shape for each error class
- feed, vote, community, post, comment, profile and suggestion routes
- sign-up / login proxied to a mocked identity provider
"""

from __future__ import annotations

import httpx
import pytest
from conftest import auth, make_token

from bfriends.api.deps import get_identity
from bfriends.services.identity import IdentityClient


# ===========================================================================
# Health
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


# ===========================================================================
# Auth guards
# ===========================================================================
class TestAuthGuards:
    WRITE_ENDPOINTS = [
        ("post", "/api/communities", {"name": "Chess"}),
        ("post", "/api/posts", {"community_name": "PublicSphere", "title": "Hi"}),
        ("post", "/api/posts/abc/vote", {"direction": "UP"}),
        ("post", "/api/posts/abc/comments", {"text": "hi"}),
        ("put", "/api/me/username", {"user_name": "alice"}),
    ]

    @pytest.mark.parametrize("method, path, body", WRITE_ENDPOINTS)
    def test_writes_reject_no_auth(self, client, method, path, body):
        resp = getattr(client, method)(path, json=body)
        assert resp.status_code == 401
        assert resp.json()["error"] == "Unauthenticated"

    @pytest.mark.parametrize("method, path, body", WRITE_ENDPOINTS)
    def test_writes_reject_invalid_token(self, client, method, path, body):
        resp = getattr(client, method)(path, json=body, headers={"Authorization": "Bearer junk"})
        assert resp.status_code == 401

    def test_expired_token(self, client, make):
        make.user("alice")
        token = make_token("alice", expires_in=-60)
        resp = client.get("/api/friends/suggestions", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_wrong_audience(self, client, make):
        make.user("alice")
        token = make_token("alice", aud="someone-else")
        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_reads_ignore_bad_token(self, client):
        resp = client.get("/api/feed", headers={"Authorization": "Bearer junk"})
        assert resp.status_code == 200


# ===========================================================================
# Feed & votes
# ===========================================================================
class TestFeedRoutes:
    def test_home_feed_shape(self, client, make):
        make.user("alice")
        make.post("PublicSphere", "alice", "Hello")
        body = client.get("/api/feed").json()
        assert body["total"] == 1
        assert body["page_size"] == 5
        item = body["items"][0]
        assert item["title"] == "Hello"
        assert item["author"]["user_name"] == "alice"
        assert item["viewer_vote"] is None

    def test_bad_sort_and_page_fall_back(self, client, make):
        make.user("alice")
        make.post("PublicSphere", "alice", "Hello")
        body = client.get("/api/feed", params={"sort": "wat", "page": "-3"}).json()
        assert body["page"] == 1
        assert len(body["items"]) == 1

    def test_vote_round_trip(self, client, make):
        make.user("alice")
        make.user("bob")
        post_id = make.post("PublicSphere", "alice", "Hello")

        resp = client.post(f"/api/posts/{post_id}/vote", json={"direction": "UP"}, headers=auth("bob"))
        assert resp.status_code == 204

        item = client.get("/api/feed", headers=auth("bob")).json()["items"][0]
        assert item["vote_score"] == 1
        assert item["viewer_vote"] == "UP"

    def test_vote_on_missing_post_is_silent(self, client, make):
        make.user("bob")
        resp = client.post("/api/posts/nope/vote", json={"direction": "DOWN"}, headers=auth("bob"))
        assert resp.status_code == 204

    def test_bad_direction(self, client, make):
        make.user("alice")
        post_id = make.post("PublicSphere", "alice")
        resp = client.post(f"/api/posts/{post_id}/vote", json={"direction": "LEFT"}, headers=auth("alice"))
        assert resp.status_code == 422
        assert resp.json() == {
            "error": "InvalidValue",
            "message": "Vote direction must be UP or DOWN.",
            "field": "direction",
        }

    def test_community_feed_unknown_community(self, client):
        resp = client.get("/api/communities/Nowhere/posts")
        assert resp.status_code == 200
        body = resp.json()
        assert body["items"] == []
        assert body["total_pages"] == 0

    def test_user_feed(self, client, make):
        make.user("alice")
        make.post("PublicSphere", "alice", "Mine")
        body = client.get("/api/users/alice/posts").json()
        assert [p["title"] for p in body["items"]] == ["Mine"]

    def test_search(self, client, make):
        make.user("alice")
        make.post("PublicSphere", "alice", "Chess openings")
        make.post("PublicSphere", "alice", "Robots")
        body = client.get("/api/search", params={"q": "chess"}).json()
        assert [p["title"] for p in body["items"]] == ["Chess openings"]
        assert body["page_size"] == 10


# ===========================================================================
# Communities, posts, comments
# ===========================================================================
class TestRegistryRoutes:
    def test_create_community_and_conflict(self, client, make):
        make.user("alice")
        make.user("bob")
        resp = client.post("/api/communities", json={"name": "abc"}, headers=auth("alice"))
        assert resp.status_code == 201
        assert resp.json()["link"] == "/p/abc"

        resp = client.post("/api/communities", json={"name": "abc"}, headers=auth("bob"))
        assert resp.status_code == 409
        assert resp.json() == {
            "error": "AlreadyExists",
            "message": "This community name is already taken.",
            "field": "name",
        }
        assert client.get("/api/communities/abc").json()["owner_id"] == "alice"

    def test_patch_description_owner_only(self, client, make):
        make.user("alice")
        make.user("bob")
        make.community("Chess", owner_id="alice")
        resp = client.patch("/api/communities/Chess", json={"description": "x"}, headers=auth("bob"))
        assert resp.status_code == 403
        resp = client.patch("/api/communities/Chess", json={"description": "x"}, headers=auth("alice"))
        assert resp.json()["description"] == "x"

    def test_post_lifecycle(self, client, make):
        make.user("alice")
        resp = client.post(
            "/api/posts",
            json={"community_name": "PublicSphere", "title": "Hi", "text_content": {"type": "doc"}},
            headers=auth("alice"),
        )
        assert resp.status_code == 201
        post_id = resp.json()["id"]

        resp = client.post(f"/api/posts/{post_id}/comments", json={"text": "first"}, headers=auth("alice"))
        assert resp.status_code == 201

        detail = client.get(f"/api/posts/{post_id}").json()
        assert detail["text_content"] == {"type": "doc"}
        assert [c["text"] for c in detail["comments"]] == ["first"]

        resp = client.delete(f"/api/posts/{post_id}", headers=auth("alice"))
        assert resp.json()["redirect"] == "/p/PublicSphere"
        assert client.get(f"/api/posts/{post_id}").status_code == 404

    def test_delete_someone_elses_post(self, client, make):
        make.user("alice")
        make.user("bob")
        post_id = make.post("PublicSphere", "alice")
        resp = client.delete(f"/api/posts/{post_id}", headers=auth("bob"))
        assert resp.status_code == 403
        assert client.get(f"/api/posts/{post_id}").status_code == 200

    def test_missing_body_field_names_it(self, client, make):
        make.user("alice")
        resp = client.post("/api/posts", json={"community_name": "PublicSphere"}, headers=auth("alice"))
        assert resp.status_code == 422
        assert resp.json()["field"] == "title"

    def test_suggest(self, client, make):
        make.community("Chess Club")
        body = client.get("/api/suggest", params={"q": "chess"}).json()
        assert body["results"][0]["name"] == "Chess Club"


# ===========================================================================
# Profiles & friends
# ===========================================================================
class TestProfileRoutes:
    def test_onboarding(self, client, make):
        make.user("alice", complete=False)
        resp = client.post(
            "/api/me/onboarding",
            json={
                "full_name": "Alice Anders",
                "user_name": "alice_a",
                "primary_role": "EMPLOYEE",
                "employee_id": "D001",
                "employee_department": "IT",
                "campus_locations": ["@Kemanggisan"],
            },
            headers=auth("alice"),
        )
        assert resp.status_code == 200
        assert resp.json()["profile_complete"] is True

        profile = client.get("/api/users/alice_a").json()
        assert profile["employee_department"] == "IT"
        assert profile["campus_locations"] == ["@Kemanggisan"]

    def test_onboarding_missing_role_field(self, client, make):
        make.user("alice", complete=False)
        resp = client.post(
            "/api/me/onboarding",
            json={"full_name": "Alice Anders", "user_name": "alice_a", "primary_role": "STUDENT"},
            headers=auth("alice"),
        )
        assert resp.status_code == 422
        assert resp.json()["field"] == "nim"

    def test_unknown_profile(self, client):
        assert client.get("/api/users/nobody").status_code == 404

    def test_friend_suggestions_incomplete(self, client, make):
        make.user("alice", complete=False)
        body = client.get("/api/friends/suggestions", headers=auth("alice")).json()
        assert body == {"candidates": [], "message": "ProfileIncomplete", "top_communities": []}

    def test_me(self, client, make):
        make.user("alice")
        body = client.get("/api/auth/me", headers=auth("alice")).json()
        assert body["user_name"] == "alice"


# ===========================================================================
# Sign-up / login via the identity provider
# ===========================================================================
class TestAuthRoutes:
    @pytest.fixture
    def identity(self):
        from bfriends.api.main import app

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/signup"):
                return httpx.Response(200, json={"id": "new-user", "email": "jane@binus.ac.id"})
            if request.url.path.endswith("/token"):
                return httpx.Response(200, json={
                    "access_token": "provider-token",
                    "user": {"id": "new-user", "email": "jane@binus.ac.id"},
                })
            return httpx.Response(204)

        client = IdentityClient(
            "https://id.test/auth/v1", "anon", allowed_domains=("binus.ac.id",),
            transport=httpx.MockTransport(handler),
        )
        app.dependency_overrides[get_identity] = lambda: client
        return client

    def test_signup_then_login(self, client, identity):
        resp = client.post("/api/auth/signup", json={"email": "jane@binus.ac.id", "password": "secret1"})
        assert resp.status_code == 201
        assert resp.json()["id"] == "new-user"

        resp = client.post("/api/auth/login", json={"email": "jane@binus.ac.id", "password": "secret1"})
        body = resp.json()
        assert body["access_token"] == "provider-token"
        assert body["next"] == "/onboarding"
        assert body["user"]["profile_complete"] is False

    def test_signup_wrong_domain(self, client, identity):
        resp = client.post("/api/auth/signup", json={"email": "jane@gmail.com", "password": "secret1"})
        assert resp.status_code == 422
        assert resp.json()["field"] == "email"

    def test_logout(self, client, identity, make):
        make.user("alice")
        assert client.post("/api/auth/logout", headers=auth("alice")).status_code == 204
        assert client.post("/api/auth/logout").status_code == 401

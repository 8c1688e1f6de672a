"""
Tests for registration, login, account management, admin tools and stats.
"""
import pytest
from bson import ObjectId


def register(client, email="jane@test.com", password="secret123", role="Customer"):
    return client.post("/api/accounts/register", json={
        "name": "Jane", "email": email, "password": password, "role": role})


class TestAuth:
    def test_register_returns_token(self, client):
        response = register(client, email="Jane@Test.com")
        assert response.status_code == 201
        body = response.json()
        assert body["user"]["email"] == "jane@test.com"
        assert body["token"]

        me = client.get("/api/accounts/me", headers={"Authorization": f"Bearer {body['token']}"}).json()
        assert me["user"]["email"] == "jane@test.com"
        assert "password_hash" not in me["user"]

    def test_duplicate_email(self, client):
        register(client)
        assert register(client).status_code == 400
        assert client.post("/api/accounts/check-email", json={"email": "jane@test.com"}).json() == {
            "exists": True, "allow_register": False}

    @pytest.mark.parametrize("role", ["Admin", "Counselor"])
    def test_self_registration_is_customer_only(self, client, mongo, role):
        response = register(client, role=role)
        assert response.status_code == 400
        assert mongo["account"].count_documents({}) == 0

    def test_admin_created_counselor_is_verified(self, client, mongo, admin_user):
        _, admin_headers = admin_user
        response = client.post("/api/accounts", headers=admin_headers, json={
            "name": "Dr. Mai", "email": "doc@test.com", "password": "secret123", "role": "Counselor"})
        assert response.status_code == 201
        assert response.json()["role"] == "Counselor"
        assert mongo["account"].find_one({"email": "doc@test.com"})["is_verified"] is True

    def test_login(self, client, mongo):
        register(client)
        response = client.post("/api/accounts/login", json={"email": "jane@test.com", "password": "secret123"})
        assert response.status_code == 200
        assert mongo["account"].find_one({"email": "jane@test.com"})["last_login"] is not None

        wrong = client.post("/api/accounts/login", json={"email": "jane@test.com", "password": "nope"})
        assert wrong.status_code == 401

    def test_deactivated_account(self, client, customer, admin_user):
        account, headers = customer
        _, admin_headers = admin_user
        client.patch(f"/api/accounts/{account['_id']}/deactivate", headers=admin_headers)

        assert client.get("/api/accounts/me", headers=headers).status_code == 403
        login = client.post("/api/accounts/login", json={"email": account["email"], "password": "testpass123"})
        assert login.status_code == 403

    def test_bad_token(self, client):
        response = client.get("/api/accounts/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401


class TestAccounts:
    def test_update_own_account(self, client, customer):
        account, headers = customer
        response = client.put(f"/api/accounts/{account['_id']}", headers=headers, json={"name": "Renamed"})
        assert response.json()["name"] == "Renamed"

    def test_cannot_update_other_account(self, client, customer, other_customer):
        _, headers = customer
        other, _ = other_customer
        response = client.put(f"/api/accounts/{other['_id']}", headers=headers, json={"name": "Hacked"})
        assert response.status_code == 403

    def test_admin_listing(self, client, customer, admin_user):
        _, headers = customer
        _, admin_headers = admin_user
        assert client.get("/api/accounts", headers=headers).status_code == 403
        assert len(client.get("/api/accounts", headers=admin_headers).json()) == 2


class TestAdmin:
    def test_users_search_and_filters(self, client, make_account, admin_user):
        _, admin_headers = admin_user
        make_account("Customer", name="Alice Nguyen")
        make_account("Counselor", name="Bob Tran")

        found = client.get("/api/admin/users", headers=admin_headers, params={"search": "alice"}).json()
        assert [u["name"] for u in found["users"]] == ["Alice Nguyen"]

        counselors = client.get("/api/admin/users", headers=admin_headers, params={"role": "Counselor"}).json()
        assert counselors["pagination"]["total"] == 1

    def test_search_is_literal(self, client, admin_user):
        _, admin_headers = admin_user
        response = client.get("/api/admin/users", headers=admin_headers, params={"search": ".*"})
        assert response.json()["users"] == []

    def test_change_role(self, client, customer, admin_user):
        account, _ = customer
        _, admin_headers = admin_user
        url = f"/api/admin/users/{account['_id']}/change-role"
        assert client.patch(url, headers=admin_headers, json={"role": "Manager"}).json()["role"] == "Manager"
        assert client.patch(url, headers=admin_headers, json={"role": "Wizard"}).status_code == 400

    def test_user_detail_counts_activity(self, client, customer, admin_user):
        account, headers = customer
        _, admin_headers = admin_user
        client.post("/api/posts", headers=headers, json={"title": "t", "content": "c", "category": "x"})
        detail = client.get(f"/api/admin/users/{account['_id']}", headers=admin_headers).json()
        assert detail["posts_count"] == 1
        assert detail["comments_count"] == 0

    def test_delete_missing_user(self, client, admin_user):
        _, admin_headers = admin_user
        assert client.delete(f"/api/admin/users/{ObjectId()}", headers=admin_headers).status_code == 404

    def test_user_stats(self, client, make_account, admin_user):
        _, admin_headers = admin_user
        inactive, _ = make_account("Customer")
        client.patch(f"/api/admin/users/{inactive['_id']}/deactivate", headers=admin_headers)

        stats = client.get("/api/admin/stats/users", headers=admin_headers).json()
        assert stats["total_users"] == 2
        assert stats["inactive_users"] == 1
        assert stats["users_by_role"] == {"Admin": 1, "Customer": 1}
        assert stats["recent_registrations"] == 2
        assert stats["growth_rate"] == 100.0

    def test_admin_only(self, client, customer):
        _, headers = customer
        assert client.get("/api/admin/users", headers=headers).status_code == 403


class TestCommunityStats:
    @pytest.fixture
    def community(self, client, customer, counselor_account):
        _, headers = customer
        _, counselor_headers = counselor_account
        for tags in (["cycle", "pcos"], ["cycle"], ["sleep"]):
            post = client.post("/api/posts", headers=headers, json={
                "title": "Question", "content": "Body", "category": "general", "tags": tags}).json()
        client.post(f"/api/posts/{post['_id']}/comments", headers=counselor_headers, json={"content": "Answer"})

    def test_community_stats(self, client, community):
        stats = client.get("/api/stats/community").json()
        assert stats["active_members"] == 2
        assert stats["discussions"] == 3
        assert stats["expert_answers"] == 1
        assert stats["trending_topics"][0] == {"name": "cycle", "posts": 2, "trend": "+50.0%"}
        assert [t["name"] for t in stats["trending_topics"]] == ["cycle", "pcos", "sleep"]

"""
Tests for the community forum endpoints: posts, comments and votes.
"""
from datetime import timedelta

import pytest
from bson import ObjectId

from database import now_utc


def create_post(client, headers, **overrides):
    body = {"title": "Irregular cycle", "content": "Is a 40 day cycle normal?", "category": "cycle",
            "tags": ["cycle", "health"]}
    body.update(overrides)
    response = client.post("/api/posts", json=body, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def backdate(mongo, post, minutes):
    mongo["post"].update_one({"_id": ObjectId(post["_id"])},
                             {"$set": {"created_at": now_utc() - timedelta(minutes=minutes)}})


class TestCreateAndList:
    def test_clean_post_is_published(self, client, customer):
        account, headers = customer
        post = create_post(client, headers)
        assert post["status"] == "approved"
        assert post["status_info"]["is_approved"] is True
        assert post["author"]["_id"] == str(account["_id"])
        assert post["vote_count"] == 0

    def test_banned_word_holds_post(self, client, customer):
        _, headers = customer
        post = create_post(client, headers, content="This is not a scam")
        assert post["status"] == "pending"
        assert post["status_info"]["status_text"] == "Awaiting review"

    def test_anonymous_post_hides_author(self, client, customer):
        _, headers = customer
        post = create_post(client, headers, is_anonymous=True)
        assert post["author"] is None

    def test_requires_login(self, client):
        response = client.post("/api/posts", json={"title": "t", "content": "c", "category": "x"})
        assert response.status_code == 401

    def test_cannot_post_for_someone_else(self, client, customer, other_customer):
        _, headers = customer
        other, _ = other_customer
        response = client.post("/api/posts", headers=headers, json={
            "title": "t", "content": "c", "category": "x", "account_id": str(other["_id"])})
        assert response.status_code == 403

    def test_listing_shows_only_approved(self, client, customer):
        _, headers = customer
        create_post(client, headers, title="Clean one")
        create_post(client, headers, title="spam offer")

        data = client.get("/api/posts").json()
        assert [p["title"] for p in data["posts"]] == ["Clean one"]
        assert data["pagination"]["total"] == 1

    def test_listing_filters_by_tag_and_search(self, client, customer):
        _, headers = customer
        create_post(client, headers, title="About pills", tags=["contraception"])
        create_post(client, headers, title="About sleep", tags=["wellbeing"])

        by_tag = client.get("/api/posts", params={"tag": "contraception"}).json()["posts"]
        assert [p["title"] for p in by_tag] == ["About pills"]
        by_search = client.get("/api/posts", params={"search": "SLEEP"}).json()["posts"]
        assert [p["title"] for p in by_search] == ["About sleep"]

    def test_sort_by_votes(self, client, customer, other_customer):
        _, headers = customer
        _, other_headers = other_customer
        low = create_post(client, headers, title="Low")
        high = create_post(client, headers, title="High")
        client.post(f"/api/posts/{high['_id']}/vote", json={"vote_type": "up"}, headers=other_headers)
        client.post(f"/api/posts/{low['_id']}/vote", json={"vote_type": "down"}, headers=other_headers)

        titles = [p["title"] for p in client.get("/api/posts", params={"sort": "votes"}).json()["posts"]]
        assert titles == ["High", "Low"]


class TestEditWindow:
    def test_author_can_edit_within_window(self, client, mongo, customer):
        _, headers = customer
        post = create_post(client, headers)
        backdate(mongo, post, 10)

        response = client.put(f"/api/posts/{post['_id']}/edit", headers=headers,
                              json={"title": "Updated title", "content": "Updated content"})
        assert response.status_code == 200
        edited = response.json()["post"]
        assert edited["title"] == "Updated title"
        assert edited["edited_at"] is not None
        assert edited["status"] == "approved"

    def test_edit_after_window_is_forbidden(self, client, mongo, customer):
        _, headers = customer
        post = create_post(client, headers)
        backdate(mongo, post, 16)

        response = client.put(f"/api/posts/{post['_id']}/edit", headers=headers,
                              json={"title": "Too late", "content": "Too late"})
        assert response.status_code == 403

    def test_only_author_can_edit(self, client, customer, admin_user):
        _, headers = customer
        _, admin_headers = admin_user
        post = create_post(client, headers)

        response = client.put(f"/api/posts/{post['_id']}/edit", headers=admin_headers,
                              json={"title": "Admin edit", "content": "Admin edit"})
        assert response.status_code == 403

    def test_edit_with_banned_word_goes_back_to_review(self, client, customer):
        _, headers = customer
        post = create_post(client, headers)

        response = client.put(f"/api/posts/{post['_id']}/edit", headers=headers,
                              json={"title": "Still fine", "content": "you idiot"})
        assert response.json()["post"]["status"] == "pending"


class TestComments:
    def test_comment_counts_as_answer(self, client, customer, other_customer):
        _, headers = customer
        _, other_headers = other_customer
        post = create_post(client, headers)

        response = client.post(f"/api/posts/{post['_id']}/comments", headers=other_headers,
                               json={"content": "Talk to a doctor"})
        assert response.status_code == 201
        assert response.json()["comment"]["status"] == "approved"

        detail = client.get(f"/api/posts/{post['_id']}").json()
        assert detail["post"]["answer_count"] == 1
        assert detail["post"]["has_expert_answer"] is False

    def test_counselor_comment_is_expert_answer(self, client, customer, counselor_account):
        _, headers = customer
        _, counselor_headers = counselor_account
        post = create_post(client, headers)
        client.post(f"/api/posts/{post['_id']}/comments", headers=counselor_headers,
                    json={"content": "That is within the normal range"})

        detail = client.get(f"/api/posts/{post['_id']}").json()
        assert detail["post"]["has_expert_answer"] is True
        assert detail["comments"][0]["is_expert_comment"] is True

        expert = client.get("/api/posts", params={"type": "expert"}).json()["posts"]
        assert [p["_id"] for p in expert] == [post["_id"]]

    def test_flagged_comment_waits_for_review(self, client, customer):
        _, headers = customer
        post = create_post(client, headers)
        response = client.post(f"/api/posts/{post['_id']}/comments", headers=headers,
                               json={"content": "spam spam spam"})
        assert response.json()["comment"]["status"] == "pending"
        assert client.get(f"/api/posts/{post['_id']}").json()["post"]["answer_count"] == 0

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_comment_rejected(self, client, customer, content):
        _, headers = customer
        post = create_post(client, headers)
        response = client.post(f"/api/posts/{post['_id']}/comments", headers=headers, json={"content": content})
        assert response.status_code == 400

    def test_unknown_post_or_parent(self, client, customer):
        _, headers = customer
        missing = client.post(f"/api/posts/{ObjectId()}/comments", headers=headers, json={"content": "hi"})
        assert missing.status_code == 404

        post = create_post(client, headers)
        bad_parent = client.post(f"/api/posts/{post['_id']}/comments", headers=headers,
                                 json={"content": "hi", "parent_comment_id": str(ObjectId())})
        assert bad_parent.status_code == 404

    def test_threaded_replies(self, client, customer, other_customer):
        _, headers = customer
        _, other_headers = other_customer
        post = create_post(client, headers)
        root = client.post(f"/api/posts/{post['_id']}/comments", headers=other_headers,
                           json={"content": "Root"}).json()["comment"]
        reply = client.post(f"/api/comments/{root['_id']}/replies", headers=headers,
                            json={"content": "Reply"})
        assert reply.status_code == 201
        assert reply.json()["comment"]["post_id"] == post["_id"]

        tree = client.get(f"/api/posts/{post['_id']}/comments").json()
        assert len(tree["comments"]) == 1
        assert tree["comments"][0]["replies"][0]["content"] == "Reply"
        assert tree["pagination"]["total_comments"] == 2

        replies = client.get(f"/api/comments/{root['_id']}/replies").json()
        assert [r["content"] for r in replies] == ["Reply"]

    def test_delete_post_removes_comments(self, client, mongo, customer):
        _, headers = customer
        post = create_post(client, headers)
        client.post(f"/api/posts/{post['_id']}/comments", headers=headers, json={"content": "Mine"})

        assert client.delete(f"/api/posts/{post['_id']}", headers=headers).status_code == 200
        assert mongo["comment"].count_documents({"post_id": post["_id"]}) == 0
        assert client.get(f"/api/posts/{post['_id']}").status_code == 404


class TestVotes:
    def test_vote_replace_and_retract(self, client, customer, other_customer):
        _, headers = customer
        other, other_headers = other_customer
        post = create_post(client, headers)
        url = f"/api/posts/{post['_id']}/vote"

        stats = client.post(url, json={"vote_type": "up"}, headers=other_headers).json()["vote_stats"]
        assert stats["upvotes"] == 1

        stats = client.post(url, json={"vote_type": "down"}, headers=other_headers).json()["vote_stats"]
        assert (stats["upvotes"], stats["downvotes"], stats["display_total"]) == (0, 1, 0)

        stats = client.post(url, json={"vote_type": None}, headers=other_headers).json()["vote_stats"]
        assert (stats["upvotes"], stats["downvotes"]) == (0, 0)

        detail = client.get(f"/api/posts/{post['_id']}", params={"account_id": str(other["_id"])}).json()
        assert detail["post"]["user_vote"] is None

    def test_invalid_vote_type(self, client, customer):
        _, headers = customer
        post = create_post(client, headers)
        response = client.post(f"/api/posts/{post['_id']}/vote", json={"vote_type": "meh"}, headers=headers)
        assert response.status_code == 400

    def test_comment_vote(self, client, customer, other_customer):
        _, headers = customer
        _, other_headers = other_customer
        post = create_post(client, headers)
        comment = client.post(f"/api/posts/{post['_id']}/comments", headers=headers,
                              json={"content": "Helpful"}).json()["comment"]

        response = client.post(f"/api/comments/{comment['_id']}/vote", json={"vote_type": "up"},
                               headers=other_headers)
        assert response.json()["vote_stats"]["upvotes"] == 1

    def test_view_counter(self, client, customer):
        _, headers = customer
        post = create_post(client, headers)
        client.patch(f"/api/posts/{post['_id']}/view")
        assert client.patch(f"/api/posts/{post['_id']}/view").json()["view_count"] == 2
        assert client.patch(f"/api/posts/{ObjectId()}/view").status_code == 404


class TestOwnerUpdate:
    def test_metadata_change_at_any_age(self, client, mongo, customer):
        _, headers = customer
        post = create_post(client, headers)
        backdate(mongo, post, 60)

        response = client.patch(f"/api/posts/{post['_id']}", headers=headers, json={"category": "wellbeing"})
        assert response.status_code == 200
        assert response.json()["category"] == "wellbeing"
        assert response.json()["edited_at"] is None

    def test_content_change_after_window_is_forbidden(self, client, mongo, customer):
        _, headers = customer
        post = create_post(client, headers)
        backdate(mongo, post, 60)

        response = client.patch(f"/api/posts/{post['_id']}", headers=headers,
                                json={"title": "Buy now", "content": "total spam scam link"})
        assert response.status_code == 403
        stored = mongo["post"].find_one({"_id": ObjectId(post["_id"])})
        assert stored["content"] == "Is a 40 day cycle normal?"
        assert stored["status"] == "approved"

    def test_content_change_within_window_is_stamped(self, client, mongo, customer):
        _, headers = customer
        post = create_post(client, headers)
        backdate(mongo, post, 10)

        response = client.put(f"/api/posts/{post['_id']}", headers=headers, json={"content": "Now 35 days"})
        assert response.status_code == 200
        updated = response.json()
        assert updated["content"] == "Now 35 days"
        assert updated["title"] == "Irregular cycle"
        assert updated["edited_at"] is not None
        assert updated["status"] == "approved"

    def test_banned_content_goes_back_to_review(self, client, customer):
        _, headers = customer
        post = create_post(client, headers)

        response = client.patch(f"/api/posts/{post['_id']}", headers=headers, json={"content": "what a scam"})
        assert response.json()["status"] == "pending"
        titles = [p["title"] for p in client.get("/api/posts").json()["posts"]]
        assert titles == []

    def test_admin_may_correct_old_post_but_is_still_filtered(self, client, mongo, customer, admin_user):
        _, headers = customer
        _, admin_headers = admin_user
        post = create_post(client, headers)
        backdate(mongo, post, 60)

        response = client.patch(f"/api/posts/{post['_id']}", headers=admin_headers,
                                json={"content": "spam link removed? no, spam"})
        assert response.status_code == 200
        assert response.json()["status"] == "pending"
        assert response.json()["edited_at"] is not None

    def test_other_customer_cannot_update(self, client, customer, other_customer):
        _, headers = customer
        _, other_headers = other_customer
        post = create_post(client, headers)
        response = client.patch(f"/api/posts/{post['_id']}", headers=other_headers, json={"category": "x"})
        assert response.status_code == 403


class TestPostIdCase:
    def test_comment_through_uppercase_id_is_kept(self, client, customer, other_customer):
        _, headers = customer
        _, other_headers = other_customer
        post = create_post(client, headers)
        upper_id = post["_id"].upper()

        root = client.post(f"/api/posts/{upper_id}/comments", headers=other_headers, json={"content": "Root"})
        assert root.status_code == 201
        assert root.json()["comment"]["post_id"] == post["_id"]

        reply = client.post(f"/api/posts/{upper_id}/comments", headers=headers,
                            json={"content": "Reply", "parent_comment_id": root.json()["comment"]["_id"].upper()})
        assert reply.status_code == 201

        detail = client.get(f"/api/posts/{upper_id}").json()
        assert detail["post"]["answer_count"] == 2
        assert detail["comments"][0]["replies"][0]["content"] == "Reply"

        replies = client.get(f"/api/comments/{root.json()['comment']['_id'].upper()}/replies").json()
        assert [r["content"] for r in replies] == ["Reply"]

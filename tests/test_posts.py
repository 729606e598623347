"""
test_posts.py — Tests for the blog routes and post service.
"""

import pytest
from pymongo.errors import PyMongoError

from stacc.core.config import settings
from stacc.core.errors import PostNotFoundError, StoreUnavailableError
from stacc.services.posts import get_all_resources, get_resource

SAMPLE_POSTS = [
    {
        "post_id": "hello-world",
        "title": "hello world",
        "body": "# hello world",
        "created": "2023-01-14 18:02:11",
        "edited": None,
        "preview_image_link": "https://i.imgur.com/FgJDNsx.gif",
        "preview_summary": "First post.",
        "topic": "meta",
        "view_count": 0,
    },
    {
        "post_id": "mapping-chicago",
        "title": "mapping chicago",
        "body": "Plotting open data.",
        "created": "2023-03-02 09:41:57",
        "edited": "2023-03-05 22:10:03",
        "view_count": 7,
    },
]


@pytest.fixture()
def posts(fake_db):
    collection = fake_db[settings.posts_collection]
    collection.seed(*SAMPLE_POSTS)
    return collection


class TestPostService:
    async def test_get_all_resources_in_store_order(self, fake_db, posts):
        result = await get_all_resources(fake_db)
        assert [p.post_id for p in result] == ["hello-world", "mapping-chicago"]

    async def test_get_all_resources_skips_malformed_docs(self, fake_db, posts):
        posts.seed({"post_id": "broken"})
        result = await get_all_resources(fake_db)
        assert len(result) == 2

    async def test_get_resource_increments_and_returns_updated(self, fake_db, posts):
        post = await get_resource(fake_db, "mapping-chicago")
        assert post.view_count == 8

    async def test_get_resource_unknown_id(self, fake_db, posts):
        with pytest.raises(PostNotFoundError) as exc_info:
            await get_resource(fake_db, "missing-id")

        assert exc_info.value.status_code == 404
        assert "missing-id" in exc_info.value.message
        assert all(doc["view_count"] in (0, 7) for doc in posts.docs)

    async def test_disconnected_store(self):
        with pytest.raises(StoreUnavailableError):
            await get_all_resources(None)

    async def test_query_failure_is_store_unavailable(self, fake_db, posts):
        posts.fail_with = PyMongoError("not primary")
        with pytest.raises(StoreUnavailableError) as exc_info:
            await get_resource(fake_db, "hello-world")
        assert isinstance(exc_info.value.cause, PyMongoError)


class TestPostRoutes:
    async def test_all_posts_newest_first(self, db_client, posts):
        response = await db_client.get("/blog/posts")
        assert response.status_code == 200

        ids = [p["post_id"] for p in response.json()["posts"]]
        assert ids == ["mapping-chicago", "hello-world"]

    async def test_all_posts_records_visit(self, db_client, fake_db, posts):
        await db_client.get("/blog/posts", headers={"X-Forwarded-For": "8.8.8.8"})
        await db_client.get("/blog/posts", headers={"X-Forwarded-For": "8.8.8.8"})

        [visitor] = fake_db[settings.visitors_collection].docs
        assert visitor["ip_address"] == "8.8.8.8"
        assert visitor["refresh_count"] == 2

    async def test_single_post_counts_one_view(self, db_client, fake_db, posts):
        response = await db_client.get("/blog/post/hello-world")
        assert response.status_code == 200
        assert response.json()["view_count"] == 1

        stored = next(d for d in posts.docs if d["post_id"] == "hello-world")
        assert stored["view_count"] == 1

    async def test_single_post_bumps_visited_posts(self, db_client, fake_db, posts):
        headers = {"X-Forwarded-For": "8.8.8.8"}
        await db_client.get("/blog/post/hello-world", headers=headers)
        await db_client.get("/blog/post/hello-world", headers=headers)

        [visitor] = fake_db[settings.visitors_collection].docs
        assert visitor["refresh_count"] == 2
        assert visitor["visited_posts"] == {"hello-world": 2}

    async def test_missing_post_returns_404_envelope(self, db_client, posts):
        response = await db_client.get("/blog/post/missing-id")

        assert response.status_code == 404
        body = response.json()
        assert body["status_code"] == 404
        assert "missing-id" in body["message"]

    async def test_missing_post_still_records_visit(self, db_client, fake_db, posts):
        response = await db_client.get("/blog/post/missing-id", headers={"X-Forwarded-For": "1.2.3.4"})
        assert response.status_code == 404

        [visitor] = fake_db[settings.visitors_collection].docs
        assert visitor["ip_address"] == "1.2.3.4"
        assert visitor["refresh_count"] == 1
        assert visitor["visited_posts"] == {}

    async def test_store_failure_still_records_visit(self, db_client, fake_db, posts):
        posts.fail_with = PyMongoError("not primary")

        response = await db_client.get("/blog/post/hello-world", headers={"X-Forwarded-For": "1.2.3.4"})

        assert response.status_code == 500
        [visitor] = fake_db[settings.visitors_collection].docs
        assert visitor["refresh_count"] == 1

    async def test_api_prefix_serves_same_routes(self, db_client, posts):
        response = await db_client.get("/api/blog/post/mapping-chicago")
        assert response.status_code == 200
        assert response.json()["view_count"] == 8

    async def test_disconnected_store_returns_500_envelope(self, client):
        response = await client.get("/blog/posts")

        assert response.status_code == 500
        assert response.json() == {
            "message": StoreUnavailableError.public_message,
            "status_code": 500,
        }

"""
Natours API — Sanitization Stage Tests
=======================================

What we test:
    ✅ Duplicate query params collapse to the first unless whitelisted
    ✅ The router's own query_params view sees the sanitized query
    ✅ Operator keys and markup are neutralized in JSON and form bodies
    ✅ Routers reading the stream get the sanitized body
    ✅ Path params are escaped and the matched route is recorded
"""

import pytest


class TestQuerySanitization:
    @pytest.mark.asyncio
    async def test_non_whitelisted_duplicates_keep_first(self, client):
        response = await client.get("/api/v1/tours?difficulty=easy&difficulty=hard")
        body = response.json()
        assert body["query"] == {"difficulty": "easy"}
        assert body["query_params"] == {"difficulty": "easy"}

    @pytest.mark.asyncio
    async def test_whitelisted_duplicates_kept(self, client):
        response = await client.get("/api/v1/tours?price=397&price=997&sort=price&sort=duration")
        assert response.json()["query"] == {"price": ["397", "997"], "sort": "price"}

    @pytest.mark.asyncio
    async def test_custom_whitelist(self, make_app, make_client):
        app = make_app(parameter_whitelist="difficulty")
        async with make_client(app) as c:
            response = await c.get("/api/v1/tours?difficulty=easy&difficulty=hard")
        assert response.json()["query"] == {"difficulty": ["easy", "hard"]}

    @pytest.mark.asyncio
    async def test_operator_keys_and_markup(self, client):
        response = await client.get(
            "/api/v1/tours", params={"price[$gte]": "0", "name": "<script>x</script>"}
        )
        assert response.json()["query"] == {"name": "&lt;script&gt;x&lt;/script&gt;"}


class TestBodySanitization:
    @pytest.mark.asyncio
    async def test_json_body(self, client):
        response = await client.post(
            "/api/v1/tours",
            json={
                "email": {"$gt": ""},
                "name": '<img src=x onerror="alert(1)">',
                "price": 497,
            },
        )
        assert response.json()["data"] == {
            "email": {},
            "name": "&lt;img src=x onerror=&#34;alert(1)&#34;&gt;",
            "price": 497,
        }

    @pytest.mark.asyncio
    async def test_stream_reader_sees_sanitized_body(self, client):
        response = await client.post("/api/v1/tours/raw", json={"$where": "1", "name": "<b>x</b>"})
        assert response.status_code == 200
        assert response.json()["data"] == {"name": "&lt;b&gt;x&lt;/b&gt;"}

    @pytest.mark.asyncio
    async def test_form_body_collapses_duplicates(self, client):
        response = await client.post(
            "/api/v1/tours",
            content=b"difficulty=easy&difficulty=hard&price=1&price=2",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        assert response.json()["data"] == {"difficulty": "easy", "price": ["1", "2"]}


class TestPathParams:
    @pytest.mark.asyncio
    async def test_path_param_escaped(self, client):
        response = await client.get("/api/v1/tours/%3Cb%3E")
        assert response.json()["id"] == "&lt;b&gt;"

    @pytest.mark.asyncio
    async def test_matched_route_recorded(self, client):
        response = await client.get("/api/v1/tours/5c88fa8cf4afda39709c2955")
        assert response.json()["matched_route"] == "/api/v1/tours/{tour_id}"

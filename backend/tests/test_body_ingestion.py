"""
Natours API — Body Ingestion Tests
===================================

What we test:
    ✅ Webhook body reaches the handler byte-for-byte, whatever it contains
    ✅ Webhook body is not subject to the 10 KB structured limit
    ✅ JSON and url-encoded bodies are decoded for every other route
    ✅ Bodies over 10 KB are rejected with 413 before any router runs
    ✅ Malformed / scalar JSON is a 400
    ✅ Unparsed media types pass through untouched
"""

import json

import pytest

from natours.exceptions import BadRequestError
from natours.middleware.body import BodyParserMiddleware


class TestWebhookRawBody:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            b'{"type":"checkout.session.completed","data":{"object":{"id":"cs_1"}}}',
            b'{ "spaced" :  "keys",\n  "order": [3, 1, 2] }\n',
            b'{"$where": "<script>alert(1)</script>"}',
            b"not even json \x00\xff",
            b"",
        ],
    )
    async def test_body_is_byte_identical(self, client, received_webhooks, payload):
        response = await client.post(
            "/webhook-checkout",
            content=payload,
            headers={"Content-Type": "application/json", "Stripe-Signature": "t=1,v1=abc"},
        )
        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert received_webhooks == [payload]

    @pytest.mark.asyncio
    async def test_larger_than_structured_limit_accepted(self, client, received_webhooks):
        payload = json.dumps({"blob": "x" * 50_000}).encode()
        response = await client.post(
            "/webhook-checkout", content=payload, headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 200
        assert received_webhooks == [payload]

    @pytest.mark.asyncio
    async def test_over_webhook_limit_rejected(self, client, received_webhooks):
        payload = b"x" * (100 * 1024 + 1)
        response = await client.post(
            "/webhook-checkout", content=payload, headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 413
        assert received_webhooks == []

    @pytest.mark.asyncio
    async def test_other_media_type_not_captured(self, client, received_webhooks):
        response = await client.post(
            "/webhook-checkout", content=b"a=1", headers={"Content-Type": "text/plain"}
        )
        assert response.status_code == 415
        assert received_webhooks == []

    @pytest.mark.asyncio
    async def test_unconfigured_webhook(self, make_client):
        from natours.config import Settings
        from natours.main import create_app

        app = create_app(Settings(node_env="production"))
        async with make_client(app) as c:
            response = await c.post(
                "/webhook-checkout", content=b"{}", headers={"Content-Type": "application/json"}
            )
        assert response.status_code == 501
        assert response.json()["status"] == "error"


class TestStructuredBody:
    @pytest.mark.asyncio
    async def test_json_decoded(self, client):
        response = await client.post("/api/v1/tours", json={"name": "The Sea Explorer", "price": 497})
        assert response.status_code == 200
        assert response.json()["data"] == {"name": "The Sea Explorer", "price": 497}

    @pytest.mark.asyncio
    async def test_json_array_decoded(self, client):
        response = await client.post("/api/v1/tours", json=[1, 2, 3])
        assert response.json()["data"] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_urlencoded_decoded(self, client):
        response = await client.post(
            "/api/v1/tours", data={"name": "The Snow Adventurer", "duration": "4"}
        )
        assert response.json()["data"] == {"name": "The Snow Adventurer", "duration": "4"}

    @pytest.mark.asyncio
    async def test_no_body_is_empty_mapping(self, client):
        response = await client.post("/api/v1/tours")
        assert response.json()["data"] == {}

    @pytest.mark.asyncio
    async def test_over_limit_rejected(self, client):
        response = await client.post("/api/v1/tours", json={"description": "x" * 11_000})
        assert response.status_code == 413
        assert response.json() == {"status": "fail", "message": "Request entity too large"}

    @pytest.mark.asyncio
    async def test_urlencoded_over_limit_rejected(self, client):
        response = await client.post("/api/v1/tours", data={"description": "x" * 11_000})
        assert response.status_code == 413

    @pytest.mark.asyncio
    async def test_exactly_at_limit_accepted(self, client):
        padding = 10 * 1024 - len(json.dumps({"d": ""}))
        body = json.dumps({"d": "x" * padding}).encode()
        assert len(body) == 10 * 1024
        response = await client.post(
            "/api/v1/tours", content=body, headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_malformed_json(self, client):
        response = await client.post(
            "/api/v1/tours", content=b'{"name": ', headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json() == {"status": "fail", "message": "Invalid JSON payload"}

    @pytest.mark.asyncio
    async def test_webhook_get_goes_through_generic_parser(self, client):
        response = await client.request(
            "GET",
            "/webhook-checkout",
            content=b'{"a": ',
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_other_media_type_left_alone(self, client):
        response = await client.post(
            "/api/v1/tours", content=b"x" * 20_000, headers={"Content-Type": "text/plain"}
        )
        assert response.status_code == 200
        assert response.json()["data"] == {}


class TestDecoders:
    def test_scalar_json_rejected(self):
        with pytest.raises(BadRequestError, match="object or an array"):
            BodyParserMiddleware.decode_json(b'"just a string"')

    def test_blank_json_is_empty(self):
        assert BodyParserMiddleware.decode_json(b"  ") == {}

    def test_form_repeats_become_lists(self):
        assert BodyParserMiddleware.decode_form(b"price=1&price=2&name=a") == {
            "price": ["1", "2"],
            "name": "a",
        }

    def test_form_invalid_utf8(self):
        with pytest.raises(BadRequestError):
            BodyParserMiddleware.decode_form(b"\xff\xfe")

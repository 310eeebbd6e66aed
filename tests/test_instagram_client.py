import asyncio
import json
import os
import sys
import unittest
import urllib.parse

import httpx

THIS_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(THIS_DIR)
for _path in (PROJECT_ROOT, THIS_DIR):
    if _path not in sys.path:
        sys.path.insert(0, _path)

from _fakes import MemoryKeyring, ScriptedSurface

from instagram_api.client import HTTPMethod, InstagramClient, RequestDescriptor, RequestPipeline
from instagram_api.config import ClientConfig
from instagram_api.errors import ErrorKind, InstagramError
from instagram_api.response import decode_envelope
from instagram_api.token_store import CredentialStore


class TestRequestDescriptor(unittest.TestCase):
    def test_absent_parameters_are_omitted(self):
        descriptor = RequestDescriptor.build("/users/self/media/recent", max_id="9", count=None)
        self.assertEqual(descriptor.encode_parameters(), "max_id=9")
        self.assertEqual(descriptor.parameters, {"max_id": "9"})

    def test_values_are_stringified(self):
        descriptor = RequestDescriptor.build("/media/search", lat=48.858, lng=2.294, distance=500)
        self.assertEqual(descriptor.parameters, {"lat": "48.858", "lng": "2.294", "distance": "500"})

    def test_zero_is_a_value_not_absence(self):
        self.assertEqual(RequestDescriptor.build("/x", count=0).encode_parameters(), "count=0")

    def test_access_token_parameter_rejected(self):
        with self.assertRaises(ValueError):
            RequestDescriptor.build("/x", access_token="nope")

    def test_method_accepts_plain_string(self):
        self.assertIs(RequestDescriptor.build("/x", "POST").method, HTTPMethod.POST)


class TestEnvelopeDecoding(unittest.TestCase):
    def test_pagination_is_exposed(self):
        envelope = decode_envelope(
            b'{"data": [], "meta": {"code": 200}, "pagination": {"next_url": "https://n", "next_max_id": "42"}}'
        )
        self.assertTrue(envelope.has_data)
        self.assertEqual(envelope.pagination.next_max_id, "42")
        self.assertEqual(envelope.pagination.next_url, "https://n")

    def test_error_fields(self):
        envelope = decode_envelope(
            '{"meta": {"code": 400, "error_type": "OAuthAccessTokenException", "error_message": "The access_token provided is invalid."}}'
        )
        self.assertFalse(envelope.has_data)
        self.assertEqual(envelope.meta.error_type, "OAuthAccessTokenException")

    def test_shape_violations(self):
        for body in (b"[]", b'{"data": {}}', b'{"meta": {"code": "200"}}', b'{"meta": {"code": 200}, "pagination": 3}'):
            with self.assertRaises(InstagramError) as ctx:
                decode_envelope(body)
            self.assertEqual(ctx.exception.kind, ErrorKind.DECODING)


class _PipelineTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.requests = []
        self.responses = []
        self.store = CredentialStore(service="instagram_api_test", backend=MemoryKeyring())
        self.store.store("TOKEN")
        self.client = InstagramClient(
            ClientConfig(client_id="abc", redirect_uri="https://example.com/cb"),
            credential_store=self.store,
            transport=httpx.MockTransport(self._handle),
        )

    async def asyncTearDown(self):
        await self.client.aclose()

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, httpx.Response):
            return response
        return httpx.Response(200, content=json.dumps(response).encode("utf-8"))

    def reply(self, *responses):
        self.responses.extend(responses)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]


class TestRequestPipeline(_PipelineTestCase):
    async def test_success_returns_data(self):
        self.reply({"data": {"id": "1"}, "meta": {"code": 200}})
        data = await self.client.call(RequestDescriptor.build("/users/self"))
        self.assertEqual(data, {"id": "1"})

    async def test_error_message_rejects_with_invalid_request(self):
        self.reply(httpx.Response(400, json={"meta": {"code": 400, "error_type": "APINotFoundError", "error_message": "Bad"}}))
        with self.assertRaises(InstagramError) as ctx:
            await self.client.call(RequestDescriptor.build("/users/self"))
        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_REQUEST)
        self.assertEqual(ctx.exception.message, "Bad")
        self.assertEqual(ctx.exception.code, 400)
        self.assertEqual(ctx.exception.error_type, "APINotFoundError")

    async def test_malformed_json_rejects_with_decoding(self):
        self.reply(httpx.Response(200, content=b"{not json"))
        with self.assertRaises(InstagramError) as ctx:
            await self.client.call(RequestDescriptor.build("/users/self"))
        self.assertEqual(ctx.exception.kind, ErrorKind.DECODING)

    async def test_missing_data_without_error_rejects_with_decoding(self):
        self.reply({"meta": {"code": 200}})
        with self.assertRaises(InstagramError) as ctx:
            await self.client.call(RequestDescriptor.build("/users/self"))
        self.assertEqual(ctx.exception.kind, ErrorKind.DECODING)

    async def test_empty_list_is_valid_data(self):
        self.reply({"data": [], "meta": {"code": 200}})
        self.assertEqual(await self.client.call(RequestDescriptor.build("/users/self/follows")), [])

    async def test_transport_failure(self):
        cause = httpx.ConnectError("name resolution failed")
        self.reply(cause)
        with self.assertRaises(InstagramError) as ctx:
            await self.client.call(RequestDescriptor.build("/users/self"))
        self.assertEqual(ctx.exception.kind, ErrorKind.TRANSPORT)
        self.assertIs(ctx.exception.__cause__, cause)

    async def test_undecodable_body_rejects_with_decoding(self):
        cause = httpx.DecodingError("incorrect header check")
        self.reply(cause)
        with self.assertRaises(InstagramError) as ctx:
            await self.client.call(RequestDescriptor.build("/users/self"))
        self.assertEqual(ctx.exception.kind, ErrorKind.DECODING)
        self.assertIs(ctx.exception.__cause__, cause)

    async def test_other_request_errors_map_to_transport(self):
        cause = httpx.TooManyRedirects("Exceeded maximum allowed redirects.")
        self.reply(cause)
        with self.assertRaises(InstagramError) as ctx:
            await self.client.call(RequestDescriptor.build("/users/self"))
        self.assertEqual(ctx.exception.kind, ErrorKind.TRANSPORT)
        self.assertIs(ctx.exception.__cause__, cause)

    async def test_get_puts_token_and_parameters_in_query(self):
        self.reply({"data": [], "meta": {"code": 200}})
        await self.client.call(RequestDescriptor.build("/users/self/media/recent", max_id="9", count=None))

        request = self.last_request
        self.assertEqual(request.method, "GET")
        self.assertEqual(request.url.path, "/v1/users/self/media/recent")
        self.assertEqual(request.url.host, "api.instagram.com")
        self.assertEqual(list(request.url.params.multi_items()), [("access_token", "TOKEN"), ("max_id", "9")])

    async def test_post_sends_parameters_in_body_and_token_in_query(self):
        self.reply({"data": {"id": "c1", "text": "hi there"}, "meta": {"code": 200}})
        await self.client.call(RequestDescriptor.build("/media/m1/comments", HTTPMethod.POST, text="hi there"))

        request = self.last_request
        self.assertEqual(request.method, "POST")
        self.assertEqual(list(request.url.params.multi_items()), [("access_token", "TOKEN")])
        body = urllib.parse.parse_qs(request.content.decode("utf-8"))
        self.assertEqual(body, {"text": ["hi there"]})
        self.assertNotIn("access_token", body)

    async def test_delete_puts_everything_in_query(self):
        self.reply({"data": None, "meta": {"code": 200}})
        await self.client.call(RequestDescriptor.build("/media/m1/likes", HTTPMethod.DELETE, expects_data=False))

        request = self.last_request
        self.assertEqual(request.method, "DELETE")
        self.assertEqual(request.url.params["access_token"], "TOKEN")
        self.assertEqual(request.content, b"")

    async def test_missing_token_sends_empty_value(self):
        self.store.delete()
        self.reply({"data": [{"name": "cats"}], "meta": {"code": 200}})
        await self.client.call(RequestDescriptor.build("/tags/search", q="cats"))
        self.assertEqual(self.last_request.url.params["access_token"], "")

    async def test_token_is_read_fresh_per_call(self):
        self.reply({"data": {}, "meta": {"code": 200}}, {"data": {}, "meta": {"code": 200}})
        await self.client.call(RequestDescriptor.build("/users/self"))
        self.store.store("ROTATED")
        await self.client.call(RequestDescriptor.build("/users/self"))
        self.assertEqual([r.url.params["access_token"] for r in self.requests], ["TOKEN", "ROTATED"])

    async def test_concurrent_calls(self):
        self.reply({"data": {"id": "1"}, "meta": {"code": 200}}, {"data": {"id": "2"}, "meta": {"code": 200}})
        results = await asyncio.gather(
            self.client.call(RequestDescriptor.build("/users/1")),
            self.client.call(RequestDescriptor.build("/users/2")),
        )
        self.assertEqual(sorted(r["id"] for r in results), ["1", "2"])

    async def test_call_envelope_exposes_pagination(self):
        self.reply({"data": [{"id": "m"}], "meta": {"code": 200}, "pagination": {"next_max_id": "77"}})
        envelope = await self.client.call_envelope(RequestDescriptor.build("/users/self/media/recent"))
        self.assertEqual(envelope.pagination.next_max_id, "77")
        self.assertEqual(envelope.data, [{"id": "m"}])


class TestEndpoints(_PipelineTestCase):
    async def test_recent_media_omits_absent_parameters(self):
        self.reply({"data": [], "meta": {"code": 200}})
        await self.client.recent_media("self", count=5)
        self.assertEqual(dict(self.last_request.url.params), {"access_token": "TOKEN", "count": "5"})

    async def test_follow_posts_action(self):
        self.reply({"data": {"outgoing_status": "follows"}, "meta": {"code": 200}})
        data = await self.client.follow("1234")
        self.assertEqual(data["outgoing_status"], "follows")
        self.assertEqual(self.last_request.url.path, "/v1/users/1234/relationship")
        self.assertEqual(self.last_request.content, b"action=follow")

    async def test_like_and_unlike_return_none(self):
        self.reply({"data": None, "meta": {"code": 200}}, {"meta": {"code": 200}})
        self.assertIsNone(await self.client.like("m1"))
        self.assertEqual(self.requests[-1].method, "POST")
        self.assertIsNone(await self.client.unlike("m1"))
        self.assertEqual(self.requests[-1].method, "DELETE")

    async def test_delete_comment_path(self):
        self.reply({"data": None, "meta": {"code": 200}})
        await self.client.delete_comment("c9", "m1")
        self.assertEqual(self.last_request.url.path, "/v1/media/m1/comments/c9")

    async def test_tag_name_is_path_escaped(self):
        self.reply({"data": {"name": "a/b"}, "meta": {"code": 200}})
        await self.client.tag("a/b")
        self.assertEqual(self.last_request.url.raw_path.split(b"?")[0], b"/v1/tags/a%2Fb")

    async def test_search_locations(self):
        self.reply({"data": [], "meta": {"code": 200}})
        await self.client.search_locations(facebook_places_id="fb1")
        self.assertEqual(self.last_request.url.params["facebook_places_id"], "fb1")
        self.assertNotIn("lat", self.last_request.url.params)

    async def test_login_defaults_to_basic_scope(self):
        surface = ScriptedSurface()
        client = InstagramClient(
            ClientConfig(client_id="abc", redirect_uri="https://example.com/cb"),
            credential_store=self.store,
            surface_factory=lambda: surface,
        )
        task = asyncio.ensure_future(client.login())
        await asyncio.sleep(0)
        self.assertTrue(surface.presented_url.endswith("scope=basic"))
        surface.observer.on_navigation_requested("https://example.com/cb#access_token=NEWTOKEN")
        await task
        self.assertEqual(self.store.retrieve(), "NEWTOKEN")


class TestPipelineConstruction(unittest.TestCase):
    def test_base_url_follows_config_host(self):
        client = InstagramClient({"instagram_api_host": "api.example.test", "instagram_request_timeout": 5})
        self.assertEqual(client.pipeline.base_url, "https://api.example.test/v1")
        self.assertEqual(client.pipeline.timeout, 5.0)

    def test_pipeline_defaults(self):
        pipeline = RequestPipeline(CredentialStore(backend=MemoryKeyring()))
        self.assertEqual(pipeline.base_url, "https://api.instagram.com/v1")
        self.assertEqual(pipeline.timeout, 30.0)


if __name__ == "__main__":
    unittest.main(verbosity=2)

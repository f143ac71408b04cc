from __future__ import annotations

import asyncio

import httpx
import pytest
from sample_pages import FakeWeb

from congreso_ar.errors import DisallowedHost, NetworkError
from congreso_ar.fetcher import USER_AGENT, HtmlFetcher

HOSTS = ("diputados.gov.ar",)
URL = "https://www.diputados.gov.ar/diputados/"


class TestFetch:
    def test_returns_body(self, web: FakeWeb) -> None:
        web.add(URL, "<html>ok</html>")
        assert asyncio.run(web.fetcher(HOSTS).fetch(URL)) == "<html>ok</html>"

    def test_disallowed_host_never_hits_network(self, web: FakeWeb) -> None:
        with pytest.raises(DisallowedHost):
            asyncio.run(web.fetcher(HOSTS).fetch("https://evil.example.com/"))
        assert web.requests == []

    def test_retries_then_raises(self, web: FakeWeb) -> None:
        web.add(URL, "busy", status=503)
        with pytest.raises(NetworkError) as excinfo:
            asyncio.run(web.fetcher(HOSTS, max_retries=2).fetch(URL))
        assert web.hits(URL) == 3
        assert "HTTP 503" in str(excinfo.value)

    def test_timeout_is_retryable(self, web: FakeWeb) -> None:
        attempts = {"n": 0}

        def flaky(request: httpx.Request) -> httpx.Response:
            attempts["n"] += 1
            if attempts["n"] == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, text="second try")

        web.handle(URL, flaky)
        assert asyncio.run(web.fetcher(HOSTS, max_retries=1).fetch(URL)) == "second try"
        assert attempts["n"] == 2

    def test_trickling_body_is_cut_off_by_attempt_timeout(self, web: FakeWeb) -> None:
        async def trickle():
            for _ in range(20):
                await asyncio.sleep(0.1)
                yield b"x"

        web.handle(URL, lambda request: httpx.Response(200, content=trickle()))
        fetcher = web.fetcher(HOSTS, max_retries=1, timeout_seconds=0.3)

        async def _timed() -> float:
            loop = asyncio.get_running_loop()
            started = loop.time()
            with pytest.raises(NetworkError) as excinfo:
                await fetcher.fetch(URL)
            assert "timed out" in str(excinfo.value)
            return loop.time() - started

        # Two capped attempts, far less than the 2s the body would take.
        assert asyncio.run(_timed()) < 1.5
        assert web.hits(URL) == 2

    def test_connection_failure_raises_network_error(self, web: FakeWeb) -> None:
        web.fail(URL, httpx.ConnectError)
        with pytest.raises(NetworkError):
            asyncio.run(web.fetcher(HOSTS, max_retries=1).fetch(URL))
        assert web.hits(URL) == 2

    def test_sends_user_agent_and_no_cookies(self, web: FakeWeb) -> None:
        seen: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text="ok", headers={"Set-Cookie": "session=abc; Path=/"})

        web.handle(URL, record)
        fetcher = web.fetcher(HOSTS)

        async def _twice() -> None:
            await fetcher.fetch(URL)
            await fetcher.fetch(URL)

        asyncio.run(_twice())
        assert seen[0].headers["User-Agent"] == USER_AGENT
        assert "cookie" not in seen[1].headers

    def test_redirect_within_allow_list_followed(self, web: FakeWeb) -> None:
        target = "https://diputados.gov.ar/diputados/nuevo/"
        web.add(URL, status=301, headers={"Location": target})
        web.add(target, "moved")
        assert asyncio.run(web.fetcher(HOSTS).fetch(URL)) == "moved"

    def test_redirect_off_site_rejected(self, web: FakeWeb) -> None:
        web.add(URL, status=302, headers={"Location": "https://evil.example.com/"})
        with pytest.raises(DisallowedHost):
            asyncio.run(web.fetcher(HOSTS).fetch(URL))
        assert web.hits("https://evil.example.com/") == 0


class TestProbe:
    PHOTO = "https://www.diputados.gov.ar/img/aperez_medium.jpg"

    def test_head_success(self, web: FakeWeb) -> None:
        web.add(self.PHOTO)
        assert asyncio.run(web.fetcher(HOSTS).probe(self.PHOTO)) is True
        assert web.requests == [("HEAD", self.PHOTO)]

    def test_falls_back_to_get_when_head_refused(self, web: FakeWeb) -> None:
        def head_refused(request: httpx.Request) -> httpx.Response:
            return httpx.Response(405 if request.method == "HEAD" else 200)

        web.handle(self.PHOTO, head_refused)
        assert asyncio.run(web.fetcher(HOSTS).probe(self.PHOTO)) is True
        assert [m for m, _ in web.requests] == ["HEAD", "GET"]

    def test_missing_is_false(self, web: FakeWeb) -> None:
        assert asyncio.run(web.fetcher(HOSTS).probe(self.PHOTO)) is False

    def test_disallowed_or_empty_is_false_without_request(self, web: FakeWeb) -> None:
        fetcher = web.fetcher(HOSTS)
        assert asyncio.run(fetcher.probe("https://evil.example.com/x.jpg")) is False
        assert asyncio.run(fetcher.probe("")) is False
        assert web.requests == []

    def test_transport_error_is_false(self, web: FakeWeb) -> None:
        web.fail(self.PHOTO)
        assert asyncio.run(web.fetcher(HOSTS).probe(self.PHOTO)) is False


class TestClientOwnership:
    def test_injected_client_closed_by_its_owner(self, web: FakeWeb) -> None:
        fetcher = web.fetcher(HOSTS)
        asyncio.run(fetcher.aclose())
        assert not fetcher.client.is_closed
        web.close()
        assert fetcher.client.is_closed

    def test_own_client_closed_on_exit(self) -> None:
        async def _run() -> HtmlFetcher:
            async with HtmlFetcher(HOSTS) as fetcher:
                pass
            return fetcher

        assert asyncio.run(_run()).client.is_closed

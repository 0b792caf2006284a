"""Tests for the WordPress REST API client."""

import json
from pathlib import Path
from typing import Any

import aiohttp
import pytest

import drupal2wp.core.wordpress as wordpress_module
from drupal2wp.core.mapping_service import MappingService
from drupal2wp.core.media import MediaResolver
from drupal2wp.core.wordpress import WordPressClient
from drupal2wp.exceptions import (
    TargetNotFoundError,
    TargetRequestError,
    TargetUnavailableError,
)
from drupal2wp.models.db.mapping import Family
from drupal2wp.models.source import AttachedFile


class FakeResponse:
    """Minimal aiohttp response used as an async context manager."""

    def __init__(self, status: int, payload: Any = None) -> None:
        self.status = status
        self.headers: dict[str, str] = {}
        self._body = "" if payload is None else json.dumps(payload)

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None

    async def text(self) -> str:
        return self._body

    async def json(self, content_type: str | None = None) -> Any:
        return json.loads(self._body) if self._body else None


class FakeSession:
    """Session replaying canned responses and recording requests."""

    def __init__(self, *responses: FakeResponse | Exception) -> None:
        self.responses = list(responses)
        self.requests: list[tuple[str, str, dict[str, Any]]] = []
        self.closed = False

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.requests.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def wp() -> WordPressClient:
    """Client pointed at a fake site."""
    return WordPressClient("https://wp.example/", "editor", "app-password")


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    """Retries do not wait."""

    async def instant(_seconds: float) -> None:
        return None

    monkeypatch.setattr(wordpress_module.asyncio, "sleep", instant)


@pytest.mark.asyncio
async def test_request_decodes_json_and_builds_urls(wp: WordPressClient) -> None:
    """Paths are resolved below the REST prefix."""
    session = FakeSession(FakeResponse(200, {"id": 5}))
    wp._session = session

    result = await wp._request("GET", "/posts/5", params={"context": "edit"})

    assert result == {"id": 5}
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("GET", "https://wp.example/wp-json/wp/v2/posts/5")
    assert kwargs["params"] == {"context": "edit"}


@pytest.mark.asyncio
async def test_error_statuses_map_to_exceptions(wp: WordPressClient) -> None:
    """404 is not found, other 4xx keep their status and body."""
    body = {"code": "term_exists", "data": {"term_id": 3}}
    wp._session = FakeSession(
        FakeResponse(404, {"code": "rest_post_invalid_id"}),
        FakeResponse(400, body),
        FakeResponse(204),
    )

    with pytest.raises(TargetNotFoundError) as not_found:
        await wp._request("GET", "/posts/1")
    with pytest.raises(TargetRequestError) as bad_request:
        await wp._request("POST", "/tags", json={"name": "x"})

    assert not_found.value.status == 404
    assert bad_request.value.status == 400
    assert json.loads(bad_request.value.body) == body
    assert await wp._request("DELETE", "/tags/3") is None


@pytest.mark.asyncio
async def test_gateway_errors_are_retried(wp: WordPressClient) -> None:
    """A 503 is retried and the next success is returned."""
    session = FakeSession(FakeResponse(503), FakeResponse(200, [{"id": 1}]))
    wp._session = session

    assert await wp._request("GET", "/tags") == [{"id": 1}]
    assert len(session.requests) == 2


@pytest.mark.asyncio
async def test_retries_give_up(wp: WordPressClient) -> None:
    """After the last retry the request fails."""
    session = FakeSession(*(FakeResponse(502) for _ in range(5)))
    wp._session = session

    with pytest.raises(TargetRequestError):
        await wp._request("GET", "/tags")
    assert len(session.requests) == WordPressClient.MAX_RETRIES


@pytest.mark.asyncio
async def test_paginate_stops_on_short_page(
    wp: WordPressClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Full pages are followed until a short page is returned."""
    pages: list[int] = []

    async def fake_request(method: str, path: str, **kwargs: Any) -> Any:
        page = kwargs["params"]["page"]
        pages.append(page)
        size = WordPressClient.PER_PAGE if page == 1 else 2
        return [{"id": page * 1000 + i, "name": f"t{i}"} for i in range(size)]

    monkeypatch.setattr(wp, "_request", fake_request)

    tags = await wp.get_tags()

    assert pages == [1, 2]
    assert len(tags) == WordPressClient.PER_PAGE + 2


@pytest.mark.asyncio
async def test_ping_failure_is_fatal(
    wp: WordPressClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Rejected credentials make the site unusable."""

    async def fake_request(method: str, path: str, **kwargs: Any) -> Any:
        raise TargetRequestError("unauthorized", status=401)

    monkeypatch.setattr(wp, "_request", fake_request)

    with pytest.raises(TargetUnavailableError):
        await wp.ping()


@pytest.mark.asyncio
async def test_upload_media_sends_file_then_title(
    wp: WordPressClient, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    """The raw file is posted first and its title set afterwards."""
    calls: list[tuple[str, str, dict[str, Any]]] = []

    async def fake_request(method: str, path: str, **kwargs: Any) -> Any:
        calls.append((method, path, kwargs))
        return {
            "id": 9,
            "source_url": "https://wp.example/wp-content/uploads/foto.jpg",
            "title": {"rendered": kwargs.get("json", {}).get("title", "foto")},
            "media_details": {"width": 640, "height": 480},
        }

    monkeypatch.setattr(wp, "_request", fake_request)
    path = tmp_path / "foto año.jpg"
    path.write_bytes(b"jpeg")

    media = await wp.upload_media(path, title="Foto")

    upload, update = calls
    assert upload[:2] == ("POST", "/media")
    assert upload[2]["data"] == b"jpeg"
    assert upload[2]["headers"]["Content-Type"] == "image/jpeg"
    assert upload[2]["headers"]["Content-Disposition"] == (
        "attachment; filename*=UTF-8''foto%20a%C3%B1o.jpg"
    )
    assert update[:2] == ("POST", "/media/9")
    assert update[2]["json"] == {"title": "Foto"}
    assert (media.title, media.width) == ("Foto", 640)


@pytest.mark.asyncio
async def test_close_closes_the_session(wp: WordPressClient) -> None:
    """Closing the client closes its HTTP session."""
    session = FakeSession()
    wp._session = session

    await wp.close()

    assert session.closed


@pytest.mark.asyncio
async def test_get_post_prefers_raw_content(wp: WordPressClient) -> None:
    """Posts are read in edit context so the raw body is returned."""
    session = FakeSession(
        FakeResponse(
            200,
            {
                "id": 300,
                "type": "page",
                "title": {"raw": "Quiénes somos", "rendered": "Qui&eacute;nes"},
                "content": {"raw": "<p>[node:12]</p>", "rendered": "<p></p>"},
            },
        )
    )
    wp._session = session

    post = await wp.get_post(300, resource="pages")

    _, url, kwargs = session.requests[0]
    assert url.endswith("/wp-json/wp/v2/pages/300")
    assert kwargs["params"] == {"context": "edit"}
    assert (post.title, post.content) == ("Quiénes somos", "<p>[node:12]</p>")


@pytest.mark.asyncio
async def test_create_is_not_resent_after_gateway_error(wp: WordPressClient) -> None:
    """A POST answered by a gateway error fails instead of being sent again."""
    session = FakeSession(FakeResponse(503), FakeResponse(201, {"id": 9}))
    wp._session = session

    with pytest.raises(TargetRequestError) as exc_info:
        await wp.create_post({"title": "Nota"})

    assert exc_info.value.status == 503
    assert [(m, u.rsplit("/", 1)[-1]) for m, u, _ in session.requests] == [
        ("POST", "posts")
    ]


@pytest.mark.asyncio
async def test_create_is_not_resent_after_dropped_connection(
    wp: WordPressClient,
) -> None:
    """A POST whose connection drops fails instead of being sent again."""
    session = FakeSession(
        aiohttp.ClientConnectionError("reset"), FakeResponse(201, {"id": 4})
    )
    wp._session = session

    with pytest.raises(TargetRequestError):
        await wp.create_tag("Fútbol")

    assert len(session.requests) == 1


@pytest.mark.asyncio
async def test_throttled_create_is_retried(wp: WordPressClient) -> None:
    """A 429 means nothing was stored, so the POST is sent again."""
    session = FakeSession(
        FakeResponse(429), FakeResponse(201, {"id": 4, "name": "Fútbol"})
    )
    wp._session = session

    tag = await wp.create_tag("Fútbol")

    assert tag.id == 4
    assert len(session.requests) == 2


@pytest.mark.asyncio
async def test_reads_are_retried_after_dropped_connection(
    wp: WordPressClient,
) -> None:
    """GET requests survive a dropped connection."""
    session = FakeSession(TimeoutError(), FakeResponse(200, {"id": 5}))
    wp._session = session

    assert await wp._request("GET", "/posts/5") == {"id": 5}
    assert len(session.requests) == 2


@pytest.mark.asyncio
async def test_failed_title_update_keeps_upload_mapped(
    wp: WordPressClient, mappings: MappingService, tmp_path: Path
) -> None:
    """The attachment is mapped even when setting its title fails."""
    (tmp_path / "2024").mkdir()
    (tmp_path / "2024" / "portada.jpg").write_bytes(b"jpeg")
    uploaded = {
        "id": 70,
        "source_url": "https://wp.example/wp-content/uploads/portada.jpg",
    }
    session = FakeSession(
        FakeResponse(201, uploaded),
        FakeResponse(400, {"code": "rest_invalid_param"}),
        FakeResponse(201, {**uploaded, "id": 71}),
        FakeResponse(200, {**uploaded, "id": 71}),
    )
    wp._session = session
    resolver = MediaResolver(wp, mappings, tmp_path)
    portada = AttachedFile(
        file_id=500, filename="portada.jpg", uri="public://2024/portada.jpg"
    )

    first = await resolver.resolve(portada)
    second = await resolver.resolve(portada)

    assert first == second == 70
    assert mappings.get_target_id(500, Family.MEDIA) == 70
    assert len(session.requests) == 2

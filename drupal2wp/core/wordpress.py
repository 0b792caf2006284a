"""WordPress REST API client."""

import asyncio
import mimetypes
from pathlib import Path
from typing import Any
from urllib.parse import quote

import aiohttp
from limiter import Limiter

from drupal2wp import __version__, log
from drupal2wp.exceptions import (
    TargetAPIError,
    TargetNotFoundError,
    TargetRequestError,
    TargetUnavailableError,
)
from drupal2wp.models.target import TargetMedia, TargetPost, TargetTerm, TargetUser

__all__ = ["WordPressClient"]

# 300 requests per minute in bursts of at most 10
wordpress_limiter = Limiter(rate=300 / 60, capacity=10, jitter=False)


class WordPressClient:
    """Client for the WordPress REST API (``/wp-json/wp/v2``).

    Authenticates with an application password over HTTP Basic auth. All
    requests share one aiohttp session and obey a module-wide rate limit.
    Throttled requests are always retried. Gateway errors and dropped
    connections are retried only for reads and deletes, since a POST may
    already have been stored.
    """

    API_PREFIX = "/wp-json/wp/v2"
    PER_PAGE = 100
    MAX_RETRIES = 3
    RESENDABLE_METHODS = frozenset({"GET", "DELETE"})

    def __init__(
        self, base_url: str, username: str, password: str, *, timeout: int = 60
    ) -> None:
        """Initialize the client.

        Args:
            base_url (str): Site URL, without ``/wp-json``
            username (str): Owner of the application password
            password (str): Application password
            timeout (int): Total timeout per request, in seconds
        """
        self.base_url = base_url.rstrip("/")
        self._auth = aiohttp.BasicAuth(username, password)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session.

        Returns:
            aiohttp.ClientSession: The active session for making HTTP requests.
        """
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                auth=self._auth,
                timeout=self._timeout,
                headers={
                    "Accept": "application/json",
                    "User-Agent": f"drupal2wp/{__version__}",
                },
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    @wordpress_limiter()
    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        data: bytes | None = None,
        headers: dict[str, str] | None = None,
        retry_count: int = 0,
    ) -> Any:
        """Make a rate-limited request to the REST API.

        Args:
            method (str): HTTP method
            path (str): Path below ``/wp-json/wp/v2``
            params (dict | None): Query string parameters
            json (dict | None): JSON body
            data (bytes | None): Raw body, used for media uploads
            headers (dict | None): Extra request headers
            retry_count (int): Number of retries attempted so far

        Returns:
            Any: Decoded JSON response, or None for empty responses

        Raises:
            TargetNotFoundError: On HTTP 404
            TargetRequestError: On any other error response or after the last retry
        """
        if retry_count >= self.MAX_RETRIES:
            raise TargetRequestError(
                f"{method} {path} failed after {self.MAX_RETRIES} tries"
            )

        retry_kwargs = {
            "params": params,
            "json": json,
            "data": data,
            "headers": headers,
            "retry_count": retry_count + 1,
        }
        resendable = method.upper() in self.RESENDABLE_METHODS
        session = await self._get_session()
        url = f"{self.base_url}{self.API_PREFIX}{path}"

        try:
            async with session.request(
                method, url, params=params, json=json, data=data, headers=headers
            ) as response:
                if response.status == 429:
                    retry_after = int(response.headers.get("Retry-After", 5))
                    log.warning(f"Rate limit exceeded, waiting {retry_after} seconds")
                    await asyncio.sleep(retry_after + 1)
                    return await self._request(method, path, **retry_kwargs)
                if response.status in (502, 503, 504) and resendable:
                    log.warning(f"Received HTTP {response.status} for {path}, retrying")
                    await asyncio.sleep(2**retry_count)
                    return await self._request(method, path, **retry_kwargs)

                if response.status == 404:
                    raise TargetNotFoundError(
                        f"{method} {path} not found",
                        status=404,
                        body=await response.text(),
                    )
                if response.status >= 400:
                    body = await response.text()
                    raise TargetRequestError(
                        f"{method} {path} failed with HTTP {response.status}: "
                        f"{body[:300]}",
                        status=response.status,
                        body=body,
                    )

                if response.status == 204:
                    return None
                return await response.json(content_type=None)
        except (TimeoutError, aiohttp.ClientError) as e:
            if not resendable:
                raise TargetRequestError(
                    f"Connection error during {method} {path}: {e}"
                ) from e
            log.warning(f"Connection error during {method} {path}: {e}, retrying")
            await asyncio.sleep(1)
            return await self._request(method, path, **retry_kwargs)

    async def _paginate(
        self, path: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Collect every page of a collection endpoint.

        Stops on the first short or empty page.
        """
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            batch = await self._request(
                "GET",
                path,
                params={**(params or {}), "per_page": self.PER_PAGE, "page": page},
            )
            if not batch:
                break
            items.extend(batch)
            if len(batch) < self.PER_PAGE:
                break
            page += 1
        return items

    async def ping(self) -> TargetUser:
        """Check that the API is reachable and the credentials are accepted.

        Raises:
            TargetUnavailableError: If the site cannot be used
        """
        try:
            data = await self._request("GET", "/users/me", params={"context": "edit"})
        except TargetAPIError as e:
            raise TargetUnavailableError(
                f"WordPress API at {self.base_url} is not usable: {e}"
            ) from e
        return TargetUser.from_api(data)

    # Categories

    async def get_categories(self) -> list[TargetTerm]:
        """List every category."""
        return [TargetTerm.from_api(c) for c in await self._paginate("/categories")]

    async def search_categories(self, name: str) -> list[TargetTerm]:
        """Search categories by name."""
        data = await self._paginate("/categories", {"search": name})
        return [TargetTerm.from_api(c) for c in data]

    async def create_category(
        self,
        name: str,
        *,
        slug: str | None = None,
        parent: int = 0,
        description: str | None = None,
    ) -> TargetTerm:
        """Create a category."""
        payload: dict[str, Any] = {"name": name, "parent": parent}
        if slug:
            payload["slug"] = slug
        if description:
            payload["description"] = description
        return TargetTerm.from_api(
            await self._request("POST", "/categories", json=payload)
        )

    async def delete_category(self, category_id: int) -> None:
        """Delete a category permanently."""
        await self._request(
            "DELETE", f"/categories/{category_id}", params={"force": "true"}
        )

    # Tags

    async def get_tags(self) -> list[TargetTerm]:
        """List every tag."""
        return [TargetTerm.from_api(t) for t in await self._paginate("/tags")]

    async def create_tag(self, name: str, *, slug: str | None = None) -> TargetTerm:
        """Create a tag."""
        payload = {"name": name}
        if slug:
            payload["slug"] = slug
        return TargetTerm.from_api(await self._request("POST", "/tags", json=payload))

    async def delete_tag(self, tag_id: int) -> None:
        """Delete a tag permanently."""
        await self._request("DELETE", f"/tags/{tag_id}", params={"force": "true"})

    # Users

    async def get_users(self) -> list[TargetUser]:
        """List every user, including their login and e-mail."""
        data = await self._paginate("/users", {"context": "edit"})
        return [TargetUser.from_api(u) for u in data]

    async def create_user(
        self,
        username: str,
        email: str,
        password: str,
        *,
        name: str | None = None,
        roles: list[str] | None = None,
    ) -> TargetUser:
        """Create a user."""
        payload: dict[str, Any] = {
            "username": username,
            "email": email,
            "password": password,
            "name": name or username,
            "roles": roles or ["subscriber"],
        }
        return TargetUser.from_api(await self._request("POST", "/users", json=payload))

    async def delete_user(self, user_id: int, *, reassign: int) -> None:
        """Delete a user, handing their content over to ``reassign``."""
        await self._request(
            "DELETE",
            f"/users/{user_id}",
            params={"force": "true", "reassign": reassign},
        )

    # Posts and pages

    async def create_post(
        self, payload: dict[str, Any], *, resource: str = "posts"
    ) -> TargetPost:
        """Create a post (or page, with ``resource="pages"``)."""
        return TargetPost.from_api(
            await self._request("POST", f"/{resource}", json=payload)
        )

    async def update_post(
        self, post_id: int, payload: dict[str, Any], *, resource: str = "posts"
    ) -> TargetPost:
        """Update fields of an existing post."""
        return TargetPost.from_api(
            await self._request("POST", f"/{resource}/{post_id}", json=payload)
        )

    async def get_post(self, post_id: int, *, resource: str = "posts") -> TargetPost:
        """Fetch a post with its raw content."""
        return TargetPost.from_api(
            await self._request(
                "GET", f"/{resource}/{post_id}", params={"context": "edit"}
            )
        )

    async def delete_post(self, post_id: int, *, resource: str = "posts") -> None:
        """Delete a post, bypassing the trash."""
        await self._request(
            "DELETE", f"/{resource}/{post_id}", params={"force": "true"}
        )

    # Media

    async def upload_media(
        self, path: Path, *, title: str | None = None, alt_text: str | None = None
    ) -> TargetMedia:
        """Upload a local file to the media library.

        Args:
            path (Path): File to upload
            title (str | None): Attachment title
            alt_text (str | None): Alternative text for images

        A failed title update is only logged, the attachment already exists.

        Returns:
            TargetMedia: The created attachment
        """
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        media = TargetMedia.from_api(
            await self._request(
                "POST",
                "/media",
                data=path.read_bytes(),
                headers={
                    "Content-Type": mime_type,
                    "Content-Disposition": (
                        f"attachment; filename*=UTF-8''{quote(path.name)}"
                    ),
                },
            )
        )
        if title or alt_text:
            payload = {
                k: v for k, v in (("title", title), ("alt_text", alt_text)) if v
            }
            try:
                data = await self._request(
                    "POST", f"/media/{media.id}", json=payload
                )
            except TargetAPIError as e:
                log.warning(
                    f"Uploaded $$'{path.name}'$$ without its title: {e} "
                    f"$${{media_id: {media.id}}}$$"
                )
            else:
                media = TargetMedia.from_api(data)
        return media

    async def get_media(self, media_id: int) -> TargetMedia:
        """Fetch an attachment."""
        return TargetMedia.from_api(await self._request("GET", f"/media/{media_id}"))

    async def search_media(self, term: str) -> list[TargetMedia]:
        """Search attachments by title or filename."""
        data = await self._paginate("/media", {"search": term})
        return [TargetMedia.from_api(m) for m in data]

    async def delete_media(self, media_id: int) -> None:
        """Delete an attachment and its files."""
        await self._request("DELETE", f"/media/{media_id}", params={"force": "true"})

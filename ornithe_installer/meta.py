import asyncio
import logging
import threading
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, TypeVar

import aiohttp
import requests
from tqdm.asyncio import tqdm

from . import INSTALLER_NAME, __version__
from .endpoint import Endpoint, EndpointRegistry, load_json
from .errors import LookupFailedError, MalformedDocumentError, NetworkError

log = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT = 30
USER_AGENT = f"{INSTALLER_NAME}/{__version__}"


class MetaSet:
    """Decoded results of one ``MetaClient.resolve`` call. Read only."""

    def __init__(self, base_url: str, results: Dict[Endpoint, Any]) -> None:
        self.base_url = base_url
        self.results: Mapping[Endpoint, Any] = MappingProxyType(dict(results))

    def get(self, endpoint: Endpoint[T]) -> T:
        try:
            return self.results[endpoint]
        except KeyError:
            raise LookupFailedError("Resolved endpoint", endpoint.path) from None

    def __contains__(self, endpoint: object) -> bool:
        return endpoint in self.results


class MetaClient:
    """Fetches metadata documents concurrently.

    Within one client every distinct ``(base_url, endpoint)`` pair is fetched at most
    once: concurrent requests share the in-flight task and later requests reuse its
    result. Failed fetches are forgotten so a caller may try again.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        http: Optional[requests.Session] = None,
        registry: Optional[EndpointRegistry] = None,
        timeout: float = DEFAULT_TIMEOUT,
        progress: bool = False,
    ) -> None:
        self.registry = registry if registry is not None else EndpointRegistry()
        self.timeout = timeout
        self.progress = progress
        self._session = session
        self._owns_session = session is None
        self._http = http
        self._owns_http = http is None
        self._http_lock = threading.Lock()
        self._tasks: Dict[Tuple[str, Endpoint], asyncio.Task] = {}

    async def __aenter__(self) -> "MetaClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": USER_AGENT},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
        with self._http_lock:
            if self._owns_http and self._http is not None:
                self._http.close()
            self._http = None

    # --- Endpoint resolution ---

    async def resolve(self, base_url: str, endpoints: Iterable[Endpoint]) -> MetaSet:
        """Fetch and decode every endpoint against ``base_url``.

        Either all endpoints resolve, or the first failure is raised as a
        ``NetworkError`` / ``MalformedDocumentError`` and no results are returned.
        """
        distinct = list(dict.fromkeys(endpoints))
        tasks = [self._task_for(base_url, endpoint) for endpoint in distinct]

        pbar = tqdm(total=len(tasks), desc="Metadata", unit="doc", leave=False, disable=not self.progress)
        try:
            results = await asyncio.gather(
                *(self._await_shared(task, pbar) for task in tasks),
                return_exceptions=True,
            )
        finally:
            pbar.close()

        errors = []
        for endpoint, result in zip(distinct, results):
            if isinstance(result, BaseException):
                self._forget(base_url, endpoint)
                errors.append(result)
        if errors:
            for error in errors[1:]:
                log.debug(f"Additional failure while resolving metadata: {error}")
            raise errors[0]

        return MetaSet(base_url, dict(zip(distinct, results)))

    def _task_for(self, base_url: str, endpoint: Endpoint) -> asyncio.Task:
        key = (base_url, endpoint)
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_endpoint(base_url, endpoint))
            self._tasks[key] = task
        else:
            log.debug(f"Reusing fetch of {base_url}{endpoint.path}")
        return task

    def _forget(self, base_url: str, endpoint: Endpoint) -> None:
        task = self._tasks.get((base_url, endpoint))
        if task is not None and task.done() and (task.cancelled() or task.exception() is not None):
            del self._tasks[(base_url, endpoint)]

    @staticmethod
    async def _await_shared(task: asyncio.Task, pbar: tqdm) -> Any:
        # shield: cancelling one caller must not cancel a fetch other callers share
        try:
            return await asyncio.shield(task)
        finally:
            pbar.update(1)

    async def _fetch_endpoint(self, base_url: str, endpoint: Endpoint[T]) -> T:
        url = base_url + endpoint.path
        raw = await self.fetch_bytes(url)
        try:
            return endpoint.decode(raw)
        except MalformedDocumentError as e:
            if e.source is None:
                e.source = url
            raise

    # --- Plain documents ---

    async def fetch_bytes(self, url: str) -> bytes:
        session = await self.get_session()
        log.debug(f"GET {url}")
        try:
            async with session.get(url) as response:
                response.raise_for_status()
                return await response.read()
        except aiohttp.ClientResponseError as e:
            raise NetworkError(url, e) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(url, e) from e

    async def fetch_json(self, url: str) -> Any:
        raw = await self.fetch_bytes(url)
        try:
            return load_json(raw)
        except MalformedDocumentError as e:
            e.source = url
            raise

    def fetch_json_sync(self, url: str) -> Any:
        """Blocking fetch, used by lazily resolved version details."""
        # called from executor threads, several versions may resolve details at once
        with self._http_lock:
            if self._http is None:
                self._http = requests.Session()
                self._http.headers["User-Agent"] = USER_AGENT
                self._owns_http = True
            http = self._http
        log.debug(f"GET {url} (blocking)")
        try:
            response = http.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(url, e) from e
        try:
            return load_json(response.content)
        except MalformedDocumentError as e:
            e.source = url
            raise

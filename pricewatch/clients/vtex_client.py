"""Client for the VTEX productSuggestions persisted query."""
from typing import Any, Dict, List, Optional
import base64
import json
import logging
import httpx
from pricewatch.core.exceptions import ConfigurationError, FetchError

logger = logging.getLogger(__name__)

GRAPHQL_PATH = "/_v/segment/graphql/v1/"
DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36",
    "Accept": "application/json",
}


class VtexQueryClient:
    """Issues catalog queries against VTEX storefronts."""

    def __init__(self, query_hash: str, timeout: float = 15.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize the client.

        Args:
            query_hash: SHA-256 hash of the persisted productSuggestions query.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (used by tests).

        Raises:
            ConfigurationError: If the query hash is empty.
        """
        if not query_hash:
            raise ConfigurationError("VTEX_SHA256_HASH is not configured")
        self.query_hash = query_hash
        self.timeout = timeout
        self._client = httpx.AsyncClient(
            headers=DEFAULT_HEADERS,
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    def _build_variables(self, term: str, count: int) -> Dict[str, Any]:
        return {
            "productOriginVtex": True,
            "simulationBehavior": "default",
            "hideUnavailableItems": True,
            "fullText": term,
            "count": count,
            "shippingOptions": [],
            "variant": None,
        }

    def build_params(self, term: str, count: int) -> Dict[str, str]:
        """Query string parameters for one productSuggestions request."""
        variables = json.dumps(self._build_variables(term, count), separators=(",", ":"))
        extensions = {
            "persistedQuery": {
                "version": 1,
                "sha256Hash": self.query_hash,
                "sender": "vtex.store-resources@0.x",
                "provider": "vtex.search-graphql@0.x",
            },
            "variables": base64.b64encode(variables.encode("utf-8")).decode("ascii"),
        }
        return {
            "workspace": "master",
            "maxAge": "medium",
            "appsEtag": "remove",
            "domain": "store",
            "locale": "es-AR",
            "operationName": "productSuggestions",
            "variables": "{}",
            "extensions": json.dumps(extensions, separators=(",", ":")),
        }

    @staticmethod
    def endpoint_for(base_url: str) -> str:
        if not base_url:
            raise ConfigurationError("Merchant base URL is not configured")
        return base_url.rstrip("/") + GRAPHQL_PATH

    async def search(self, base_url: str, term: str, count: int = 50) -> List[Dict[str, Any]]:
        """
        Run one catalog query.

        Args:
            base_url: Storefront base URL (e.g. https://www.disco.com.ar).
            term: Category name or product code.
            count: Desired number of results.

        Returns:
            Raw product entries in the order returned by the vendor.

        Raises:
            FetchError: On timeout, non-success status or malformed payload.
        """
        url = self.endpoint_for(base_url)
        logger.debug(f"Querying {url} for term '{term}' (count={count})")

        try:
            response = await self._client.get(url, params=self.build_params(term, count))
        except httpx.TimeoutException as e:
            raise FetchError(f"Timeout after {self.timeout}s querying '{term}'", term=term) from e
        except httpx.HTTPError as e:
            raise FetchError(f"Request error querying '{term}': {e}", term=term) from e

        if response.status_code < 200 or response.status_code >= 300:
            raise FetchError(
                f"API request failed with status {response.status_code}",
                term=term,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON response: {e}", term=term) from e

        if not isinstance(data, dict):
            raise FetchError("Unexpected response structure", term=term)

        errors = data.get("errors")
        if errors:
            message = errors[0].get("message") if isinstance(errors[0], dict) else str(errors[0])
            raise FetchError(f"API Error: {message}", term=term)

        products = ((data.get("data") or {}).get("productSuggestions") or {}).get("products")
        if not isinstance(products, list):
            raise FetchError("Unexpected response structure", term=term)

        return products

    async def lookup_by_code(self, base_url: str, code: str) -> Optional[Dict[str, Any]]:
        """
        Point lookup of a single product by its code.

        Returns:
            The raw entry whose first item carries ``code``, or None.

        Raises:
            FetchError: If the query itself fails.
        """
        products = await self.search(base_url, code, count=1)
        if not products:
            return None

        raw = products[0]
        items = raw.get("items") or []
        found_code = items[0].get("ean") if items else None
        if not codes_match(found_code, code):
            logger.debug(f"Lookup for {code} returned a different product ({found_code})")
            return None
        return raw


def codes_match(found: Optional[str], expected: str) -> bool:
    """Compare product codes, tolerating missing or extra leading zeros."""
    if not found or not expected:
        return False
    if found == expected:
        return True
    try:
        return int(found) == int(expected)
    except (TypeError, ValueError):
        return False

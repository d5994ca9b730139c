import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from .config import DEFAULT_API_URL, MAX_PAGE_SIZE
from .errors import ApiError

logger = logging.getLogger(__name__)

# item type -> collection segment of the type-specific endpoints
ENDPOINTS = {
    'sticky_note': 'sticky_notes',
    'shape': 'shapes',
    'text': 'texts',
    'frame': 'frames',
    'card': 'cards',
    'app_card': 'app_cards',
    'image': 'images',
    'connector': 'connectors',
    'document': 'documents',
    'embed': 'embeds',
}
GENERIC_ENDPOINT = 'items'


def endpoint_for(kind):
    return ENDPOINTS.get(kind, GENERIC_ENDPOINT)


@dataclass
class ApiResponse:
    status: int
    body: Any
    rate_limit_remaining: Optional[str] = None


async def _read_body(response):
    text = await response.text()
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


class MiroClient:
    """Thin async client for one board of the Miro REST API v2.

    The session is injected; credentials are whatever headers the session
    carries. Use ``MiroClient.open(settings)`` to get a client with a
    bearer-authenticated session that is closed on exit.
    """

    def __init__(self, session, board_id, api_url=DEFAULT_API_URL):
        self.session = session
        self.board_id = board_id
        self.api_url = api_url.rstrip('/')

    @classmethod
    @asynccontextmanager
    async def open(cls, settings, timeout=60):
        req_headers = {
            'cache-control': 'no-cache, no-store',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
            'Authorization': f'Bearer {settings.access_token}'
        }
        async with aiohttp.ClientSession(headers=req_headers, timeout=aiohttp.ClientTimeout(total=timeout)) as session:
            yield cls(session, settings.board_id, settings.api_url)

    @property
    def board_url(self):
        return f'https://miro.com/app/board/{self.board_id}/'

    def board_path(self, *segments):
        return '/'.join(['boards', self.board_id] + [str(segment) for segment in segments])

    async def call_api(self, method, path, params=None, json=None):
        url = f'{self.api_url}/{path.lstrip("/")}'
        if params:
            params = {key: str(value) for key, value in params.items() if value is not None}

        try:
            async with self.session.request(method, url, params=params or None, json=json) as response:
                rate_limit_remaining = response.headers.get('X-RateLimit-Remaining')
                if response.status == 204:
                    body = await response.text()
                else:
                    body = await _read_body(response)

                if not 200 <= response.status < 300:
                    raise ApiError(response.status, response.reason, str(response.url), body)

                logger.debug('%s %s -> %s (rate limit remaining: %s)', method, response.url, response.status, rate_limit_remaining)
                return ApiResponse(response.status, body, rate_limit_remaining)
        except aiohttp.ClientError as error:
            raise ApiError(None, str(error) or error.__class__.__name__, url) from error
        except asyncio.TimeoutError as error:
            raise ApiError(None, 'request timed out', url) from error

    async def get_board(self):
        response = await self.call_api('GET', self.board_path())
        return response.body

    async def list_items(self, cursor=None, limit=MAX_PAGE_SIZE, item_type=None, parent_item_id=None):
        params = {
            'limit': limit,
            'cursor': cursor,
            'type': item_type,
            'parent_item_id': parent_item_id,
        }
        response = await self.call_api('GET', self.board_path('items'), params=params)
        body = response.body
        if not isinstance(body, dict):
            raise ApiError(response.status, 'unexpected list response', self.board_path('items'), body)
        return {'data': body.get('data') or [], 'cursor': body.get('cursor') or None}

    async def create_item(self, endpoint, payload):
        response = await self.call_api('POST', self.board_path(endpoint), json=payload)
        return response.body

    async def delete_item(self, endpoint, item_id):
        await self.call_api('DELETE', self.board_path(endpoint, item_id))

    async def update_item(self, endpoint, item_id, payload):
        response = await self.call_api('PATCH', self.board_path(endpoint, item_id), json=payload)
        return response.body

import logging

from .config import MAX_PAGE_SIZE, clamp_page_size
from .errors import ApiError, FetchError
from .models import RemoteItem

logger = logging.getLogger(__name__)


async def fetch_all(client, item_type=None, page_size=MAX_PAGE_SIZE, parent_item_id=None):
    """Drain the board's cursor-paginated item list into one list.

    Pages are requested one after the other, each with the cursor returned
    by the previous page, until a page comes back without a cursor. Items are
    returned in the order the API returned them.

    Any failure while reading a page aborts the whole fetch with a
    ``FetchError`` carrying the page index; no partial result is returned.
    """
    limit = clamp_page_size(page_size)
    items = []
    seen_cursors = set()
    cursor = None
    page_index = 0

    while True:
        try:
            page = await client.list_items(cursor=cursor, limit=limit, item_type=item_type, parent_item_id=parent_item_id)
            page_items = [RemoteItem.from_api(payload) for payload in page['data']]
        except ApiError as error:
            raise FetchError(page_index, error) from error
        except (AttributeError, KeyError, TypeError, ValueError) as error:
            raise FetchError(page_index, f'malformed page: {error!r}') from error

        items.extend(page_items)
        cursor = page.get('cursor')
        logger.debug('Page %s: %s items (total so far %s)', page_index, len(page_items), len(items))

        if not cursor:
            break
        if cursor in seen_cursors:
            raise FetchError(page_index, f'cursor {cursor!r} was returned twice')
        seen_cursors.add(cursor)
        page_index += 1

    logger.info('Collected %s items in %s pages', len(items), page_index + 1)
    return items

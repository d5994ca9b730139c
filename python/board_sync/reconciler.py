import asyncio
import datetime
import logging

from .client import GENERIC_ENDPOINT, endpoint_for
from .errors import ApiError, MutationError, RateLimitError, RecoverableMutationError, UnrecoverableMutationError
from .models import CreateIntent, DeleteIntent, FailedIntent, ReconcileResult, RemoteItem, UpdateIntent

logger = logging.getLogger(__name__)

# statuses that mean "this endpoint can't handle the item, try the next one"
FALLBACK_STATUSES = (400, 405)


def _action(intent):
    if isinstance(intent, DeleteIntent):
        return 'delete'
    if isinstance(intent, UpdateIntent):
        return 'update'
    return 'create'


def fallback_chain(intent, strategies=None):
    """Ordered endpoints to try for ``intent``.

    Deletes and updates go through the generic ``items`` endpoint first and
    fall back to the type-specific one; creates only have a type-specific
    endpoint.

    ``strategies`` maps ``(action, kind)`` to an explicit chain and wins over
    the defaults.
    """
    action = _action(intent)
    if strategies and (action, intent.kind) in strategies:
        return list(strategies[(action, intent.kind)])

    if action in ('delete', 'update'):
        chain = [GENERIC_ENDPOINT, endpoint_for(intent.kind)]
    else:
        chain = [endpoint_for(intent.kind)]

    ordered = []
    for endpoint in chain:
        if endpoint not in ordered:
            ordered.append(endpoint)
    return ordered


def classify_error(intent, error):
    if error.status == 429:
        return RateLimitError(intent, error, f'rate limited ({error.url})')
    if isinstance(intent, DeleteIntent) and error.status == 404:
        return RecoverableMutationError(intent, error, f'{intent.item_id} already absent')
    if isinstance(intent, CreateIntent) and error.status == 409:
        return RecoverableMutationError(intent, error, 'item already exists')
    return UnrecoverableMutationError(intent, error, _describe_error(error))


def _describe_error(error):
    if error.status is None:
        return f'transport error: {error.reason}'
    details = error.details
    if isinstance(details, dict) and details.get('message'):
        return f'{error.status} {error.reason}: {details["message"]}'
    return f'{error.status} {error.reason}'


class Reconciler:
    """Applies create/update/delete intents to a board one at a time.

    A failing intent never stops the batch: it is classified, recorded in the
    result, and the next intent runs. Intents run in submission order with at
    least ``request_delay_ms`` between two calls. There is no atomicity across
    intents; if the process dies halfway, everything before the current
    intent has been applied.
    """

    def __init__(self, client, strategies=None, request_delay_ms=300, rate_limit_hold_ms=31000, rate_limit_retries=3, dry_run=False):
        self.client = client
        self.strategies = strategies or {}
        self.request_delay_ms = request_delay_ms
        self.rate_limit_hold_ms = rate_limit_hold_ms
        # a 429 is always retried at least once
        self.rate_limit_retries = max(1, rate_limit_retries)
        self.dry_run = dry_run
        self._last_call_at = None

    @classmethod
    def from_settings(cls, client, settings, **kwargs):
        return cls(
            client,
            request_delay_ms=settings.request_delay_ms,
            rate_limit_hold_ms=settings.rate_limit_hold_ms,
            rate_limit_retries=settings.rate_limit_retries,
            **kwargs
        )

    async def _throttle(self):
        loop = asyncio.get_running_loop()
        if self._last_call_at is not None:
            remaining = self.request_delay_ms / 1000 - (loop.time() - self._last_call_at)
            if remaining > 0:
                await asyncio.sleep(remaining)
        self._last_call_at = loop.time()

    async def hold_execution(self, ms):
        logger.warning('**** Rate limit hit - Delaying execution for %s seconds to replenish rate limit credits - Current time: %s ***', ms / 1000, datetime.datetime.now())
        await asyncio.sleep(ms / 1000)
        logger.info('**** Resuming execution ***')

    async def _call(self, intent, endpoint):
        await self._throttle()
        if isinstance(intent, DeleteIntent):
            await self.client.delete_item(endpoint, intent.item_id)
            return None
        if isinstance(intent, UpdateIntent):
            return await self.client.update_item(endpoint, intent.item_id, intent.payload())
        return await self.client.create_item(endpoint, intent.payload())

    async def _call_with_rate_limit(self, intent, endpoint):
        attempt = 0
        while True:
            try:
                return await self._call(intent, endpoint)
            except ApiError as error:
                mutation_error = classify_error(intent, error)
                if not isinstance(mutation_error, RateLimitError):
                    raise mutation_error from error
                if attempt >= self.rate_limit_retries:
                    raise UnrecoverableMutationError(intent, error, f'still rate limited after {attempt} retries') from error
                attempt += 1
                await self.hold_execution(self.rate_limit_hold_ms)

    async def apply_intent(self, intent):
        """Apply one intent through its fallback chain.

        Returns the item payload for creates and updates (``None`` for
        deletes).
        Raises ``RecoverableMutationError`` when the board is already in the
        wanted state and ``UnrecoverableMutationError`` otherwise.
        """
        chain = fallback_chain(intent, self.strategies)
        for index, endpoint in enumerate(chain):
            try:
                return await self._call_with_rate_limit(intent, endpoint)
            except UnrecoverableMutationError as error:
                cause = error.cause
                has_next = index + 1 < len(chain)
                if has_next and isinstance(cause, ApiError) and cause.status in FALLBACK_STATUSES:
                    logger.debug('%s: endpoint %r refused (%s), trying %r', intent.describe(), endpoint, cause.status, chain[index + 1])
                    continue
                raise

    async def reconcile(self, intents):
        result = ReconcileResult()
        intents = list(intents)

        for index, intent in enumerate(intents):
            if self.dry_run:
                logger.info('....... DRY RUN - %s was skipped (%s of %s)', intent.describe(), index + 1, len(intents))
                result.skipped += 1
                continue

            try:
                body = await self.apply_intent(intent)
            except RecoverableMutationError as error:
                logger.info('%s: nothing to do (%s)', intent.describe(), error)
                result.skipped += 1
            except MutationError as error:
                logger.error('%s failed: %s', intent.describe(), error)
                result.failed.append(FailedIntent(intent, str(error)))
            else:
                result.applied += 1
                if isinstance(intent, CreateIntent) and isinstance(body, dict) and body.get('id') is not None:
                    created = RemoteItem.from_api(body)
                    result.created.append(created)
                    if intent.source_id is not None:
                        result.id_map[intent.source_id] = created.id
                logger.debug('%s applied (%s of %s)', intent.describe(), index + 1, len(intents))

        logger.info('Reconcile finished: %s applied, %s skipped, %s failed', result.applied, result.skipped, len(result.failed))
        return result

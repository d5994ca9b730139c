import argparse
import asyncio
import datetime
import json
import logging
import os
import sys

from .classifier import categorize_color, content_and_bucket_key, find_duplicates, find_proximate, partition_by_kind, text_key, with_kind
from .client import MiroClient
from .config import Settings
from .errors import ApiError, ConfigError, FetchError, LayoutError
from .fetcher import fetch_all
from .layout import build_intents, copy_intents, load_layout, missing_from, natural_key, spread_intents
from .models import DeleteIntent, FailedIntent
from .reconciler import Reconciler
from .report import summarize, summarize_result, write_json, write_report, write_snapshot

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FAILED_INTENTS = 2


def ask_yes_no_question(question):
    while True:
        answer = input(question).strip().lower()
        if answer in ['y', 'n']:
            return answer
        else:
            print("Invalid answer. Please enter 'y' for yes or 'n' for no.")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='board-sync',
        description='Audit and clean up the items of a Miro board (REST API v2).'
    )
    parser.add_argument('--dry-run', action='store_true', help='Fetch and classify, but do not create, move or delete anything.')
    parser.add_argument('--verbose', '-v', action='store_true', help='Log every API call.')
    subparsers = parser.add_subparsers(dest='command', required=True)

    audit = subparsers.add_parser('audit', help='Report counts, duplicates and overlapping items.')
    audit.add_argument('--type', dest='item_type', help='Only look at one item type (e.g. sticky_note).')
    audit.add_argument('--threshold', type=float, default=50, help='Distance under which two items overlap (default 50).')
    audit.add_argument('--bucket', type=int, default=0, help='Also key duplicates on a position bucket of this size.')

    snapshot = subparsers.add_parser('snapshot', help='Dump every item of the board to a JSON file.')
    snapshot.add_argument('--type', dest='item_type')
    snapshot.add_argument('--out', help='Output path (default <output dir>/board_snapshot.json).')

    dedupe = subparsers.add_parser('dedupe', help='Delete duplicate items, keeping the first of each group.')
    dedupe.add_argument('--type', dest='item_type')
    dedupe.add_argument('--bucket', type=int, default=0)
    dedupe.add_argument('--yes', '-y', action='store_true', help='Do not ask for confirmation.')

    clear = subparsers.add_parser('clear', help='Delete every item of the board.')
    clear.add_argument('--type', dest='item_type')
    clear.add_argument('--yes', '-y', action='store_true')

    apply_layout = subparsers.add_parser('apply-layout', help='Create the items of a layout file that are not on the board yet.')
    apply_layout.add_argument('layout', help='Path to the layout JSON file.')
    apply_layout.add_argument('--bucket', type=int, default=100, help='Position bucket used to recognise existing items (default 100).')
    apply_layout.add_argument('--yes', '-y', action='store_true')

    spread = subparsers.add_parser('spread', help='Move overlapping items apart.')
    spread.add_argument('--type', dest='item_type')
    spread.add_argument('--threshold', type=float, default=50, help='Minimum distance between two items (default 50).')
    spread.add_argument('--yes', '-y', action='store_true')

    copy = subparsers.add_parser('copy', help='Copy the items of another board onto this one.')
    copy.add_argument('source', help='Id of the board to copy from.')
    copy.add_argument('--type', dest='item_type', help='Only copy one item type.')
    copy.add_argument('--yes', '-y', action='store_true')

    return parser.parse_args(argv)


def confirm(args, question):
    if args.dry_run or getattr(args, 'yes', False):
        return True
    return ask_yes_no_question(question) == 'y'


def print_counts(title, counts):
    print(f'====== {title} ======')
    for key, count in counts.items():
        print(f'   - {key}: {count}')


def print_result(result):
    print(f'====== Applied --> {result.applied} / Skipped --> {result.skipped} / Failed --> {len(result.failed)} ======')
    for failure in result.failed:
        print(f'   x {failure.intent.describe()}: {failure.reason}')


def _duplicate_key(args):
    if args.bucket:
        return with_kind(content_and_bucket_key(args.bucket))
    return with_kind(text_key)


async def run_audit(client, settings, args):
    items = await fetch_all(client, item_type=args.item_type, page_size=settings.page_size)
    print(f'====== Collected {len(items)} items ======')

    print_counts('Items by type', {kind: len(group) for kind, group in partition_by_kind(items).items()})
    colors = {}
    for item in items:
        if item.fill_color:
            group = categorize_color(item.fill_color)
            colors[group] = colors.get(group, 0) + 1
    print_counts('Items by colour', colors)

    duplicates = find_duplicates(items, _duplicate_key(args))
    print(f'====== Found {sum(len(group.duplicates) for group in duplicates)} duplicate candidates in {len(duplicates)} groups ======')
    for group in duplicates:
        print(f'   - keep {group.canonical.id}, candidates: {", ".join(item.id for item in group.duplicates)} ({group.canonical.content[:50]!r})')

    proximate = find_proximate(items, args.threshold)
    print(f'====== Found {len(proximate)} item pairs closer than {args.threshold:g} ======')
    for first, second, distance in proximate:
        print(f'   - {first.kind} {first.id} <-> {second.kind} {second.id} ({round(distance)})')

    report = summarize(items)
    extra = {
        'duplicates': [{'key': str(group.key), 'canonical': group.canonical.id, 'duplicates': [item.id for item in group.duplicates]} for group in duplicates],
        'proximate': [{'first': first.id, 'second': second.id, 'distance': distance} for first, second, distance in proximate],
    }
    json_path, _ = write_report(report, settings.output_dir, 'board_audit', extra=extra)
    print(f'For further details review {json_path}')
    return EXIT_OK


async def run_snapshot(client, settings, args):
    items = await fetch_all(client, item_type=args.item_type, page_size=settings.page_size)
    path = write_snapshot(items, args.out or os.path.join(settings.output_dir, 'board_snapshot.json'))
    print(f'====== Wrote {len(items)} items to {path} ======')
    return EXIT_OK


async def _report_result(client, settings, before, result, name, item_type=None):
    print_result(result)
    exit_code = EXIT_OK if result.ok else EXIT_FAILED_INTENTS
    # the outcome is on disk even if the board can't be read back
    json_path = write_json({'result': summarize_result(result)}, settings.output_dir, name)

    try:
        after = await fetch_all(client, item_type=item_type, page_size=settings.page_size)
    except FetchError as error:
        print(f'====== WARNING: Could not read the board back ({error}) - see {json_path} for the outcome ======')
        return exit_code if exit_code != EXIT_OK else EXIT_ERROR

    report = summarize(before, after)
    print(f'====== Items before --> {report.total_before} / after --> {report.total_after} ======')
    write_report(report, settings.output_dir, name, extra={'result': summarize_result(result)})
    return exit_code


async def _reconcile_and_report(client, settings, args, before, intents, name):
    reconciler = Reconciler.from_settings(client, settings, dry_run=args.dry_run)
    result = await reconciler.reconcile(intents)
    return await _report_result(client, settings, before, result, name, item_type=getattr(args, 'item_type', None))


async def run_dedupe(client, settings, args):
    items = await fetch_all(client, item_type=args.item_type, page_size=settings.page_size)
    groups = find_duplicates(items, _duplicate_key(args))
    intents = [DeleteIntent(item.id, item.kind) for group in groups for item in group.duplicates]
    print(f'====== Found {len(intents)} duplicates in {len(groups)} groups ======')
    if not intents:
        return EXIT_OK
    if not confirm(args, f'Delete {len(intents)} duplicate items? (y/n):  '):
        print('Nothing was deleted.')
        return EXIT_OK
    return await _reconcile_and_report(client, settings, args, items, intents, 'dedupe_report')


async def run_clear(client, settings, args):
    items = await fetch_all(client, item_type=args.item_type, page_size=settings.page_size)
    if not items:
        print('====== Board is already empty ======')
        return EXIT_OK
    print_counts('Items to delete', {kind: len(group) for kind, group in partition_by_kind(items).items()})
    if not confirm(args, f'Delete {len(items)} items from {client.board_url}? (y/n):  '):
        print('Nothing was deleted.')
        return EXIT_OK
    # frames last so their children go first
    ordered = [item for item in items if item.kind != 'frame'] + [item for item in items if item.kind == 'frame']
    intents = [DeleteIntent(item.id, item.kind) for item in ordered]
    return await _reconcile_and_report(client, settings, args, items, intents, 'clear_report')


async def run_apply_layout(client, settings, args):
    intents = build_intents(load_layout(args.layout))
    items = await fetch_all(client, page_size=settings.page_size)
    pending = missing_from(intents, items, natural_key(args.bucket))
    print(f'====== {len(pending)} of {len(intents)} layout items are missing from the board ======')
    if not pending:
        return EXIT_OK
    if not confirm(args, f'Create {len(pending)} items? (y/n):  '):
        print('Nothing was created.')
        return EXIT_OK
    return await _reconcile_and_report(client, settings, args, items, pending, 'layout_report')


async def run_spread(client, settings, args):
    items = await fetch_all(client, item_type=args.item_type, page_size=settings.page_size)
    intents = spread_intents(items, args.threshold)
    print(f'====== {len(intents)} items are closer than {args.threshold:g} to a neighbour ======')
    if not intents:
        return EXIT_OK
    if not confirm(args, f'Move {len(intents)} items? (y/n):  '):
        print('Nothing was moved.')
        return EXIT_OK
    return await _reconcile_and_report(client, settings, args, items, intents, 'spread_report')


async def run_copy(client, settings, args):
    source = MiroClient(client.session, args.source, client.api_url)
    try:
        board = await source.get_board()
        print(f'====== Copying from board "{board.get("name")}" ({source.board_url}) ======')
    except ApiError as error:
        print(f'====== WARNING: Could not read source board details ({error}) ======')

    source_items = await fetch_all(source, item_type=args.item_type, page_size=settings.page_size)
    intents, skipped = copy_intents(source_items)
    print(f'====== {len(intents)} of {len(source_items)} items can be copied ======')
    if skipped:
        print_counts('Not copied', {kind: len(group) for kind, group in partition_by_kind(skipped).items()})
    if not intents:
        return EXIT_OK
    if not confirm(args, f'Copy {len(intents)} items to {client.board_url}? (y/n):  '):
        print('Nothing was copied.')
        return EXIT_OK

    before = await fetch_all(client, page_size=settings.page_size)
    reconciler = Reconciler.from_settings(client, settings, dry_run=args.dry_run)

    # parents first, children need the id of the copied parent
    result = await reconciler.reconcile([intent for intent in intents if intent.parent is None])
    children = []
    for intent in intents:
        if intent.parent is None:
            continue
        if args.dry_run:
            children.append(intent)
        elif intent.parent in result.id_map:
            intent.parent = result.id_map[intent.parent]
            children.append(intent)
        else:
            result.failed.append(FailedIntent(intent, f'parent frame {intent.parent} was not copied'))
    if children:
        result.merge(await reconciler.reconcile(children))

    return await _report_result(client, settings, before, result, 'copy_report')


COMMANDS = {
    'audit': run_audit,
    'snapshot': run_snapshot,
    'dedupe': run_dedupe,
    'clear': run_clear,
    'apply-layout': run_apply_layout,
    'spread': run_spread,
    'copy': run_copy,
}


async def run(args, settings):
    async with MiroClient.open(settings) as client:
        return await COMMANDS[args.command](client, settings, args)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    print(f"********** BEGIN OF SCRIPT {'(DRY RUN)' if args.dry_run else ''} **********")
    print(f'Script start time: {datetime.datetime.now()}')

    try:
        settings = Settings.from_env()
        print(f'Board: https://miro.com/app/board/{settings.board_id}/')
        exit_code = asyncio.run(run(args, settings))
    except (ConfigError, LayoutError) as error:
        print(f'====== ERROR: {error} ======')
        exit_code = EXIT_ERROR
    except FetchError as error:
        print('====== ERROR: Could not get all board items, see details below ======')
        cause = error.cause
        print(json.dumps(cause.to_dict() if hasattr(cause, 'to_dict') else str(cause), indent=4))
        exit_code = EXIT_ERROR
    except KeyboardInterrupt:
        print('\n[Shutdown] Terminated by user - the board keeps every change applied so far.')
        exit_code = EXIT_ERROR

    print(f'Script end time: {datetime.datetime.now()}')
    print(f"********** END OF SCRIPT {'(DRY RUN)' if args.dry_run else ''} **********")
    return exit_code


if __name__ == '__main__':
    sys.exit(main())

from __future__ import annotations

import unittest

from board_sync.errors import FetchError
from board_sync.fetcher import fetch_all

from fakeboard import FakeBoardTestCase, make_item


def _notes_and_shapes() -> list:
    items = []
    for i in range(112):
        kind = "sticky_note" if i < 80 else "shape"
        items.append(make_item(f"i{i}", kind, x=i * 10, y=0))
    return items


class TestFetchAll(FakeBoardTestCase):
    def board_items(self) -> list:
        return _notes_and_shapes()

    async def test_three_pages_of_fifty_fifty_twelve(self) -> None:
        items = await fetch_all(self.client, page_size=50)
        self.assertEqual(len(items), 112)
        self.assertEqual([item.id for item in items], [f"i{i}" for i in range(112)])
        pages = [path for method, path in self.board.requests if path.endswith("/items")]
        self.assertEqual(len(pages), 3)

    async def test_result_independent_of_page_size(self) -> None:
        expected = [f"i{i}" for i in range(112)]
        for page_size in (1, 7, 49, 50):
            items = await fetch_all(self.client, page_size=page_size)
            self.assertEqual([item.id for item in items], expected, page_size)

    async def test_page_size_is_clamped_to_remote_maximum(self) -> None:
        items = await fetch_all(self.client, page_size=500)
        self.assertEqual(len(items), 112)

    async def test_type_filter(self) -> None:
        items = await fetch_all(self.client, item_type="shape")
        self.assertEqual(len(items), 32)
        self.assertTrue(all(item.kind == "shape" for item in items))

    async def test_failing_page_aborts_with_page_index(self) -> None:
        self.board.failing_pages[1] = 500
        with self.assertRaises(FetchError) as ctx:
            await fetch_all(self.client, page_size=50)
        self.assertEqual(ctx.exception.page_index, 1)
        self.assertEqual(ctx.exception.cause.status, 500)

    async def test_auth_failure_aborts_on_first_page(self) -> None:
        self.session.headers["Authorization"] = "Bearer wrong"
        with self.assertRaises(FetchError) as ctx:
            await fetch_all(self.client)
        self.assertEqual(ctx.exception.page_index, 0)
        self.assertEqual(ctx.exception.cause.status, 401)

    async def test_repeated_cursor_is_an_error(self) -> None:
        self.board.repeat_cursor = True
        with self.assertRaises(FetchError):
            await fetch_all(self.client, page_size=50)


class TestFetchChildren(FakeBoardTestCase):
    def board_items(self) -> list:
        return [
            make_item("f1", "frame", x=0, y=0),
            make_item("a", x=1, y=1, parent="f1"),
            make_item("b", x=2, y=2),
            make_item("c", x=3, y=3, parent="f1"),
        ]

    async def test_parent_filter(self) -> None:
        items = await fetch_all(self.client, parent_item_id="f1")
        self.assertEqual([item.id for item in items], ["a", "c"])
        self.assertEqual({item.parent for item in items}, {"f1"})

    async def test_empty_board(self) -> None:
        self.board.items = []
        self.assertEqual(await fetch_all(self.client), [])


class _MalformedClient:
    def __init__(self, page) -> None:
        self.page = page

    async def list_items(self, **kwargs) -> dict:
        return self.page


class TestMalformedPages(unittest.IsolatedAsyncioTestCase):
    async def test_malformed_entries_raise_fetch_error(self) -> None:
        for page in ({"data": ["not an item"], "cursor": None}, {"data": [{"id": "a", "parent": "f1"}], "cursor": None}, {"data": [{"type": "text"}]}):
            with self.assertRaises(FetchError) as ctx:
                await fetch_all(_MalformedClient(page))
            self.assertEqual(ctx.exception.page_index, 0)
            self.assertIn("malformed page", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()

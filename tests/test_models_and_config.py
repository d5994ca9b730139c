from __future__ import annotations

import os
import tempfile
import unittest

from board_sync.config import Settings, clamp_page_size
from board_sync.errors import ConfigError
from board_sync.models import CreateIntent, DeleteIntent, Position, RemoteItem

from fakeboard import make_item


class TestRemoteItem(unittest.TestCase):
    def test_from_api(self) -> None:
        payload = make_item(3458764616830951294, "sticky_note", x=10.5, y=-4, content="<p>Hi</p>", fill="yellow", parent="99")
        payload["geometry"] = {"width": 199}
        item = RemoteItem.from_api(payload)
        self.assertEqual(item.id, "3458764616830951294")
        self.assertEqual(item.kind, "sticky_note")
        self.assertEqual(item.position, Position(10.5, -4.0))
        self.assertEqual(item.parent, "99")
        self.assertEqual(item.content, "<p>Hi</p>")
        self.assertEqual(item.fill_color, "yellow")
        self.assertEqual(item.attributes["geometry"], {"width": 199})
        self.assertNotIn("position", item.attributes)

    def test_connector_has_no_position(self) -> None:
        item = RemoteItem.from_api({"id": "c1", "type": "connector", "startItem": {"id": "a"}})
        self.assertIsNone(item.position)
        self.assertIsNone(item.parent)
        self.assertEqual(item.content, "")
        self.assertIsNone(item.fill_color)

    def test_frame_title_is_content(self) -> None:
        item = RemoteItem.from_api({"id": "f", "type": "frame", "data": {"title": "2. INTERVIEWING"}})
        self.assertEqual(item.content, "2. INTERVIEWING")

    def test_to_dict_keeps_attributes(self) -> None:
        payload = make_item("a", "shape", x=1, y=2, fill="#fff", parent="p")
        self.assertEqual(RemoteItem.from_api(payload).to_dict()["style"], {"fillColor": "#fff"})
        self.assertEqual(RemoteItem.from_api(payload).to_dict()["parent"], {"id": "p"})


class TestIntents(unittest.TestCase):
    def test_create_payload(self) -> None:
        intent = CreateIntent("sticky_note", {"data": {"content": "x"}, "style": {"fillColor": "green"}}, Position(1, 2), parent="f1")
        self.assertEqual(
            intent.payload(),
            {"data": {"content": "x"}, "style": {"fillColor": "green"}, "position": {"x": 1, "y": 2}, "parent": {"id": "f1"}},
        )
        self.assertEqual(intent.describe(), "create sticky_note at (1, 2)")

    def test_delete_describe(self) -> None:
        self.assertEqual(DeleteIntent("42", "text").describe(), "delete text 42")


class TestSettings(unittest.TestCase):
    def test_from_env(self) -> None:
        settings = Settings.from_env({"MIRO_ACCESS_TOKEN": "tok", "MIRO_BOARD_ID": '"uXjV="', "MIRO_PAGE_SIZE": "500"})
        self.assertEqual(settings.access_token, "tok")
        self.assertEqual(settings.board_id, "uXjV=")
        self.assertEqual(settings.page_size, 50)
        self.assertEqual(settings.api_url, "https://api.miro.com/v2")
        self.assertEqual(settings.request_delay_ms, 300)

    def test_token_fallback_and_overrides(self) -> None:
        settings = Settings.from_env(
            {"MIRO_TOKEN": "t2", "MIRO_BOARD_ID": "b", "MIRO_API_URL": "http://localhost:1/v2/", "MIRO_REQUEST_DELAY_MS": "0"}
        )
        self.assertEqual(settings.access_token, "t2")
        self.assertEqual(settings.api_url, "http://localhost:1/v2")
        self.assertEqual(settings.request_delay_ms, 0)

    def test_missing_values(self) -> None:
        with self.assertRaises(ConfigError):
            Settings.from_env({"MIRO_BOARD_ID": "b"})
        with self.assertRaises(ConfigError):
            Settings.from_env({"MIRO_ACCESS_TOKEN": "t", "MIRO_BOARD_ID": '""'})
        with self.assertRaises(ValueError):
            Settings.from_env({"MIRO_ACCESS_TOKEN": "t", "MIRO_BOARD_ID": "b", "MIRO_PAGE_SIZE": "many"})

    def test_dotenv_file_does_not_override_environment(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            path = os.path.join(td, ".env")
            with open(path, "w") as file:
                file.write("MIRO_ACCESS_TOKEN=from-file\nMIRO_BOARD_ID=file-board\n")
            old = {key: os.environ.get(key) for key in ("MIRO_ACCESS_TOKEN", "MIRO_BOARD_ID", "MIRO_TOKEN")}
            os.environ["MIRO_ACCESS_TOKEN"] = "from-env"
            os.environ.pop("MIRO_BOARD_ID", None)
            try:
                settings = Settings.from_env(dotenv_path=path)
            finally:
                for key, value in old.items():
                    if value is None:
                        os.environ.pop(key, None)
                    else:
                        os.environ[key] = value
        self.assertEqual(settings.access_token, "from-env")
        self.assertEqual(settings.board_id, "file-board")

    def test_clamp(self) -> None:
        self.assertEqual(clamp_page_size(0), 1)
        self.assertEqual(clamp_page_size(51), 50)
        self.assertEqual(clamp_page_size(10), 10)


if __name__ == "__main__":
    unittest.main()

"""Tests for the persisted stream list."""

from ssewatch.shared.models import StreamConnection
from ssewatch.shared.storage import DEFAULT_STREAMS, StreamStorage


class TestStreamStorage:
    def test_missing_file_falls_back_to_builtins(self, tmp_path) -> None:
        streams = StreamStorage(tmp_path / "absent.json").load()

        assert [s.name for s in streams] == ["Localhost", "SSE Demo"]
        assert streams[0].url == "http://localhost:8787/"

    def test_corrupt_file_falls_back_to_builtins(self, tmp_path) -> None:
        path = tmp_path / "streams.json"
        path.write_text("{not json", encoding="utf-8")

        assert [s.url for s in StreamStorage(path).load()] == [s.url for s in DEFAULT_STREAMS]

    def test_empty_list_falls_back_to_builtins(self, tmp_path) -> None:
        path = tmp_path / "streams.json"
        path.write_text("[]", encoding="utf-8")

        assert len(StreamStorage(path).load()) == len(DEFAULT_STREAMS)

    def test_save_then_load_keeps_order_and_ids(self, tmp_path) -> None:
        storage = StreamStorage(tmp_path / "nested" / "streams.json")
        streams = [
            StreamConnection(name="one", url="http://one.test/"),
            StreamConnection(name="two", url="http://two.test/"),
        ]

        storage.save(streams)

        assert storage.load() == streams

    def test_add_and_remove(self, tmp_path) -> None:
        storage = StreamStorage(tmp_path / "streams.json")

        storage.add("mine", "http://mine.test/")

        assert [s.name for s in storage.load()] == ["Localhost", "SSE Demo", "mine"]
        assert storage.remove("mine") is True
        assert storage.remove("mine") is False

    def test_clear_removes_file(self, tmp_path) -> None:
        storage = StreamStorage(tmp_path / "streams.json")
        storage.add("mine", "http://mine.test/")

        storage.clear()
        storage.clear()

        assert not storage.path.exists()

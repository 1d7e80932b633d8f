"""
Unit tests for the Redshift output flush pipeline.

S3 and Redshift are replaced with MagicMocks. The fake storage reads the
gzip artifact during ``upload`` because the temporary file is removed as soon
as the flush leaves the artifact block.
"""

import gzip
import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from structlog.testing import capture_logs

from redshift_shipper.io.chunk import BufferChunk
from redshift_shipper.io.exceptions import KeyGenerationError, SchemaFetchError
from redshift_shipper.io.loader import LoadDataError, LoadResult, LoadTransientError
from redshift_shipper.orchestration import FlushStatus, RedshiftOutput

S3_URI = "s3://log-bucket/logs/access/20240101-0000_00.gz"


class FakeStorage:
    """Records uploads and keeps the decompressed artifact contents."""

    def __init__(self, error=None):
        self.error = error
        self.uploads = []

    def upload(self, key, path):
        if self.error is not None:
            raise self.error
        self.uploads.append((key, gzip.decompress(Path(path).read_bytes())))
        return f"s3://log-bucket/{key}"


def _key_generator(key="logs/access/20240101-0000_00.gz"):
    generator = MagicMock()
    generator.generate.return_value = key
    return generator


def _schema_fetcher(columns):
    fetcher = MagicMock()
    fetcher.fetch.return_value = columns
    return fetcher


def _loader():
    loader = MagicMock()
    loader.load.side_effect = lambda s3_uri: LoadResult("access_log", s3_uri, 1.0)
    return loader


def _output(settings, columns=("id", "path"), storage=None, loader=None, **kwargs):
    return RedshiftOutput(
        settings,
        storage=storage if storage is not None else FakeStorage(),
        schema_fetcher=_schema_fetcher(list(columns)),
        loader=loader if loader is not None else _loader(),
        key_generator=kwargs.pop("key_generator", _key_generator()),
        **kwargs,
    )


def _json_chunk(output, *payloads):
    return BufferChunk(
        output.format("app.access", 0, {"log": payload}) for payload in payloads
    )


@pytest.mark.unit
class TestFormat:
    def test_json_mode_buffers_whole_record(self, settings):
        output = _output(settings)

        data = output.format("app", 0, {"log": '{"id": 1}', "host": "web-1"})

        assert data.endswith(b"\n")
        assert json.loads(data) == {"log": '{"id": 1}', "host": "web-1"}

    def test_text_mode_buffers_log_field(self, make_settings):
        output = _output(make_settings(file_type="tsv"))

        assert output.format("app", 0, {"log": "1\tfoo", "host": "x"}) == b"1\tfoo\n"

    def test_text_mode_missing_field_is_empty_line(self, make_settings):
        output = _output(make_settings(file_type="csv"))

        assert output.format("app", 0, {"host": "x"}) == b"\n"

    def test_text_mode_uses_configured_tag(self, make_settings):
        output = _output(make_settings(file_type="tsv", record_log_tag="message"))

        assert output.format("app", 0, {"message": "a\tb"}) == b"a\tb\n"


@pytest.mark.unit
class TestFlushSkips:
    def test_empty_chunk_touches_nothing(self, settings):
        storage = MagicMock()
        loader = MagicMock()
        key_generator = MagicMock()
        output = _output(
            settings, storage=storage, loader=loader, key_generator=key_generator
        )

        result = output.flush(BufferChunk())

        assert result.status is FlushStatus.SKIPPED
        assert result.reason == "empty_chunk"
        output.schema_fetcher.fetch.assert_not_called()
        key_generator.generate.assert_not_called()
        storage.upload.assert_not_called()
        loader.load.assert_not_called()

    def test_missing_table_skips_without_decoding(self, settings):
        class ExplodingChunk(BufferChunk):
            def iter_lines(self):
                raise AssertionError("records must not be decoded")

        storage = MagicMock()
        loader = MagicMock()

        with capture_logs() as logs:
            output = _output(settings, columns=(), storage=storage, loader=loader)
            result = output.flush(ExplodingChunk([b'{"log": "{}"}\n']))

        assert result.status is FlushStatus.SKIPPED
        assert result.reason == "no_table_columns"
        storage.upload.assert_not_called()
        loader.load.assert_not_called()
        missing = [e for e in logs if e["event"] == "redshift.table.missing"]
        assert missing[0]["log_level"] == "warning"
        assert missing[0]["table"] == "access_log"

    def test_no_valid_rows_skips_upload(self, settings):
        storage = MagicMock()
        loader = MagicMock()
        output = _output(settings, storage=storage, loader=loader)
        chunk = _json_chunk(output, '{"unrelated": "x"}', "{broken")

        result = output.flush(chunk)

        assert result.status is FlushStatus.SKIPPED
        assert result.reason == "no_valid_data"
        output.key_generator.generate.assert_not_called()
        storage.upload.assert_not_called()
        loader.load.assert_not_called()

    def test_write_returns_false_when_nothing_loaded(self, settings):
        assert _output(settings).write(BufferChunk()) is False


@pytest.mark.unit
class TestFlushLoads:
    def test_json_chunk_is_encoded_uploaded_and_copied(self, settings):
        storage = FakeStorage()
        loader = _loader()
        output = _output(settings, storage=storage, loader=loader)
        chunk = _json_chunk(
            output,
            '{"id": 1, "path": "/a", "extra": "dropped"}',
            '{"path": "/b"}',
            '{"nothing": "here"}',
        )

        result = output.flush(chunk)

        assert result.status is FlushStatus.LOADED
        assert result.loaded
        assert result.s3_uri == S3_URI
        assert result.rows == 2
        key, body = storage.uploads[0]
        assert key == "logs/access/20240101-0000_00.gz"
        assert body == b'"1"\t"/a"\n\t"/b"\n'
        assert result.bytes_written == len(body)
        loader.load.assert_called_once_with(S3_URI)

    def test_passthrough_chunk_is_uploaded_unchanged(self, make_settings):
        storage = FakeStorage()
        output = _output(make_settings(file_type="tsv"), storage=storage)
        chunk = BufferChunk(
            output.format("app", 0, {"log": row}) for row in ("1\tfoo", "2\tbar")
        )

        result = output.flush(chunk)

        assert result.loaded
        assert storage.uploads[0][1] == b"1\tfoo\n2\tbar\n"
        output.schema_fetcher.fetch.assert_not_called()

    def test_write_returns_true_after_load(self, settings):
        output = _output(settings)

        assert output.write(_json_chunk(output, '{"id": 1}')) is True

    def test_completion_is_logged_with_suffix(self, make_settings):
        with capture_logs() as logs:
            output = _output(make_settings(log_suffix="tenant-a"))
            output.flush(_json_chunk(output, '{"id": 1}'))

        completed = [e for e in logs if e["event"] == "flush.completed"]
        assert completed[0]["log_level"] == "info"
        assert completed[0]["log_suffix"] == "tenant-a"
        assert completed[0]["s3_uri"] == S3_URI
        assert completed[0]["rows"] == 1


@pytest.mark.unit
class TestFlushErrors:
    def test_schema_fetch_error_propagates(self, settings):
        output = _output(settings)
        output.schema_fetcher.fetch.side_effect = SchemaFetchError(
            "access_log", RuntimeError("down")
        )

        with pytest.raises(SchemaFetchError):
            output.flush(_json_chunk(output, '{"id": 1}'))

    def test_key_generation_error_propagates(self, settings):
        key_generator = MagicMock()
        key_generator.generate.side_effect = KeyGenerationError(
            "log-bucket", "logs/access/20240101-0000", 1000
        )
        loader = MagicMock()
        output = _output(settings, loader=loader, key_generator=key_generator)

        with pytest.raises(KeyGenerationError):
            output.flush(_json_chunk(output, '{"id": 1}'))

        loader.load.assert_not_called()

    def test_upload_error_propagates_and_skips_copy(self, settings):
        error = ClientError({"Error": {"Code": "AccessDenied"}}, "PutObject")
        loader = MagicMock()
        output = _output(settings, storage=FakeStorage(error=error), loader=loader)

        with pytest.raises(ClientError) as exc_info:
            output.flush(_json_chunk(output, '{"id": 1}'))

        assert exc_info.value is error
        loader.load.assert_not_called()

    @pytest.mark.parametrize("error_class", [LoadDataError, LoadTransientError])
    def test_load_errors_propagate(self, settings, error_class):
        loader = MagicMock()
        loader.load.side_effect = error_class(
            "access_log", S3_URI, RuntimeError("copy failed")
        )
        output = _output(settings, loader=loader)

        with pytest.raises(error_class) as exc_info:
            output.flush(_json_chunk(output, '{"id": 1}'))

        assert exc_info.value.retryable is (error_class is LoadTransientError)


@pytest.mark.unit
def test_start_builds_storage_and_key_generator(settings, monkeypatch):
    client = MagicMock()
    monkeypatch.setattr(
        "redshift_shipper.orchestration.output.create_s3_client", lambda s: client
    )
    output = RedshiftOutput(
        settings, schema_fetcher=_schema_fetcher(["id"]), loader=_loader()
    )

    output.start()

    assert output.storage.client is client
    assert output.storage.bucket == "log-bucket"
    assert output.key_generator.path == "logs/access/"
    assert output.key_generator.max_attempts == 1000

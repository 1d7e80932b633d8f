"""Unit tests for the gzip artifact."""

import gzip

import pytest

from redshift_shipper.io.compression import GzipArtifact


@pytest.mark.unit
class TestGzipArtifact:
    def test_writes_single_gzip_stream(self, tmp_path):
        with GzipArtifact(directory=tmp_path) as artifact:
            artifact.write(b'"1","a"\n')
            artifact.write('"2","b"\n')
            path = artifact.finish()

            assert path.name.startswith("s3-")
            assert path.suffix == ".gz"
            assert gzip.decompress(path.read_bytes()) == b'"1","a"\n"2","b"\n'
            assert artifact.bytes_written == 16
            assert not artifact.is_empty

    def test_counts_zero_bytes_when_nothing_written(self, tmp_path):
        with GzipArtifact(directory=tmp_path) as artifact:
            artifact.write(b"")
            artifact.finish()

            assert artifact.is_empty
            assert artifact.bytes_written == 0

    def test_temp_file_removed_on_exit(self, tmp_path):
        with GzipArtifact(directory=tmp_path) as artifact:
            artifact.write(b"row\n")
            path = artifact.finish()
            assert path.exists()

        assert not path.exists()

    def test_temp_file_removed_when_block_raises(self, tmp_path):
        with pytest.raises(RuntimeError):
            with GzipArtifact(directory=tmp_path) as artifact:
                path = artifact.path
                artifact.write(b"row\n")
                raise RuntimeError("upload failed")

        assert not path.exists()

    def test_write_after_finish_is_rejected(self, tmp_path):
        with GzipArtifact(directory=tmp_path) as artifact:
            artifact.finish()
            with pytest.raises(ValueError, match="finished"):
                artifact.write(b"late\n")

"""Tests for generation tarballs."""

from genome_repository.index.archive import GenerationArchive, archive_path, read_archive


class TestGenerationArchive:
    def test_layout(self, tmp_path):
        path = archive_path(tmp_path / "nested", "repository-261018_120000")
        with GenerationArchive(path, "repository-261018_120000") as archive:
            archive.add_settings({"number_of_shards": 3})
            archive.add_mapping("file", {"dynamic": "strict"})
            archive.add_document("file", "F1", {"id": "F1"})

        assert archive.entries == 3
        assert read_archive(path) == {
            "repository-261018_120000/_settings": {"number_of_shards": 3},
            "repository-261018_120000/file/_mapping": {"dynamic": "strict"},
            "repository-261018_120000/file/F1": {"id": "F1"},
        }

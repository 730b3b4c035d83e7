"""Tests for record models and JSON Lines snapshots."""

import pytest
from pydantic import ValidationError

from genome_repository.models import (
    DataBundle,
    Donor,
    OtherIdentifiers,
    RepositoryFile,
    donor_key,
    is_blank,
    read_records,
    write_records,
)


class TestRepositoryFile:
    def test_frozen(self, make_record):
        record = make_record()
        with pytest.raises(ValidationError):
            record.id = "F2"

    def test_access_restricted(self):
        with pytest.raises(ValidationError):
            RepositoryFile(id="F1", access="secret")

    def test_repo_codes(self, make_record):
        record = make_record(repos=("ega", "gdc", "ega"))
        assert record.repo_codes == frozenset({"ega", "gdc"})

    def test_document_uses_lists(self, make_record):
        document = make_record(study=("PCAWG",)).to_document()
        assert document["study"] == ["PCAWG"]
        assert isinstance(document["file_copies"], list)
        assert document["object_id"] is None

    def test_other_identifiers_keep_extra_keys(self):
        donor = Donor.model_validate(
            {"donor_id": "DO1", "other_identifiers": {"gdc_case_id": "abc"}}
        )
        assert donor.other_identifiers.model_dump()["gdc_case_id"] == "abc"


class TestHelpers:
    def test_donor_key_prefers_resolved_id(self):
        assert donor_key(Donor(donor_id="DO1", submitted_donor_id="S1")) == "DO1"
        assert donor_key(Donor(submitted_donor_id="S1")) == "S1"
        assert donor_key(Donor()) is None

    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, True),
            ("", True),
            ((), True),
            (DataBundle(), True),
            (OtherIdentifiers(), True),
            ("x", False),
            (0, False),
            (("a",), False),
            (DataBundle(data_bundle_id="B1"), False),
        ],
    )
    def test_is_blank(self, value, expected):
        assert is_blank(value) is expected


class TestSnapshots:
    def test_write_then_read(self, tmp_path, make_record, make_donor):
        records = [
            make_record("F1", donors=(make_donor("S1", donor_id="DO1"),)),
            make_record("F2", repos=("ega", "cghub")),
        ]
        path = tmp_path / "work" / "ega.jsonl"
        assert write_records(path, records) == 2
        assert list(read_records(path)) == records
        assert not path.with_suffix(".jsonl.tmp").exists()

    def test_blank_lines_ignored(self, tmp_path, make_record):
        path = tmp_path / "files.jsonl"
        path.write_text(make_record().model_dump_json() + "\n\n")
        assert len(list(read_records(path))) == 1

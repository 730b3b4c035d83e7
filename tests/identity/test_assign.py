"""Tests for donor id assignment and study classification."""

from genome_repository.errors import IdentityAssignmentError, IdentityServiceError
from genome_repository.identity import (
    AssignmentMode,
    IdentityResolver,
    IdKind,
    RunContext,
    StudyClassifier,
    assign_ids,
    static_loader,
)
from genome_repository.models import OtherIdentifiers


class TestAssignIds:
    def test_assigns_all_three_ids(self, id_service, make_record, make_donor):
        donor = make_donor("PD1", submitted_specimen_id="SP-1", submitted_sample_id="SA-1")
        [record] = assign_ids([make_record(donors=(donor,))], IdentityResolver(id_service))
        assigned = record.donors[0]
        assert assigned.donor_id.startswith("DO")
        assert assigned.specimen_id.startswith("SP")
        assert assigned.sample_id.startswith("SA")
        assert assigned.submitted_donor_id == "PD1"

    def test_inputs_untouched(self, id_service, make_record, make_donor):
        record = make_record(donors=(make_donor("PD1"),))
        before = record.model_dump()
        assign_ids([record], IdentityResolver(id_service))
        assert record.model_dump() == before

    def test_barcode_projects_use_barcodes(self, id_service, make_record, make_donor):
        donor = make_donor(
            "uuid-donor",
            project_code="BRCA-US",
            other_identifiers=OtherIdentifiers(tcga_participant_barcode="TCGA-A1-A0SB"),
        )
        resolver = IdentityResolver(id_service, barcode_projects=frozenset({"BRCA-US"}))
        assign_ids([make_record(donors=(donor,))], resolver)
        assert id_service.creates == [(IdKind.DONOR, "TCGA-A1-A0SB", "BRCA-US")]

    def test_read_only_leaves_unknown_ids_unset(self, id_service, make_record, make_donor):
        [record] = assign_ids(
            [make_record(donors=(make_donor("PD1"),))],
            IdentityResolver(id_service),
            mode=AssignmentMode.READ_ONLY,
        )
        assert record.donors[0].donor_id is None

    def test_failure_fails_one_donor_only(self, make_id_service, make_record, make_donor):
        class FlakyService(make_id_service):
            def create(self, kind, submitted_id, project_code):
                if submitted_id == "BAD":
                    raise IdentityServiceError("rejected")
                return super().create(kind, submitted_id, project_code)

        errors = []
        record = make_record(donors=(make_donor("BAD"), make_donor("PD2")))
        [assigned] = assign_ids([record], IdentityResolver(FlakyService()), errors=errors)

        assert assigned.donors[0].donor_id is None
        assert assigned.donors[1].donor_id is not None
        assert len(errors) == 1
        assert isinstance(errors[0], IdentityAssignmentError)


class TestStudyClassifier:
    def test_harmonized_donor_tagged(self, make_record, make_donor):
        context = RunContext(harmonized_loader=static_loader([("BRCA-UK", "PD1")]))
        classifier = StudyClassifier(context, "PCAWG")
        record = make_record(donors=(make_donor("PD1"), make_donor("PD2")))

        classified = classifier.classify(record)
        assert classified.study == ("PCAWG",)
        assert classified.donors[0].study == "PCAWG"
        assert classified.donors[1].study is None

    def test_study_not_duplicated(self, make_record, make_donor):
        context = RunContext(harmonized_loader=static_loader([("BRCA-UK", "PD1")]))
        record = make_record(study=("PCAWG",), donors=(make_donor("PD1"),))
        assert StudyClassifier(context, "PCAWG").classify(record).study == ("PCAWG",)

    def test_non_harmonized_record_unchanged(self, make_record, make_donor):
        classifier = StudyClassifier(RunContext(), "PCAWG")
        record = make_record(donors=(make_donor("PD1"),))
        assert classifier.classify(record) == record

    def test_unregistered_donor_warned(self, make_record, make_donor):
        context = RunContext(registry_loader=static_loader([("BRCA-UK", "PD1")]))
        classifier = StudyClassifier(context, "PCAWG")
        classifier.classify_all(
            [make_record(donors=(make_donor("PD1"), make_donor("PD9")))]
        )
        assert len(classifier.warnings) == 1
        assert "PD9" in classifier.warnings[0]

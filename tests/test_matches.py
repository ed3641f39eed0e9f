from drejtshkruaj_sync.matches import classify, finding_from_match, findings_from_payload
from drejtshkruaj_sync.models import FindingAction, FindingCategory


def test_classify_from_short_message():
    assert classify("Gabim drejtshkrimore", FindingAction.REPLACE) == FindingCategory.SPELLING
    assert classify("Gabim gramatikore", FindingAction.REPLACE) == FindingCategory.GRAMMAR
    assert classify("Mungon pikë", FindingAction.REPLACE) == FindingCategory.PUNCTUATION
    assert classify("", FindingAction.INSERT_BEFORE) == FindingCategory.INSERTION
    assert classify("", FindingAction.REPLACE, misspelled=True) == FindingCategory.SPELLING
    assert classify("tjeter", FindingAction.REPLACE) == FindingCategory.GRAMMAR


def test_finding_from_match_reads_replace_payload():
    text = "Une shkoj ne shtepi"
    finding = finding_from_match(
        {
            "offset": 0,
            "length": 3,
            "wordform": "Une",
            "shortMessage": "Gabim drejtshkrimore",
            "suggestions": [{"value": "Unë"}, {"value": "Une"}],
        },
        text,
    )

    assert finding is not None
    assert finding.surface_form == "Une"
    assert finding.suggestions == ("Unë", "Une")
    assert finding.category == FindingCategory.SPELLING
    assert finding.origin_offset == 0


def test_finding_from_match_delete_action():
    text = "Ai ai erdhi"
    finding = finding_from_match(
        {"offset": 3, "length": 2, "action": "delete", "shortMessage": "gramatikore"},
        text,
    )

    assert finding.action == FindingAction.DELETE
    assert finding.surface_form == "ai"
    assert finding.category == FindingCategory.GRAMMAR


def test_insert_anchors_to_next_word():
    text = "Ai shkoi shtepi"
    finding = finding_from_match(
        {"offset": 9, "length": 0, "action": "insert", "suggestions": [{"value": "në"}]},
        text,
    )

    assert finding.action == FindingAction.INSERT_BEFORE
    assert (finding.offset, finding.length) == (9, 6)
    assert finding.surface_form == "shtepi"
    assert finding.suggestions == ("në shtepi",)
    assert finding.category == FindingCategory.INSERTION
    assert finding.origin_offset == 9


def test_insert_at_end_anchors_to_previous_word():
    text = "Erdha vone"
    finding = finding_from_match(
        {"offset": 10, "length": 0, "action": "insert", "suggestions": ["sot"]},
        text,
    )

    assert finding.action == FindingAction.INSERT_AFTER
    assert finding.surface_form == "vone"
    assert finding.suggestions == ("vone sot",)


def test_malformed_and_out_of_bounds_matches_are_discarded():
    text = "shkurt"
    matches = [
        {"offset": 0, "length": 6, "wordform": "shkurt"},
        {"offset": 4, "length": 10},
        {"offset": "1", "length": 2},
        {"offset": True, "length": 2},
        {"offset": 2, "length": 0},
        "not a match",
    ]

    findings, discarded = findings_from_payload(matches, text)

    assert [f.surface_form for f in findings] == ["shkurt"]
    assert discarded == 5


def test_findings_from_payload_tolerates_missing_matches():
    assert findings_from_payload(None, "tekst") == ([], 0)

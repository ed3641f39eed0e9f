from drejtshkruaj_sync.chunking import (
    ParagraphRegistry,
    chunk_at,
    chunks_in_range,
    paragraph_bounds,
    split_paragraphs,
    translate_to_chunk,
)
from drejtshkruaj_sync.delta import EditMap
from tests.utils import make_finding


def test_split_paragraphs_uses_start_offsets_as_index():
    text = "Tung\n\n  \nsi je?\nmirë"
    chunks = split_paragraphs(text)

    assert [chunk.text for chunk in chunks] == ["Tung", "si je?", "mirë"]
    assert [chunk.index for chunk in chunks] == [0, 9, 16]
    for chunk in chunks:
        assert chunk.index == chunk.start_offset
        assert text[chunk.start_offset : chunk.end_offset] == chunk.text


def test_split_paragraphs_counts_crlf_once():
    text = "një\r\ndy\r\ntre"
    chunks = split_paragraphs(text)

    assert [chunk.text for chunk in chunks] == ["një", "dy", "tre"]
    assert [chunk.start_offset for chunk in chunks] == [0, 5, 9]


def test_split_paragraphs_empty_text():
    assert split_paragraphs("") == []
    assert split_paragraphs("\n \n") == []


def test_paragraph_bounds_and_chunk_at():
    text = "alfa beta\ngama\r\ndelta"
    assert paragraph_bounds(text, 3) == (0, 9)
    assert paragraph_bounds(text, 9) == (0, 9)
    assert paragraph_bounds(text, 12) == (10, 14)
    assert paragraph_bounds(text, len(text)) == (16, 21)

    assert chunk_at(text, 10).text == "gama"
    assert chunk_at(text, 11) is None
    assert chunk_at(text, 99) is None


def test_chunks_in_range_includes_touching_paragraphs():
    text = "a\nb\nc"
    assert [c.text for c in chunks_in_range(text, 2, 3)] == ["b"]
    assert [c.text for c in chunks_in_range(text, 0, 4)] == ["a", "b", "c"]


def test_translate_to_chunk_drops_out_of_bounds():
    chunk = split_paragraphs("hyrje\nkjo eshte fjali")[1]
    inside = make_finding(4, "eshte")
    outside = make_finding(12, "fjalitepergjate")

    translated = translate_to_chunk([inside, outside], chunk)

    assert len(translated) == 1
    assert translated[0].offset == chunk.start_offset + 4
    assert translated[0].origin_offset == 4


def test_registry_moves_with_edits_and_drops_touched_entries():
    text = "one\ntwo\nthree"
    registry = ParagraphRegistry()
    for chunk in split_paragraphs(text):
        registry.mark(chunk)

    edit_map = EditMap()
    edit_map.record_insert(0, 2)
    dropped = registry.remap(edit_map)

    assert dropped == []
    assert 2 in registry and 6 in registry and 10 in registry
    assert registry.invalidate_range(6, 9) == ["two"]
    assert len(registry) == 2


def test_registry_is_current_compares_text():
    registry = ParagraphRegistry()
    chunk = split_paragraphs("fjali")[0]
    registry.mark(chunk)

    assert registry.is_current(chunk)
    assert not registry.is_current(split_paragraphs("fjali e re")[0])

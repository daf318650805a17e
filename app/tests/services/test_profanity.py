from app.services.profanity import (
    CATEGORY_COMBINED,
    CATEGORY_FOREIGN,
    ProfanityScanner,
    mask,
    scan,
)


def test_clean_text_has_no_spans():
    r = scan("Это тестовый текст")
    assert r.is_clean
    assert r.spans == []
    assert r.unique_terms == []


def test_empty_and_whitespace_text():
    assert scan("").is_clean
    assert scan("   \n\t ").is_clean


def test_match_reports_word_and_offsets():
    text = "Ты сука, понял?"
    r = scan(text)

    assert len(r.spans) == 1
    span = r.spans[0]
    assert span.word == "сука"
    assert text[span.start:span.end] == "сука"
    assert r.unique_terms == ["сука"]


def test_case_insensitive_keeps_original_spelling():
    r = scan("What the FUCK is this")
    assert [s.word for s in r.spans] == ["FUCK"]
    assert r.unique_terms == ["fuck"]
    assert r.spans[0].category == CATEGORY_FOREIGN
    assert r.spans[0].severity == "medium"


def test_whole_words_only():
    # stems inside longer words are not flagged
    assert scan("shitty scunthorpe assassin").is_clean


def test_longest_term_wins_at_same_position():
    r = scan("you motherfucker")
    assert [s.word for s in r.spans] == ["motherfucker"]


def test_spans_sorted_and_terms_unique_in_first_seen_order():
    r = scan("shit happens, bitch, shit again")
    assert [s.word for s in r.spans] == ["shit", "bitch", "shit"]
    assert [s.start for s in r.spans] == sorted(s.start for s in r.spans)
    assert r.unique_terms == ["shit", "bitch"]


def test_combined_terms_are_high_severity():
    r = scan("ну пиздец")
    assert r.spans[0].category == CATEGORY_COMBINED
    assert r.spans[0].severity == "high"


def test_safe_words_are_never_flagged():
    scanner = ProfanityScanner(lexicon={"mild": ["облачный"]}, safe_words=["облачный"])
    assert scanner.scan("облачный сервис").is_clean


def test_short_terms_are_ignored():
    scanner = ProfanityScanner(lexicon={"mild": ["ab", "abc"]}, safe_words=[])
    r = scanner.scan("ab abc")
    assert [s.word for s in r.spans] == ["abc"]


def test_mask_replaces_spans_with_stars():
    assert mask("what the fuck, man") == "what the ****, man"
    assert mask("nothing to see") == "nothing to see"

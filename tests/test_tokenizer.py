from expense_categorizer.domain.tokenizer import ScriptRange, Tokenizer


def test_tokens_lowercase_and_drop_short_words():
    tokenizer = Tokenizer()
    assert list(tokenizer.tokens("BP Sabir DIGITAL, Office-Supply #12")) == [
        "sabir", "digital", "office", "supply",
    ]


def test_tokens_keep_arabic_script_words():
    tokenizer = Tokenizer()
    assert list(tokenizer.tokens("بجلی bill واپڈا")) == ["بجلی", "bill", "واپڈا"]


def test_token_sequence_is_restartable():
    tokens = Tokenizer().tokens("monthly electricity bill")
    assert list(tokens) == list(tokens) == ["monthly", "electricity", "bill"]


def test_characters_outside_configured_scripts_split_words():
    latin_only = Tokenizer(script_ranges=())
    assert list(latin_only.tokens("بجلی bill")) == ["bill"]

    cyrillic = Tokenizer(script_ranges=(ScriptRange("cyrillic", 0x0400, 0x04FF),))
    assert list(cyrillic.tokens("счёт bill")) == ["счёт", "bill"]


def test_empty_text_yields_nothing():
    tokenizer = Tokenizer()
    assert list(tokenizer.tokens("")) == []
    assert tokenizer.token_set("a b") == frozenset()

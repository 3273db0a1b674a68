"""Tests for @mention extraction."""

import pytest

from marias.envelopes import MAX_USER_ID
from marias.mentions import extract_mention_tokens, numeric_user_id, unique_in_order


def test_extracts_in_order():
    assert extract_mention_tokens("@ana hi @bruno") == ["ana", "bruno"]


def test_greedy_word_characters():
    assert extract_mention_tokens("ping @ana_maria2, please") == ["ana_maria2"]


def test_bare_at_sign_is_not_a_mention():
    assert extract_mention_tokens("email me @ once") == []


def test_email_address_yields_domain_token():
    # "@" followed by word characters always matches
    assert extract_mention_tokens("a@b.com") == ["b"]


def test_numeric_token():
    assert extract_mention_tokens("@7 look") == ["7"]


def test_no_mentions():
    assert extract_mention_tokens("plain text") == []


def test_unique_in_order():
    assert unique_in_order([3, 1, 3, 2, 1]) == [3, 1, 2]


def test_superscript_digit_is_a_token():
    assert extract_mention_tokens("see @² please") == ["²"]


def test_numeric_user_id():
    assert numeric_user_id("7") == 7
    assert numeric_user_id(str(MAX_USER_ID)) == MAX_USER_ID


@pytest.mark.parametrize(
    "token", ["ana", "²", "٣", "0", "007x", str(MAX_USER_ID + 1)]
)
def test_numeric_user_id_rejects(token):
    assert numeric_user_id(token) is None

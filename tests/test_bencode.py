import pytest

from apricot.bencode import (
    BencodeError,
    decode,
    encode,
    parse_dictionary,
    parse_integer,
    parse_list,
    parse_string,
    parse_token,
)
from apricot.scanner import Scanner


def test_decode_string():
    assert decode(b"4:spam") == [b"spam"]


def test_decode_integers():
    assert decode(b"i3e") == [3]
    assert decode(b"i-3e") == [-3]


def test_decode_list():
    assert decode(b"l4:spam4:eggse") == [[b"spam", b"eggs"]]


def test_decode_dictionary():
    assert decode(b"d3:cow3:moo4:spam4:eggse") == [{"cow": b"moo", "spam": b"eggs"}]


def test_decode_nested_dictionary():
    assert decode(b"d4:spaml1:a1:bee") == [{"spam": [b"a", b"b"]}]


def test_decode_empty_containers_and_input():
    assert decode(b"le") == [[]]
    assert decode(b"de") == [{}]
    assert decode(b"") == []


def test_decode_accepts_text():
    assert decode("4:spam") == [b"spam"]


def test_decode_multiple_top_level_values():
    assert decode(b"i3e4:spam") == [3, b"spam"]


def test_decode_allows_whitespace_between_tokens():
    assert decode(b"\ti3e\n 4:spam") == [3, b"spam"]
    assert decode(b"l 4:spam\n4:eggs e") == [[b"spam", b"eggs"]]
    assert decode(b"d 3:cow 3:moo e") == [{"cow": b"moo"}]
    assert decode(b"\x85\xa0i3e") == [3]


@pytest.mark.parametrize(
    "data",
    [
        b"x",
        b"i3",
        b"ixe",
        b"ie",
        b"5:spam",
        b"4spam",
        b"-1:a",
        b"di3e4:spame",
        b"i3e ",
        b"l4:spam ",
    ],
)
def test_decode_errors(data):
    with pytest.raises(BencodeError):
        decode(data)


def test_bencode_error_is_value_error():
    with pytest.raises(ValueError):
        decode(b"?")


def test_parse_string_restores_position_on_failure():
    scanner = Scanner(b"4spam")
    with pytest.raises(BencodeError):
        parse_string(scanner)
    assert scanner.index == 0


def test_parse_string_positions_after_value():
    scanner = Scanner(b"4:spami3e")
    assert parse_string(scanner) == b"spam"
    assert scanner.peek(1) == b"i"


def test_parse_integer_positions_after_value():
    scanner = Scanner(b"i-3e4:spam")
    assert parse_integer(scanner) == -3
    assert parse_string(scanner) == b"spam"
    assert scanner.ended()


def test_parse_list_and_dictionary_directly():
    assert parse_list(Scanner(b"l4:spam4:eggse")) == [b"spam", b"eggs"]
    assert parse_dictionary(Scanner(b"d3:cow3:mooe")) == {"cow": b"moo"}


def test_parse_token_dispatches():
    assert parse_token(Scanner(b"i3e")) == 3
    assert parse_token(Scanner(b"4:spam")) == b"spam"
    with pytest.raises(BencodeError):
        parse_token(Scanner(b""))


def test_encode_scalars():
    assert encode("spam") == b"4:spam"
    assert encode(b"spam") == b"4:spam"
    assert encode(3) == b"i3e"
    assert encode(-3) == b"i-3e"


def test_encode_list():
    assert encode([b"spam", "eggs"]) == b"l4:spam4:eggse"
    assert encode(()) == b"le"


def test_encode_dictionary_sorts_keys():
    assert encode({"spam": b"eggs", "cow": b"moo"}) == b"d3:cow3:moo4:spam4:eggse"
    assert encode({"spam": ["a", "b"]}) == b"d4:spaml1:a1:bee"
    assert encode({}) == b"de"


def test_encode_dictionary_accepts_bytes_keys():
    assert encode({b"spam": b"eggs", "cow": b"moo"}) == b"d3:cow3:moo4:spam4:eggse"


@pytest.mark.parametrize("value", [1.5, True, None, object(), [1, None], {"a": None}])
def test_encode_rejects_unserializable(value):
    with pytest.raises(BencodeError):
        encode(value)


def test_encode_rejects_non_string_keys():
    with pytest.raises(BencodeError):
        encode({1: b"one"})


def test_round_trip_metainfo_like_structure():
    value = {
        "announce": b"http://tracker.example.com/announce",
        "info": {
            "name": b"sample",
            "piece length": 262144,
            "pieces": bytes(range(40)),
            "files": [
                {"length": 10, "path": [b"dir", b"a.txt"]},
                {"length": 0, "path": [b"b.txt"]},
            ],
        },
    }
    assert decode(encode(value)) == [value]


def test_round_trip_binary_string():
    data = bytes(range(256))
    assert decode(encode(data)) == [data]


def test_round_trip_large_integer():
    number = 2**80
    assert decode(encode(number)) == [number]
    assert decode(encode(-number)) == [-number]


def test_encoded_string_length_prefix_matches_utf8_bytes():
    text = "héllo"
    encoded = encode(text)
    length, _, body = encoded.partition(b":")
    assert int(length) == len(body)
    assert decode(encoded) == [text.encode("utf-8")]
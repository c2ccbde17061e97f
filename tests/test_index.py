import pytest

from wlcpoll.telemetry import IndexEncoding, MalformedIndex, resolve_index
from wlcpoll.telemetry.index import decode_binary_suffix, split_arcs

MAC_ARCS = ["0", "17", "34", "51", "68", "85"]


def test_both_encodings_of_same_mac_produce_same_key():
    binary = resolve_index(IndexEncoding.BINARY_SUFFIX, MAC_ARCS)
    dotted = resolve_index(IndexEncoding.DECIMAL_DOTTED, MAC_ARCS, width=6)
    assert binary == dotted == "001122334455"


def test_decimal_dotted_truncates_radio_slot():
    slot0 = resolve_index(IndexEncoding.DECIMAL_DOTTED, MAC_ARCS + ["0"], width=6)
    slot1 = resolve_index(IndexEncoding.DECIMAL_DOTTED, MAC_ARCS + ["1"], width=6)
    assert slot0 == slot1 == "001122334455"


def test_keys_are_lowercase_hex():
    key = resolve_index(IndexEncoding.BINARY_SUFFIX, ["170", "187", "204", "221", "238", "255"])
    assert key == "aabbccddeeff"


def test_binary_suffix_packs_large_arcs_as_words():
    assert decode_binary_suffix(["1", "256"]) == bytes.fromhex("0000000100000100")


@pytest.mark.parametrize("arcs", [
    [],
    ["0", "17", "x", "51", "68", "85"],
    ["0", "17", "-1", "51", "68", "85"],
    ["0", "17", "", "51", "68", "85"],
])
def test_malformed_binary_suffix(arcs):
    with pytest.raises(MalformedIndex):
        resolve_index(IndexEncoding.BINARY_SUFFIX, arcs)


def test_decimal_dotted_rejects_arc_over_255():
    with pytest.raises(MalformedIndex):
        resolve_index(IndexEncoding.DECIMAL_DOTTED, ["0", "17", "300", "51", "68", "85"], width=6)


def test_decimal_dotted_rejects_short_index():
    with pytest.raises(MalformedIndex):
        resolve_index(IndexEncoding.DECIMAL_DOTTED, ["0", "17", "34"], width=6)


def test_split_arcs_tolerates_leading_dot():
    assert split_arcs(".1.3.6") == split_arcs("1.3.6") == ["1", "3", "6"]
    assert split_arcs("") == []

"""test_pagination.py — Continuation token codec tests.

Run from shared_layer directory:
    PYTHONPATH=python python3 -m pytest test_pagination.py -v
"""

from __future__ import annotations

import base64
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "python"))

from engtasks_shared.pagination import decode_token, encode_token, is_well_formed

_KEY = {"PK": {"S": "TASK#42"}, "SK": {"S": "TASK#42"}, "status": {"S": "open"}}


def test_round_trip_and_well_formed():
    token = encode_token(_KEY)
    assert decode_token(token) == _KEY
    assert is_well_formed(token)


def test_encoding_is_deterministic():
    reordered = {"status": {"S": "open"}, "SK": {"S": "TASK#42"}, "PK": {"S": "TASK#42"}}
    assert encode_token(reordered) == encode_token(_KEY)


@pytest.mark.parametrize(
    "token",
    [
        "",
        "   ",
        None,
        123,
        "not-base64!!!",
        "aGVsbG8",  # missing padding
        "aGVsbG8=",  # "hello" is not JSON
        "e31=",  # non-canonical encoding of "{}"
        "e30=\n",
        "ééé",
    ],
)
def test_malformed_tokens_rejected(token):
    assert not is_well_formed(token)


def test_canonical_empty_object_is_well_formed():
    assert is_well_formed(base64.b64encode(b"{}").decode())


def test_decode_rejects_garbage():
    with pytest.raises(ValueError):
        decode_token("!!")
    with pytest.raises(ValueError):
        decode_token(base64.b64encode(b"\xff\xfe").decode())

from types import SimpleNamespace

from modules.forms.services.integrity import canonical_json, digest, verify


def test_digest_is_deterministic_regardless_of_key_order():
    a = {"port": "Rotterdam", "crew_count": 21, "checks": {"b": 1, "a": 2}}
    b = {"checks": {"a": 2, "b": 1}, "crew_count": 21, "port": "Rotterdam"}
    assert digest(a) == digest(b)
    assert len(digest(a)) == 64


def test_digest_changes_when_data_changes():
    assert digest({"berth": "B12"}) != digest({"berth": "B14"})


def test_canonical_json_is_compact_and_sorted():
    assert canonical_json({"b": 1, "a": "ø"}) == '{"a":"ø","b":1}'.encode("utf-8")


def test_empty_payloads_share_a_digest():
    assert digest({}) == digest(None)


def test_verify_detects_tampering():
    record = SimpleNamespace(form_data={"port": "Oslo"}, content_hash=digest({"port": "Oslo"}))
    assert verify(record)
    record.form_data["port"] = "Bergen"
    assert not verify(record)

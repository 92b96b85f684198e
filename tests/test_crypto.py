import re
from sellerbank.accounts.utils import signed_meta
from sellerbank.security.crypto import (canonical_json, generate_account_number, generate_secure_transaction_id,
                                        mask_account_number, mask_pix_key, mask_sensitive_data, sign_data,
                                        transaction_payload, verify_signature)
from sellerbank.security.financial import sanitize_input, validate_request_integrity


def test_transaction_id_format():
    txn_id = generate_secure_transaction_id()
    assert re.fullmatch(r"TXN-\d{13}-[0-9a-f]{16}", txn_id)
    assert generate_secure_transaction_id() != txn_id


def test_account_number_format():
    assert re.fullmatch(r"MYD\d{10}", generate_account_number())


def test_canonical_json_is_key_order_independent():
    assert canonical_json({"b": 1, "a": 2}) == canonical_json({"a": 2, "b": 1}) == '{"a":2,"b":1}'


def test_sign_and_verify():
    payload = transaction_payload("TXN-1-abc", "MYD1000000001", "MYD2000000002", 10_000, 1_700_000_000_000)
    signature = sign_data(payload)
    assert len(signature) == 64
    assert verify_signature(payload, signature)

    tampered = {**payload, "amount": 10_001}
    assert not verify_signature(tampered, signature)
    assert not verify_signature(payload, None)
    assert not verify_signature(payload, sign_data(payload, secret="another-secret"))


def test_signed_meta_matches_on_both_sides():
    out_meta = signed_meta("TXN-1-abc", "MYD1000000001", "MYD2000000002", -500, 1_700_000_000_000)
    in_meta = signed_meta("TXN-1-abc", "MYD2000000002", "MYD1000000001", 500, 1_700_000_000_000)
    assert out_meta["signature"] == in_meta["signature"]
    assert out_meta["counterparty"] == "MYD2000000002"
    assert out_meta["signed_at"] == 1_700_000_000_000


def test_masking():
    assert mask_account_number("MYD1234567890") == "*********7890"
    assert mask_account_number("123") == "***"
    assert mask_account_number(None) is None
    assert mask_pix_key("12345678901") == "****8901"
    masked = mask_sensitive_data({"account_number": "MYD1234567890", "pix_key": "ana@loja.test", "amount": 10})
    assert masked == {"account_number": "*********7890", "pix_key": "*********test", "amount": 10}


def test_sanitize_input():
    assert sanitize_input("  <script>alert('x')</script>  ") == "scriptalert(x)/script"
    assert sanitize_input(None) == ""
    assert len(sanitize_input("a" * 600)) == 500


def test_validate_request_integrity():
    assert validate_request_integrity({"a": 1, "b": 0}, ("a", "b")) == (True, [])
    assert validate_request_integrity({"a": "", "b": None}, ("a", "b", "c")) == (False, ["a", "b", "c"])

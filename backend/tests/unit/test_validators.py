from decimal import Decimal

from datamarket.validators import (
    file_type_for,
    is_allowed_upload,
    normalize_tags,
    processing_fee,
    sanitize_filename,
    tag_errors,
    validate_email,
    validate_eth_address,
    validate_tx_hash,
)


def test_normalize_tags_accepts_csv_json_and_lists():
    assert normalize_tags("a, b ,,a") == ["a", "b"]
    assert normalize_tags('["x", " y ", "x"]') == ["x", "y"]
    assert normalize_tags(["one", "two", "one"]) == ["one", "two"]
    assert normalize_tags(None) == []


def test_normalize_tags_equivalent_inputs():
    assert normalize_tags("a, b, a, ") == normalize_tags('["a","b"]') == ["a", "b"]


def test_normalize_tags_is_case_sensitive():
    assert normalize_tags("Health,health") == ["Health", "health"]


def test_normalize_tags_broken_json_falls_back_to_csv():
    assert normalize_tags("[a,b") == ["[a", "b"]


def test_tag_errors_limits():
    assert tag_errors(["t"] * 10) == []
    assert tag_errors(["t%d" % i for i in range(11)]) == ["tags: Maximum 10 tags allowed"]
    assert tag_errors(["x" * 31]) == ["tags: Each tag must be 30 characters or less"]


def test_processing_fee_is_two_percent_rounded_half_up():
    assert processing_fee(Decimal("0.5")) == Decimal("0.01000000")
    assert processing_fee(Decimal("0")) == Decimal("0")
    # 0.00000025 * 0.02 = 0.000000005 -> rounds up at the 8th place
    assert processing_fee(Decimal("0.00000025")) == Decimal("0.00000001")
    assert processing_fee(Decimal("1000")) == Decimal("20.00000000")


def test_eth_address_and_tx_hash():
    assert validate_eth_address("0x" + "ab" * 20)
    assert not validate_eth_address("0x123")
    assert not validate_eth_address("ab" * 21)
    assert validate_tx_hash("0x" + "0f" * 32)
    assert not validate_tx_hash("0x" + "0f" * 31)


def test_email_format():
    assert validate_email("a.b@example.org")
    assert not validate_email("no-at-sign.example.org")
    assert not validate_email("a@b")


def test_upload_type_by_extension_or_mime():
    assert is_allowed_upload("data.csv", None)
    assert is_allowed_upload("blob.bin", "application/json")
    assert not is_allowed_upload("run.exe", "application/octet-stream")
    assert file_type_for("DATA.XLSX") == "xlsx"
    assert file_type_for("notes.txt") == "other"


def test_sanitize_filename_strips_paths():
    assert sanitize_filename("../../etc/passwd") == "passwd"
    assert sanitize_filename("") == "dataset"
    assert len(sanitize_filename("a" * 400 + ".csv")) == 255

"""Settlement status normalization tests."""
import pytest

from business.status import PaymentStatus, normalize_status


class TestNormalizeStatus:
    @pytest.mark.parametrize("raw, expected", [
        ("COMPLETED", PaymentStatus.COMPLETED),
        ("completed", PaymentStatus.COMPLETED),
        ("Completed", PaymentStatus.COMPLETED),
        ("REQUESTED", PaymentStatus.IN_PROGRESS),
        ("in_progress", PaymentStatus.IN_PROGRESS),
        ("IN_PROGRESS", PaymentStatus.IN_PROGRESS),
        ("PENDING", PaymentStatus.PENDING),
        ("", PaymentStatus.PENDING),
        (None, PaymentStatus.PENDING),
        ("paid", PaymentStatus.PENDING),
        (" completed ", PaymentStatus.PENDING),
    ])
    def test_known_and_unknown_values(self, raw, expected):
        assert normalize_status(raw) is expected

    @pytest.mark.parametrize("raw", [
        "COMPLETED", "requested", "pending", "", None, "??", "in_progress", "완료",
    ])
    def test_idempotent_and_canonical(self, raw):
        once = normalize_status(raw)
        assert normalize_status(once) is once
        assert normalize_status(once.value) is once
        assert once in set(PaymentStatus)

    def test_values_are_lowercase_strings(self):
        assert [s.value for s in PaymentStatus] == ["pending", "in_progress", "completed"]
        assert str(PaymentStatus.IN_PROGRESS) == "in_progress"

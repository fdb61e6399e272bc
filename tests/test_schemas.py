import pytest

from portfolio.schemas import IngestRequest, normalize_address


CHECKSUMMED = "0x52908400098527886E0F7030069857D2E4169EE7"


class TestNormalizeAddress:
    """
    Unit tests for wallet address validation.
    """

    @pytest.mark.parametrize("value", [
        CHECKSUMMED.lower(),
        "0x" + CHECKSUMMED[2:].upper(),
        CHECKSUMMED,
        f"  {CHECKSUMMED}  ",
    ])
    def test_accepts_single_case_or_valid_checksum(self, value):
        assert normalize_address(value) == CHECKSUMMED

    @pytest.mark.parametrize("value", [
        "0x52908400098527886e0F7030069857D2E4169EE7",
        "0x52908400098527886E0F7030069857D2E4169Ee7",
    ])
    def test_rejects_mixed_case_with_wrong_checksum(self, value):
        with pytest.raises(ValueError):
            normalize_address(value)

    @pytest.mark.parametrize("value", ["", "0x123", "52908400098527886e0f7030069857d2e4169ee7", "0x" + "g" * 40])
    def test_rejects_malformed(self, value):
        with pytest.raises(ValueError):
            normalize_address(value)

    def test_request_model_normalizes(self):
        assert IngestRequest(address=CHECKSUMMED.lower()).address == CHECKSUMMED

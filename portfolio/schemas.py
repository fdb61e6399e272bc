from pydantic import BaseModel, ConfigDict, Field, field_validator
from web3 import Web3


def normalize_address(value: str) -> str:
    """
    Validate an EVM address and return its EIP-55 checksum form.

    Parameters
    ----------
    value : str
        Address in any letter case

    Returns
    -------
    str
        Checksum address

    Raises
    ------
    ValueError
        If the value is not a valid address
    """
    value = value.strip()
    if not value.startswith('0x') or len(value) != 42 or not Web3.is_address(value):
        raise ValueError('Invalid EVM address format')
    digits = value[2:]
    # mixed case means the caller claims an EIP-55 checksum
    if digits != digits.lower() and digits != digits.upper() and not Web3.is_checksum_address(value):
        raise ValueError('Invalid EVM address checksum')
    return Web3.to_checksum_address(value)


class IngestRequest(BaseModel):
    """
    Query parameters for ingesting a wallet.

    Attributes
    ----------
    address : str | None
        Wallet address; falls back to the configured seed address
    limit : int | None
        Maximum number of balances kept per network for this call
    """
    address: str | None = Field(default=None, description="Wallet address to ingest")
    limit: int | None = Field(default=None, gt=0, description="Per-network balance cap")

    @field_validator('address')
    @classmethod
    def validate_address(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return normalize_address(v)


class PortfolioRequest(BaseModel):
    """
    Query parameters for reading a portfolio.

    Attributes
    ----------
    address : str
        Wallet address
    """
    address: str = Field(..., description="Wallet address to value")

    @field_validator('address')
    @classmethod
    def validate_address(cls, v: str) -> str:
        return normalize_address(v)


class IngestCounts(BaseModel):
    balances: int


class IngestResponse(BaseModel):
    """
    Response schema for ingest.

    Attributes
    ----------
    status : str
        Always "queued": enrichment continues in the background
    message : str
        Human-readable status
    address : str
        Normalized wallet address
    counts : IngestCounts
        Number of balances written
    """
    status: str = "queued"
    message: str = "Balances stored. Metadata & prices are refreshing in the background."
    address: str
    counts: IngestCounts


class HoldingResponse(BaseModel):
    """
    Response schema for a single holding.
    """
    network_id: int
    contract: str
    symbol: str
    name: str
    decimals: int
    amount: float
    usd: float | None
    logo: str | None

    model_config = ConfigDict(from_attributes=True)


class PortfolioResponse(BaseModel):
    """
    Response schema for portfolio query.

    Attributes
    ----------
    address : str
        Normalized wallet address
    items : list[HoldingResponse]
        Holdings sorted by USD value then amount
    """
    address: str
    items: list[HoldingResponse]


class StatsResponse(BaseModel):
    """
    Response schema for store statistics.
    """
    networks: int
    addresses: int
    balances: int
    tokens: int
    prices: int

    model_config = ConfigDict(from_attributes=True)

from typing import Literal
from pydantic import BaseModel, ConfigDict


PLACEHOLDER_SYMBOL = "UNK"
PLACEHOLDER_NAME = "Unknown"
DEFAULT_DECIMALS = 18


class ProviderBalanceEntity(BaseModel):
    """
    Entity representing one ERC-20 balance reported by the balance provider.

    Attributes
    ----------
    contract_address : str
        Token contract address (lower-case)
    raw_balance : str
        Balance in base units as a decimal integer string
    """
    contract_address: str
    raw_balance: str

    model_config = ConfigDict(from_attributes=True)


class TokenMetadataEntity(BaseModel):
    """
    Entity representing token metadata resolved by the pricing service.

    Attributes
    ----------
    price_feed_id : str | None
        Identifier used to request quotes
    name : str
        Token name
    symbol : str
        Upper-cased ticker
    decimals : int
        Decimal places on the requested network
    logo : str | None
        Small logo URL
    """
    price_feed_id: str | None
    name: str
    symbol: str
    decimals: int
    logo: str | None

    model_config = ConfigDict(from_attributes=True)


class TokenEntity(BaseModel):
    """
    Entity representing a stored token in one of two states.

    A ``placeholder`` token only proves the contract has been seen; a
    ``resolved`` token carries metadata from the pricing service. Consumers
    never need to special-case missing rows: ``TokenEntity.placeholder``
    yields the same shape the store holds before enrichment.

    Attributes
    ----------
    contract : str
        Token contract address (lower-case)
    network_id : int
        Chain id
    symbol : str
        Ticker
    name : str
        Token name
    decimals : int
        Decimal places
    logo : str | None
        Logo URL
    price_feed_id : str | None
        Identifier used to request quotes
    """
    contract: str
    network_id: int
    symbol: str
    name: str
    decimals: int
    logo: str | None = None
    price_feed_id: str | None = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def placeholder(cls, contract: str, network_id: int) -> "TokenEntity":
        return cls(
            contract=contract,
            network_id=network_id,
            symbol=PLACEHOLDER_SYMBOL,
            name=PLACEHOLDER_NAME,
            decimals=DEFAULT_DECIMALS
        )

    @classmethod
    def resolved(
        cls,
        contract: str,
        network_id: int,
        metadata: TokenMetadataEntity
    ) -> "TokenEntity":
        return cls(
            contract=contract,
            network_id=network_id,
            **metadata.model_dump()
        )

    @property
    def state(self) -> Literal["placeholder", "resolved"]:
        if self.price_feed_id is None and self.symbol == PLACEHOLDER_SYMBOL:
            return "placeholder"
        return "resolved"


class BalanceEntity(BaseModel):
    """
    Entity representing a stored balance row.

    Attributes
    ----------
    address_id : str
        Wallet address
    contract : str
        Token contract address
    network_id : int
        Chain id
    raw_balance : str
        Balance in base units
    """
    address_id: str
    contract: str
    network_id: int
    raw_balance: str

    model_config = ConfigDict(from_attributes=True)


class HoldingEntity(BaseModel):
    """
    Entity representing one valued position of a portfolio.

    Attributes
    ----------
    network_id : int
        Chain id
    contract : str
        Token contract address
    symbol : str
        Ticker
    name : str
        Token name
    decimals : int
        Decimal places used for ``amount``
    amount : float
        Human-readable amount
    usd : float | None
        USD valuation, None when no quote is stored
    logo : str | None
        Logo URL
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


class IngestResultEntity(BaseModel):
    """
    Entity representing the outcome of a synchronous ingest.

    Attributes
    ----------
    address : str
        Normalized wallet address
    inserted_count : int
        Number of balance rows written
    touched_contracts : dict[str, list[str]]
        De-duplicated contracts per price platform, handed to enrichment
    """
    address: str
    inserted_count: int
    touched_contracts: dict[str, list[str]]

    model_config = ConfigDict(frozen=True)


class StatsEntity(BaseModel):
    """
    Entity representing row counts of the store.
    """
    networks: int
    addresses: int
    balances: int
    tokens: int
    prices: int

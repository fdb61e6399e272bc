from pydantic import BaseModel, ConfigDict


class NetworkEntity(BaseModel):
    """
    Supported chain.

    Attributes
    ----------
    id : int
        EVM chain id
    slug : str
        Short network name
    name : str
        Display name
    price_platform : str
        CoinGecko asset platform key
    balance_chain : str
        Moralis chain identifier
    """
    id: int
    slug: str
    name: str
    price_platform: str
    balance_chain: str

    model_config = ConfigDict(frozen=True)


ETHEREUM = NetworkEntity(
    id=1,
    slug="ethereum",
    name="Ethereum",
    price_platform="ethereum",
    balance_chain="eth"
)

AVALANCHE = NetworkEntity(
    id=43114,
    slug="avalanche",
    name="Avalanche C-Chain",
    price_platform="avalanche",
    balance_chain="avalanche"
)

NETWORKS: tuple[NetworkEntity, ...] = (ETHEREUM, AVALANCHE)

NETWORKS_BY_PLATFORM: dict[str, NetworkEntity] = {
    network.price_platform: network for network in NETWORKS
}

import logging
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional, Union
import httpx
from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError
from config.settings import settings
from src.data.models import Quote, OHLCV


logger = logging.getLogger(__name__)


class QuoteSourceError(Exception):
    """Raised when market data cannot be fetched or understood."""


def _number_or_none(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


LenientFloat = Annotated[Optional[float], BeforeValidator(_number_or_none)]


# Response schemas
class UsdQuote(BaseModel):
    """USD quote block; any numeric field may be absent."""
    model_config = ConfigDict(extra="ignore")

    price: LenientFloat = None
    open: LenientFloat = None
    high: LenientFloat = None
    low: LenientFloat = None
    close: LenientFloat = None
    volume: LenientFloat = None
    volume_24h: LenientFloat = None
    market_cap: LenientFloat = None
    percent_change_1h: LenientFloat = None
    percent_change_24h: LenientFloat = None
    last_updated: Optional[str] = None
    timestamp: Optional[str] = None

    def value(self, name: str) -> float:
        """Numeric field value, 0.0 when missing."""
        value = getattr(self, name, None)
        return 0.0 if value is None else value


class CoinQuote(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: Optional[str] = None
    quote: Dict[str, UsdQuote] = {}

    @property
    def usd(self) -> Optional[UsdQuote]:
        return self.quote.get("USD")


class LatestQuotesResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: Dict[str, Union[CoinQuote, List[CoinQuote]]] = {}

    def coin(self, symbol: str) -> Optional[CoinQuote]:
        entry = self.data.get(symbol)
        if isinstance(entry, list):
            return entry[0] if entry else None
        return entry


class HistoricalQuote(BaseModel):
    model_config = ConfigDict(extra="ignore")

    time_open: Optional[str] = None
    quote: Dict[str, UsdQuote] = {}

    @property
    def usd(self) -> Optional[UsdQuote]:
        return self.quote.get("USD")


class HistoricalQuotes(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: Optional[str] = None
    quotes: List[HistoricalQuote] = []


class HistoricalResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: Optional[HistoricalQuotes] = None


class ListingEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symbol: Optional[str] = None


class ListingResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: List[ListingEntry] = []


QUOTE_FIELDS = {
    "open": "open",
    "high": "high",
    "low": "low",
    "close": "close",
    "volume": "volume_24h",
}


def parse_latest_quote(payload: Optional[Dict], symbol: str) -> Quote:
    """Build a Quote from a latest-quotes payload.

    Missing OHLCV fields default to 0.0. A payload without a USD quote for
    the symbol is a failure.
    """
    try:
        response = LatestQuotesResponse.model_validate(payload or {})
    except ValidationError as e:
        raise QuoteSourceError(f"Malformed quote payload for {symbol}: {e}") from e

    coin = response.coin(symbol)
    usd = coin.usd if coin else None
    if usd is None:
        raise QuoteSourceError(f"No quote data for symbol {symbol}")

    values = {}
    for field, source in QUOTE_FIELDS.items():
        if getattr(usd, source) is None:
            logger.warning(f"Missing property '{source}' in API response for {symbol}")
        values[field] = usd.value(source)

    try:
        return Quote(
            symbol=symbol,
            price=usd.price,
            timestamp=datetime.now(),
            **values
        )
    except ValidationError as e:
        raise QuoteSourceError(f"Invalid quote values for {symbol}: {e}") from e


def parse_historical_response(payload: Optional[Dict]) -> List[OHLCV]:
    """Convert a historical OHLCV payload into daily bars, oldest first.

    Entries without a USD quote are skipped and missing numeric fields default
    to 0.0. A missing or unparseable payload yields an empty list.
    """
    if not payload:
        return []

    try:
        response = HistoricalResponse.model_validate(payload)
    except ValidationError as e:
        logger.error(f"Error parsing historical data: {e}")
        return []

    if response.data is None:
        return []

    ohlcv_data = []
    for entry in response.data.quotes:
        usd = entry.usd
        if usd is None:
            continue

        ohlcv_data.append(OHLCV(
            date=(entry.time_open or usd.timestamp or "")[:10],
            open=usd.value("open"),
            high=usd.value("high"),
            low=usd.value("low"),
            close=usd.value("close"),
            volume=usd.value("volume")
        ))

    return ohlcv_data


def parse_symbols(payload: Optional[Dict]) -> List[str]:
    """Symbols listed in a listings or trending payload."""
    if not payload:
        return []

    try:
        response = ListingResponse.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Error extracting symbols: {e}")
        return []

    return [entry.symbol for entry in response.data if entry.symbol]


class CoinMarketCapClient:
    """Async client for CoinMarketCap API integration."""

    def __init__(self, api_key: str = None, base_url: str = None, transport: httpx.AsyncBaseTransport = None):
        self.api_key = api_key or settings.coinmarketcap_api_key
        self.base_url = base_url or settings.coinmarketcap_base_url
        self.timeout = settings.request_timeout_seconds
        self.transport = transport

        self.headers = {
            "X-CMC_PRO_API_KEY": self.api_key,
            "Accept": "application/json"
        }

    async def _make_request(self, method: str, endpoint: str, params: Dict = None) -> Dict[Any, Any]:
        """Make an async HTTP request to the CoinMarketCap API."""
        url = f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

        async with httpx.AsyncClient(transport=self.transport) as client:
            try:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self.headers,
                    params=params,
                    timeout=self.timeout
                )
                response.raise_for_status()
                return response.json()

            except httpx.HTTPStatusError as e:
                logger.error(f"CoinMarketCap API error {e.response.status_code}: {e.response.text}")
                raise QuoteSourceError(f"HTTP {e.response.status_code} from {endpoint}") from e
            except Exception as e:
                logger.error(f"API request failed: {str(e)}")
                raise QuoteSourceError(f"Request to {endpoint} failed: {e}") from e

    async def get_latest_quote(self, symbol: str) -> Quote:
        """Get the latest quote for a symbol."""
        params = {"symbol": symbol}
        data = await self._make_request("GET", "/v1/cryptocurrency/quotes/latest", params=params)
        return parse_latest_quote(data, symbol)

    async def get_latest_prices(self, symbols: List[str]) -> Dict[str, float]:
        """Get the latest USD price for multiple symbols."""
        if not symbols:
            return {}

        params = {"symbol": ",".join(symbols)}
        data = await self._make_request("GET", "/v1/cryptocurrency/quotes/latest", params=params)

        try:
            response = LatestQuotesResponse.model_validate(data or {})
        except ValidationError as e:
            logger.warning(f"Error extracting multiple crypto prices: {e}")
            return {}

        prices = {}
        for symbol in symbols:
            coin = response.coin(symbol)
            usd = coin.usd if coin else None
            if usd is not None and usd.price is not None:
                prices[symbol] = usd.price

        return prices

    async def get_historical_data(self, symbol: str, days: int = 30) -> List[OHLCV]:
        """Get daily OHLCV history for a symbol, oldest first."""
        params = {
            "symbol": symbol,
            "count": days,
            "interval": "daily"
        }
        data = await self._make_request("GET", "/v1/cryptocurrency/ohlcv/historical", params=params)
        return parse_historical_response(data)

    async def get_top_cryptos(self, limit: int = 10) -> List[str]:
        """Symbols of the top listings by market cap."""
        data = await self._make_request("GET", "/v1/cryptocurrency/listings/latest", params={"limit": limit})
        return parse_symbols(data)

    async def get_trending_cryptos(self, limit: int = 5) -> List[str]:
        """Symbols currently trending."""
        data = await self._make_request("GET", "/v1/cryptocurrency/trending/latest", params={"limit": limit})
        return parse_symbols(data)

    async def get_most_viewed_cryptos(self, limit: int = 5) -> List[str]:
        """Symbols of the biggest gainers and losers."""
        data = await self._make_request("GET", "/v1/cryptocurrency/trending/gainers-losers", params={"limit": limit})
        return parse_symbols(data)


# Singleton instance for easy access
coinmarketcap_client = CoinMarketCapClient()

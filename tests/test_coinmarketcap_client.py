import httpx
import pytest

from src.integrations.coinmarketcap_client import (
    CoinMarketCapClient,
    QuoteSourceError,
    parse_historical_response,
    parse_latest_quote,
    parse_symbols,
)


def latest_payload(symbol="BTC", **usd):
    return {"data": {symbol: {"symbol": symbol, "quote": {"USD": usd}}}}


def make_client(handler, requests=None):
    def record(request):
        if requests is not None:
            requests.append(request)
        return handler(request)

    return CoinMarketCapClient(
        api_key="test_key",
        base_url="https://cmc.test",
        transport=httpx.MockTransport(record),
    )


class TestParseLatestQuote:
    """Test suite for latest quote parsing."""

    def test_full_quote(self):
        payload = latest_payload(
            open=100.0, high=110.0, low=95.0, close=105.0, volume_24h=123456.0, price=105.5
        )

        quote = parse_latest_quote(payload, "BTC")

        assert quote.symbol == "BTC"
        assert (quote.open, quote.high, quote.low, quote.close) == (100.0, 110.0, 95.0, 105.0)
        assert quote.volume == 123456.0
        assert quote.price == 105.5

    def test_missing_fields_default_to_zero(self):
        """Absent or non-numeric fields become 0.0."""
        payload = latest_payload(price=42000.0, close="n/a", volume_24h=None)

        quote = parse_latest_quote(payload, "BTC")

        assert quote.open == 0.0
        assert quote.high == 0.0
        assert quote.low == 0.0
        assert quote.close == 0.0
        assert quote.volume == 0.0
        assert quote.price == 42000.0

    def test_list_shaped_data(self):
        """Symbol entries returned as lists use the first entry."""
        payload = {"data": {"ETH": [{"symbol": "ETH", "quote": {"USD": {"close": 3000.0}}}]}}

        assert parse_latest_quote(payload, "ETH").close == 3000.0

    @pytest.mark.parametrize("payload", [
        None,
        {},
        {"data": {}},
        {"data": {"BTC": {"quote": {}}}},
        {"data": {"BTC": []}},
        {"data": "unexpected"},
    ])
    def test_missing_quote_raises(self, payload):
        with pytest.raises(QuoteSourceError):
            parse_latest_quote(payload, "BTC")


class TestParseHistoricalResponse:
    """Test suite for historical OHLCV parsing."""

    def test_parses_bars_in_order(self):
        payload = {"data": {"symbol": "BTC", "quotes": [
            {"time_open": "2024-01-01T00:00:00.000Z",
             "quote": {"USD": {"open": 1.0, "high": 2.0, "low": 0.5, "close": 1.5, "volume": 10.0}}},
            {"time_open": "2024-01-02T00:00:00.000Z",
             "quote": {"USD": {"open": 1.5, "high": 2.5, "low": 1.0, "close": 2.0, "volume": 20.0}}},
        ]}}

        bars = parse_historical_response(payload)

        assert [bar.date for bar in bars] == ["2024-01-01", "2024-01-02"]
        assert [bar.close for bar in bars] == [1.5, 2.0]
        assert bars[1].volume == 20.0

    def test_skips_entries_without_usd(self):
        payload = {"data": {"quotes": [
            {"time_open": "2024-01-01T00:00:00Z", "quote": {}},
            {"time_open": "2024-01-02T00:00:00Z", "quote": {"USD": {"close": 5.0}}},
        ]}}

        bars = parse_historical_response(payload)

        assert len(bars) == 1
        assert bars[0].close == 5.0
        assert bars[0].open == 0.0

    def test_falls_back_to_quote_timestamp(self):
        payload = {"data": {"quotes": [
            {"quote": {"USD": {"close": 5.0, "timestamp": "2024-03-04T23:59:59Z"}}},
        ]}}

        assert parse_historical_response(payload)[0].date == "2024-03-04"

    @pytest.mark.parametrize("payload", [None, {}, {"data": None}, {"data": "oops"}])
    def test_empty_or_malformed(self, payload):
        assert parse_historical_response(payload) == []


class TestParseSymbols:
    """Test suite for listing symbol extraction."""

    def test_symbols(self):
        payload = {"data": [{"symbol": "BTC"}, {"symbol": "ETH"}, {"name": "no symbol"}]}
        assert parse_symbols(payload) == ["BTC", "ETH"]

    def test_empty(self):
        assert parse_symbols(None) == []
        assert parse_symbols({"data": "oops"}) == []


class TestCoinMarketCapClient:
    """Test suite for the HTTP client."""

    @pytest.mark.asyncio
    async def test_get_latest_quote(self):
        requests = []
        client = make_client(
            lambda request: httpx.Response(200, json=latest_payload(close=105.0, volume_24h=10.0)),
            requests,
        )

        quote = await client.get_latest_quote("BTC")

        assert quote.close == 105.0
        assert requests[0].url.path == "/v1/cryptocurrency/quotes/latest"
        assert requests[0].url.params["symbol"] == "BTC"
        assert requests[0].headers["X-CMC_PRO_API_KEY"] == "test_key"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        client = make_client(lambda request: httpx.Response(401, json={"status": {"error_message": "bad key"}}))

        with pytest.raises(QuoteSourceError):
            await client.get_latest_quote("BTC")

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)

        with pytest.raises(QuoteSourceError):
            await client.get_latest_quote("BTC")

    @pytest.mark.asyncio
    async def test_unknown_symbol_raises(self):
        client = make_client(lambda request: httpx.Response(200, json={"data": {}}))

        with pytest.raises(QuoteSourceError):
            await client.get_latest_quote("NOPE")

    @pytest.mark.asyncio
    async def test_invalid_quote_values_raise(self):
        """Values the quote model rejects are reported as a quote source failure."""
        payload = latest_payload(price=1.0, volume_24h=-5.0)
        client = make_client(lambda request: httpx.Response(200, json=payload))

        with pytest.raises(QuoteSourceError):
            await client.get_latest_quote("BTC")

    @pytest.mark.asyncio
    async def test_get_historical_data(self):
        requests = []
        payload = {"data": {"quotes": [
            {"time_open": "2024-01-01T00:00:00Z", "quote": {"USD": {"close": 1.0}}},
            {"time_open": "2024-01-02T00:00:00Z", "quote": {"USD": {"close": 2.0}}},
        ]}}
        client = make_client(lambda request: httpx.Response(200, json=payload), requests)

        bars = await client.get_historical_data("BTC", days=7)

        assert [bar.close for bar in bars] == [1.0, 2.0]
        params = requests[0].url.params
        assert requests[0].url.path == "/v1/cryptocurrency/ohlcv/historical"
        assert params["count"] == "7"
        assert params["interval"] == "daily"

    @pytest.mark.asyncio
    async def test_get_latest_prices(self):
        payload = {"data": {
            "BTC": {"quote": {"USD": {"price": 50000.0}}},
            "ETH": {"quote": {"USD": {}}},
        }}
        requests = []
        client = make_client(lambda request: httpx.Response(200, json=payload), requests)

        prices = await client.get_latest_prices(["BTC", "ETH", "SOL"])

        assert prices == {"BTC": 50000.0}
        assert requests[0].url.params["symbol"] == "BTC,ETH,SOL"

    @pytest.mark.asyncio
    async def test_get_latest_prices_empty(self):
        requests = []
        client = make_client(lambda request: httpx.Response(200, json={}), requests)

        assert await client.get_latest_prices([]) == {}
        assert requests == []

    @pytest.mark.asyncio
    async def test_get_trending_cryptos(self):
        requests = []
        payload = {"data": [{"symbol": "PEPE"}, {"symbol": "DOGE"}]}
        client = make_client(lambda request: httpx.Response(200, json=payload), requests)

        assert await client.get_trending_cryptos(limit=2) == ["PEPE", "DOGE"]
        assert requests[0].url.path == "/v1/cryptocurrency/trending/latest"
        assert requests[0].url.params["limit"] == "2"

    @pytest.mark.asyncio
    async def test_get_top_cryptos(self):
        payload = {"data": [{"symbol": "BTC"}, {"symbol": "ETH"}]}
        client = make_client(lambda request: httpx.Response(200, json=payload))

        assert await client.get_top_cryptos(limit=2) == ["BTC", "ETH"]

    @pytest.mark.asyncio
    async def test_get_most_viewed_cryptos(self):
        requests = []
        payload = {"data": [{"symbol": "WIF"}]}
        client = make_client(lambda request: httpx.Response(200, json=payload), requests)

        assert await client.get_most_viewed_cryptos() == ["WIF"]
        assert requests[0].url.path == "/v1/cryptocurrency/trending/gainers-losers"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

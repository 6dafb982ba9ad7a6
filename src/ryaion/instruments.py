"""Instrument registry — static reference data for the tradable universe."""

from collections.abc import Iterable, Iterator

from ryaion.domain.errors import InvalidInputError
from ryaion.domain.models import Instrument

UNKNOWN_SECTOR = "Unknown"

# NSE large caps the dashboard watches by default.
DEFAULT_INSTRUMENTS = [
    Instrument(id="reliance", symbol="RELIANCE", name="Reliance Industries", sector="Energy"),
    Instrument(id="tcs", symbol="TCS", name="Tata Consultancy Services", sector="IT"),
    Instrument(id="infy", symbol="INFY", name="Infosys", sector="IT"),
    Instrument(id="hdfcbank", symbol="HDFCBANK", name="HDFC Bank", sector="Banking"),
    Instrument(id="icicibank", symbol="ICICIBANK", name="ICICI Bank", sector="Banking"),
    Instrument(id="sbin", symbol="SBIN", name="State Bank of India", sector="Banking"),
    Instrument(id="hindunilvr", symbol="HINDUNILVR", name="Hindustan Unilever", sector="FMCG"),
    Instrument(id="itc", symbol="ITC", name="ITC", sector="FMCG"),
    Instrument(id="bhartiartl", symbol="BHARTIARTL", name="Bharti Airtel", sector="Telecom"),
    Instrument(id="tatamotors", symbol="TATAMOTORS", name="Tata Motors", sector="Auto"),
    Instrument(id="zomato", symbol="ZOMATO", name="Zomato", sector="Consumer Tech"),
]


class InstrumentRegistry:
    """Read-only lookup of instruments by id or ticker."""

    def __init__(self, instruments: Iterable[Instrument] = DEFAULT_INSTRUMENTS) -> None:
        self._by_id: dict[str, Instrument] = {}
        self._by_symbol: dict[str, Instrument] = {}
        for instrument in instruments:
            symbol = instrument.symbol.upper()
            if instrument.id in self._by_id:
                raise InvalidInputError(f"Duplicate instrument id: {instrument.id}")
            if symbol in self._by_symbol:
                raise InvalidInputError(f"Duplicate instrument symbol: {instrument.symbol}")
            self._by_id[instrument.id] = instrument
            self._by_symbol[symbol] = instrument

    def __contains__(self, instrument_id: object) -> bool:
        return instrument_id in self._by_id

    def __iter__(self) -> Iterator[Instrument]:
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, instrument_id: str) -> Instrument | None:
        return self._by_id.get(instrument_id)

    def by_symbol(self, symbol: str) -> Instrument | None:
        """Case-insensitive ticker lookup."""
        return self._by_symbol.get(symbol.strip().upper())

    def resolve(self, symbol: str) -> Instrument:
        """Ticker lookup for user input; unknown tickers are an input error."""
        instrument = self.by_symbol(symbol)
        if instrument is None:
            raise InvalidInputError(f"Invalid ticker: {symbol}")
        return instrument

    def symbol_of(self, instrument_id: str) -> str:
        instrument = self._by_id.get(instrument_id)
        return instrument.symbol if instrument else instrument_id

    def sector_of(self, instrument_id: str) -> str:
        instrument = self._by_id.get(instrument_id)
        return instrument.sector if instrument else UNKNOWN_SECTOR

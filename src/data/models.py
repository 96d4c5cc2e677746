from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


# Feature order consumed by every classifier
FEATURE_COLUMNS = [
    "open",
    "high",
    "low",
    "close",
    "volume",
    "sma",
    "rsi",
    "macd",
    "volatility",
    "momentum",
    "trend_strength",
]


class Signal(str, Enum):
    """Discrete trading recommendation."""
    BUY = "buy"
    HOLD = "hold"
    SELL = "sell"
    UNKNOWN = "unknown"

    @property
    def is_actionable(self) -> bool:
        return self in (Signal.BUY, Signal.SELL)


# Core market data models
class Quote(BaseModel):
    """Latest market quote for a symbol."""
    model_config = ConfigDict(frozen=True)

    symbol: str
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    close: float = 0.0
    volume: float = Field(default=0.0, ge=0)
    price: Optional[float] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class OHLCV(BaseModel):
    """OHLC + Volume bar data."""
    model_config = ConfigDict(frozen=True)

    date: str
    open: float
    high: float
    low: float
    close: float
    volume: float


class FeatureVector(BaseModel):
    """Classifier input for one symbol at one point in time."""
    model_config = ConfigDict(frozen=True)

    open: float
    high: float
    low: float
    close: float
    volume: float
    sma: float
    rsi: float
    macd: float
    volatility: float
    momentum: float
    trend_strength: float

    def to_row(self) -> List[float]:
        return [float(getattr(self, column)) for column in FEATURE_COLUMNS]


class HistoricalRecord(BaseModel):
    """Labelled feature row used for training and backfill."""
    model_config = ConfigDict(frozen=True)

    symbol: str
    date: Optional[str] = None

    open: float
    high: float
    low: float
    close: float
    volume: float
    sma: float
    rsi: float
    macd: float
    volatility: float
    momentum: float
    trend_strength: float

    signal: Signal

    @property
    def features(self) -> FeatureVector:
        return FeatureVector(**{column: getattr(self, column) for column in FEATURE_COLUMNS})

"""
Signal Monitor

Background loop that periodically scans every held symbol, classifies its
latest quote and sends a notification for buy and sell signals. A failure on
one symbol is logged and skipped; it never ends the cycle or the loop.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional

from config.settings import settings, signal_config
from src.analyzers.signal_classifier import SignalClassifier, create_classifier
from src.analyzers.technical_analysis import build_snapshot_features
from src.data.models import Signal
from src.integrations.coinmarketcap_client import coinmarketcap_client
from src.services.notification import notification_service
from src.utils.database import db_manager

logger = logging.getLogger(__name__)


async def wait_for_stop(stop_event: asyncio.Event, timeout: float) -> bool:
    """Wait up to `timeout` seconds for the stop event. Returns True if it was set."""
    try:
        await asyncio.wait_for(stop_event.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        return False
    return True


class MonitorState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"


@dataclass
class CycleReport:
    """Outcome of one scan over the held symbols."""
    scanned: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    signals: Dict[str, Signal] = field(default_factory=dict)
    notified: List[str] = field(default_factory=list)


class SignalMonitor:
    """Periodic signal scan over the symbols users hold."""

    def __init__(
        self,
        quote_source,
        holdings_store,
        classifier: SignalClassifier,
        notifier,
        interval_seconds: float = 600.0,
        rsi_trailing: bool = False,
        logger: Optional[logging.Logger] = None,
        wait: Optional[Callable[[asyncio.Event, float], Awaitable[bool]]] = None,
    ):
        self.quote_source = quote_source
        self.holdings_store = holdings_store
        self.classifier = classifier
        self.notifier = notifier
        self.interval_seconds = interval_seconds
        self.rsi_trailing = rsi_trailing
        self.logger = logger or logging.getLogger(__name__)
        self.wait = wait or wait_for_stop

        self.state = MonitorState.IDLE
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    async def run_cycle(self) -> CycleReport:
        """Scan a snapshot of the held symbols once."""
        report = CycleReport()
        self.state = MonitorState.SCANNING
        self.logger.info("Checking crypto market...")

        try:
            try:
                symbols = list(await self.holdings_store.list_held_symbols())
            except Exception as e:
                self.logger.error(f"Failed to load held symbols: {e}")
                return report

            for idx, symbol in enumerate(symbols, 1):
                self.logger.info(f"[{idx}/{len(symbols)}] Analyzing {symbol}...")
                await self._process_symbol(symbol, report)

            self.logger.info(
                f"Scan complete: {len(report.scanned)} analyzed, "
                f"{len(report.failed)} skipped, {len(report.notified)} notifications"
            )
            return report

        finally:
            self.state = MonitorState.IDLE

    async def _process_symbol(self, symbol: str, report: CycleReport) -> None:
        try:
            quote = await self.quote_source.get_latest_quote(symbol)
        except Exception as e:
            self.logger.warning(f"Skipping {symbol}: failed to fetch latest quote: {e}")
            report.failed.append(symbol)
            return

        try:
            features = build_snapshot_features(quote, rsi_trailing=self.rsi_trailing)
            signal = self.classifier.classify(features)
            report.scanned.append(symbol)
            report.signals[symbol] = signal

            if signal.is_actionable:
                template = signal_config.BUY_MESSAGE if signal == Signal.BUY else signal_config.SELL_MESSAGE
                await self.notifier.send_notification(template.format(symbol=symbol))
                report.notified.append(symbol)
            else:
                self.logger.debug(f"{symbol}: {signal.value}, no notification")

        except Exception as e:
            self.logger.error(f"Failed to analyze {symbol}: {e}")
            report.failed.append(symbol)

    async def run(self, stop_event: asyncio.Event) -> None:
        """Scan immediately, then every `interval_seconds` until `stop_event` is set."""
        self.logger.info(f"Signal monitor started (interval {self.interval_seconds}s)")

        while not stop_event.is_set():
            await self.run_cycle()
            await self.wait(stop_event, self.interval_seconds)

        self.logger.info("Signal monitor stopped")

    async def start(self) -> None:
        """Run the monitor as a background task."""
        if self._task and not self._task.done():
            return

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run(self._stop_event))

    async def stop(self) -> None:
        """Signal the background task to stop and wait for it."""
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            await self._task
            self._task = None


def create_signal_monitor(classifier: Optional[SignalClassifier] = None) -> SignalMonitor:
    """Wire the monitor with the configured collaborators."""
    return SignalMonitor(
        quote_source=coinmarketcap_client,
        holdings_store=db_manager,
        classifier=classifier or create_classifier(settings),
        notifier=notification_service,
        interval_seconds=settings.monitor_interval_seconds,
        rsi_trailing=settings.rsi_trailing_window,
    )


async def main():
    """CLI entry point."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(settings.log_file)
        ]
    )

    await db_manager.create_tables()
    monitor = create_signal_monitor()

    try:
        await monitor.run(asyncio.Event())
    finally:
        await db_manager.close()


if __name__ == "__main__":
    asyncio.run(main())

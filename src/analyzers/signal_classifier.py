"""
Signal Classification Module

Two interchangeable classifiers share the `SignalClassifier` interface: a
rule-based RSI threshold evaluator and a trained scikit-learn model. The
trained model is held behind a single reference that is replaced in one
assignment after a successful fit, so concurrent `classify` calls see either
the old or the new model.
"""

import logging
import os
import pickle
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Optional, Sequence

import pandas as pd
from sklearn.ensemble import RandomForestClassifier
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler

from config.settings import Settings, settings as default_settings, signal_config
from src.analyzers.history_builder import RSI_OVERBOUGHT, RSI_OVERSOLD, label_from_rsi
from src.data.models import FEATURE_COLUMNS, FeatureVector, HistoricalRecord, Signal

logger = logging.getLogger(__name__)


class SignalClassifier(ABC):
    """Maps a feature vector to a trading signal."""

    @abstractmethod
    def classify(self, features: FeatureVector) -> Signal:
        ...


class RuleBasedClassifier(SignalClassifier):
    """RSI threshold classifier, identical to the training label rule."""

    def __init__(self, oversold: float = RSI_OVERSOLD, overbought: float = RSI_OVERBOUGHT):
        self.oversold = oversold
        self.overbought = overbought

    def classify(self, features: FeatureVector) -> Signal:
        return label_from_rsi(features.rsi, self.oversold, self.overbought)


class ModelArtifactStore:
    """Loads and saves the trained model artifact on disk."""

    def __init__(self, path: str):
        self.path = Path(path)

    def load(self):
        """Load the saved model.

        Returns:
            The model, or None if no artifact exists or it cannot be read
        """
        if not self.path.exists():
            logger.warning(f"No saved model found at {self.path}. Train the model first.")
            return None

        try:
            with open(self.path, "rb") as f:
                model = pickle.load(f)
        except Exception as e:
            logger.error(f"Failed to load model from {self.path}: {e}")
            return None

        if not hasattr(model, "predict"):
            logger.error(f"Artifact at {self.path} is not a model")
            return None

        logger.info(f"Model loaded from {self.path}")
        return model

    def save(self, model) -> None:
        """Write the model to a temporary file and move it into place."""
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                pickle.dump(model, f)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        logger.info(f"Model saved to {self.path}")


def build_default_model() -> Pipeline:
    """Feature normalization followed by a seeded random forest."""
    return Pipeline([
        ("scaler", StandardScaler()),
        ("classifier", RandomForestClassifier(
            n_estimators=100,
            random_state=signal_config.RANDOM_SEED,
        )),
    ])


def records_to_frame(records: Sequence[HistoricalRecord]) -> pd.DataFrame:
    """Training frame with one column per feature plus the `signal` label."""
    return pd.DataFrame([{
        **{column: float(getattr(record, column)) for column in FEATURE_COLUMNS},
        "signal": record.signal.value,
    } for record in records])


class ModelClassifier(SignalClassifier):
    """Classifier backed by a trained model loaded from the artifact store."""

    def __init__(self, store: ModelArtifactStore, model_factory: Callable[[], object] = build_default_model):
        self.store = store
        self.model_factory = model_factory
        self._train_lock = threading.Lock()
        self._model = store.load()

    @property
    def is_trained(self) -> bool:
        return self._model is not None

    def classify(self, features: FeatureVector) -> Signal:
        model = self._model
        if model is None:
            return Signal.UNKNOWN

        frame = pd.DataFrame([features.to_row()], columns=FEATURE_COLUMNS)
        prediction = model.predict(frame)[0]

        try:
            return Signal(str(prediction))
        except ValueError:
            logger.warning(f"Model returned unrecognised label {prediction!r}")
            return Signal.UNKNOWN

    def train(self, records: Sequence[HistoricalRecord]):
        """Fit a new model on labelled records and make it the active model.

        Args:
            records: Labelled historical records

        Returns:
            The fitted model

        Raises:
            ValueError: If no records are supplied
        """
        if not records:
            raise ValueError("Cannot train a model without historical records")

        frame = records_to_frame(records)
        features = frame[FEATURE_COLUMNS]
        labels = frame["signal"]

        with self._train_lock:
            model = self.model_factory()
            model.fit(features, labels)

            self._model = model
            logger.info(f"Model trained successfully on {len(frame)} records")

            try:
                self.store.save(model)
            except Exception as e:
                logger.error(f"Failed to save trained model: {e}")

        return model


def create_classifier(config: Optional[Settings] = None) -> SignalClassifier:
    """Create the classifier selected by configuration."""
    config = config or default_settings

    if config.classifier_strategy == "rules":
        logger.info("Using rule-based signal classifier")
        return RuleBasedClassifier(config.rsi_oversold_threshold, config.rsi_overbought_threshold)

    logger.info(f"Using model-based signal classifier ({config.model_path})")
    return ModelClassifier(ModelArtifactStore(config.model_path))

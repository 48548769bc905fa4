"""
Blueprint classification.

`classify()` maps any validated intent to exactly one BlueprintId through a
fixed priority cascade. Results are memoized per process under the intent's
decision-relevant signature; the cache only saves work and never changes the
answer a fresh evaluation would give.
"""

import threading

from layr.constants import (
    AuthMode,
    BlueprintId,
    CAPABILITY_AUTH,
    CAPABILITY_COLLECT_DATA,
    CAPABILITY_CRUD,
    COMMUNITY_CAPABILITIES,
    PaymentModel,
)
from layr.logger import logger
from layr.models.intent import Intent

IntentSignature = tuple[str, tuple[str, ...], str | None, str | None]


def intent_signature(intent: Intent) -> IntentSignature:
    """Cache key: (audience, sorted capabilities, auth mode, payment model)."""
    return (
        intent.audience.value,
        tuple(sorted(intent.capabilities)),
        intent.auth.value if intent.auth else None,
        intent.payment_model.value if intent.payment_model else None,
    )


def select_blueprint(intent: Intent) -> BlueprintId:
    """Evaluate the classification cascade without touching the cache. First match wins."""
    caps = intent.capabilities

    if intent.payment_model is not None and intent.payment_model is not PaymentModel.NONE:
        return BlueprintId.SAAS_STARTER

    if CAPABILITY_COLLECT_DATA in caps and CAPABILITY_AUTH not in caps and intent.auth is AuthMode.NONE:
        return BlueprintId.FORM_TO_DB

    if caps & COMMUNITY_CAPABILITIES:
        return BlueprintId.COMMUNITY_MINI

    if CAPABILITY_CRUD in caps and CAPABILITY_AUTH in caps:
        return BlueprintId.MARKETPLACE_LITE

    return BlueprintId.STATIC_LANDING


class BlueprintClassifier:
    """Memoizing classifier whose cache is safe to share between concurrent runs."""

    def __init__(self) -> None:
        self._cache: dict[IntentSignature, BlueprintId] = {}
        self._lock = threading.Lock()

    def classify(self, intent: Intent) -> BlueprintId:
        key = intent_signature(intent)
        with self._lock:
            cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Using cached blueprint selection: %s", cached)
            return cached

        # Racing runs may both compute the same value; last write wins harmlessly.
        selected = select_blueprint(intent)
        with self._lock:
            self._cache[key] = selected

        logger.info(
            "Blueprint selected: %s (audience=%s, capabilities=%s)",
            selected,
            intent.audience,
            sorted(intent.capabilities),
        )
        return selected

    def reset(self) -> None:
        with self._lock:
            self._cache.clear()

    @property
    def cache_size(self) -> int:
        with self._lock:
            return len(self._cache)


# Process-scoped classifier; tests call reset_classification_cache() for isolation.
default_classifier = BlueprintClassifier()


def classify(intent: Intent) -> BlueprintId:
    """Classify an intent using the process-wide cache."""
    return default_classifier.classify(intent)


def reset_classification_cache() -> None:
    default_classifier.reset()

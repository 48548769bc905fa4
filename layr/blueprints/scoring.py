"""Advisory blueprint ranking for pickers. Never used to choose what gets executed."""

from pydantic import ConfigDict

from layr.blueprints.catalog import BLUEPRINTS, BlueprintMetadata
from layr.models.base import LayrBaseModel
from layr.models.intent import Intent


class BlueprintScore(LayrBaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    blueprint: BlueprintMetadata
    score: float

    @property
    def percent(self) -> int:
        return round(self.score * 100)


def jaccard(left: frozenset[str], right: frozenset[str]) -> float:
    """|A ∩ B| / |A ∪ B|, or 0.0 when both sets are empty."""
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def rank_blueprints(intent: Intent) -> list[BlueprintScore]:
    """
    Score every blueprint against the intent's capabilities.

    Returns:
        Scores sorted best first; equal scores keep catalog declaration order.
    """
    scores = [
        BlueprintScore(blueprint=blueprint, score=jaccard(intent.capabilities, blueprint.capabilities))
        for blueprint in BLUEPRINTS.values()
    ]
    # sorted() is stable, so ties stay in declaration order.
    return sorted(scores, key=lambda s: s.score, reverse=True)

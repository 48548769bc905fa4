from layr.blueprints.catalog import BLUEPRINTS, BlueprintMetadata, get_blueprint
from layr.blueprints.classifier import (
    BlueprintClassifier,
    classify,
    default_classifier,
    reset_classification_cache,
    select_blueprint,
)
from layr.blueprints.scoring import BlueprintScore, rank_blueprints

__all__ = [
    "BLUEPRINTS",
    "BlueprintClassifier",
    "BlueprintMetadata",
    "BlueprintScore",
    "classify",
    "default_classifier",
    "get_blueprint",
    "rank_blueprints",
    "reset_classification_cache",
    "select_blueprint",
]

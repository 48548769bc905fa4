import os

import pytest
import yaml

from layr.blueprints import reset_classification_cache
from layr.logger import logger
from layr.models.intent import Intent
from layr.settings import LayrSettings


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Run every test away from real credentials, settings files, and log directories."""
    for key in list(os.environ):
        if key.upper().startswith("LAYR_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    logger.clear_execution_context()


@pytest.fixture(autouse=True)
def reset_classifier():
    """The classification cache is process-wide; every test starts with it empty."""
    reset_classification_cache()
    yield
    reset_classification_cache()


@pytest.fixture
def no_sleep():
    """Records requested waits instead of sleeping."""
    waits: list[float] = []

    def sleep(seconds: float) -> None:
        waits.append(seconds)

    sleep.waits = waits
    return sleep


@pytest.fixture
def settings(tmp_path):
    return LayrSettings(log_dir=str(tmp_path / "logs"), output_dir=str(tmp_path / "apps"))


@pytest.fixture
def saas_intent_dict():
    return {
        "goal": "Invoice tracker for freelancers",
        "audience": "business",
        "capabilities": ["auth", "crud", "payments"],
        "auth": "email_password",
        "payments": {
            "model": "subscription",
            "plans": [
                {"name": "Starter", "priceMonthly": 9},
                {"name": "Pro", "priceMonthly": 29, "features": ["Unlimited invoices"]},
            ],
        },
        "entities": [
            {
                "name": "Invoice",
                "fields": [
                    {"name": "client", "type": "string", "required": True},
                    {"name": "amount", "type": "number", "required": True},
                    {"name": "due date", "type": "date"},
                ],
            }
        ],
        "brand": {"name": "Bill Buddy", "tagline": "Get paid faster"},
    }


@pytest.fixture
def saas_intent(saas_intent_dict):
    return Intent.from_dict(saas_intent_dict)


@pytest.fixture
def waitlist_intent():
    return Intent.from_dict(
        {
            "goal": "Collect signups before launch",
            "audience": "personal",
            "capabilities": ["email"],
        }
    )


@pytest.fixture
def form_intent():
    return Intent.from_dict(
        {
            "goal": "Volunteer signup form",
            "audience": "nonprofit",
            "capabilities": ["collect_data"],
            "auth": "none",
            "entities": [{"name": "Volunteer", "fields": [{"name": "email", "type": "email", "required": True}]}],
        }
    )


@pytest.fixture
def intent_file(tmp_path, saas_intent_dict):
    """The SaaS intent written out as YAML."""
    path = tmp_path / "intent.yaml"
    path.write_text(yaml.safe_dump(saas_intent_dict))
    return path

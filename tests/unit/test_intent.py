import json

import pytest
from pydantic import ValidationError

from layr.constants import Audience, AuthMode, PaymentModel
from layr.exceptions import IntentValidationError
from layr.models.intent import Intent


class TestIntentValidation:
    def test_minimal_intent(self):
        intent = Intent.from_dict({"goal": "A blog", "audience": "personal"})

        assert intent.goal == "A blog"
        assert intent.audience is Audience.PERSONAL
        assert intent.capabilities == frozenset()
        assert intent.auth is None
        assert intent.payments is None
        assert intent.entities == ()

    def test_capabilities_are_a_set(self):
        intent = Intent.from_dict({"goal": "x", "audience": "business", "capabilities": ["crud", "auth", "crud"]})
        assert intent.capabilities == frozenset({"auth", "crud"})

    def test_null_capabilities_become_empty(self):
        intent = Intent.from_dict({"goal": "x", "audience": "business", "capabilities": None})
        assert intent.capabilities == frozenset()

    def test_missing_goal_is_rejected(self):
        with pytest.raises(IntentValidationError) as exc_info:
            Intent.from_dict({"audience": "business"})
        assert any(error.startswith("goal") for error in exc_info.value.errors)

    def test_blank_goal_is_rejected(self):
        with pytest.raises(IntentValidationError):
            Intent.from_dict({"goal": "   ", "audience": "business"})

    def test_unknown_audience_is_rejected(self):
        with pytest.raises(IntentValidationError) as exc_info:
            Intent.from_dict({"goal": "x", "audience": "aliens"})
        assert any("audience" in error for error in exc_info.value.errors)

    def test_unknown_field_type_is_rejected(self):
        data = {
            "goal": "x",
            "audience": "business",
            "entities": [{"name": "Thing", "fields": [{"name": "blob", "type": "binary"}]}],
        }
        with pytest.raises(IntentValidationError):
            Intent.from_dict(data)

    def test_unexpected_keys_are_rejected(self):
        with pytest.raises(IntentValidationError):
            Intent.from_dict({"goal": "x", "audience": "business", "colour": "blue"})

    def test_non_mapping_is_rejected(self):
        with pytest.raises(IntentValidationError, match="must be a mapping"):
            Intent.from_dict(["goal", "audience"])

    def test_negative_plan_price_is_rejected(self):
        data = {
            "goal": "x",
            "audience": "business",
            "payments": {"model": "subscription", "plans": [{"name": "Bad", "priceMonthly": -1}]},
        }
        with pytest.raises(IntentValidationError):
            Intent.from_dict(data)

    def test_intent_is_immutable(self, saas_intent):
        with pytest.raises(ValidationError):
            saas_intent.goal = "something else"


class TestIntentProperties:
    def test_payment_model(self, saas_intent):
        assert saas_intent.payment_model is PaymentModel.SUBSCRIPTION
        assert saas_intent.needs_payments

    def test_payment_model_none_does_not_need_payments(self):
        intent = Intent.from_dict({"goal": "x", "audience": "business", "payments": {"model": "none"}})
        assert intent.payment_model is PaymentModel.NONE
        assert not intent.needs_payments

    def test_plans_accept_alias_and_field_name(self, saas_intent):
        assert [plan.price_monthly for plan in saas_intent.payments.plans] == [9, 29]
        intent = Intent.from_dict(
            {
                "goal": "x",
                "audience": "business",
                "payments": {"model": "one_time", "plans": [{"name": "Once", "price_monthly": 5}]},
            }
        )
        assert intent.payments.plans[0].price_monthly == 5

    def test_needs_auth_from_capability_or_mode(self):
        by_capability = Intent.from_dict({"goal": "x", "audience": "business", "capabilities": ["auth"]})
        by_mode = Intent.from_dict({"goal": "x", "audience": "business", "auth": "magic_link"})
        explicit_none = Intent.from_dict({"goal": "x", "audience": "business", "auth": "none"})

        assert by_capability.needs_auth
        assert by_mode.needs_auth
        assert by_mode.auth is AuthMode.MAGIC_LINK
        assert not explicit_none.needs_auth

    def test_slug_prefers_brand_name(self, saas_intent):
        assert saas_intent.slug == "bill-buddy"

    def test_slug_falls_back_to_goal(self, waitlist_intent):
        assert waitlist_intent.slug == "collect-signups-before-launch"

    def test_slug_never_empty(self):
        intent = Intent.from_dict({"goal": "!!!", "audience": "personal"})
        assert intent.slug == "layr-app"


class TestIntentFiles:
    def test_from_yaml_file(self, intent_file):
        intent = Intent.from_file(intent_file)
        assert intent.slug == "bill-buddy"

    def test_from_json_file(self, tmp_path, saas_intent_dict):
        path = tmp_path / "intent.json"
        path.write_text(json.dumps(saas_intent_dict))
        assert Intent.from_file(path).payment_model is PaymentModel.SUBSCRIPTION

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "intent.txt"
        path.write_text("goal: x")
        with pytest.raises(IntentValidationError, match="Unsupported intent file type"):
            Intent.from_file(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "intent.yaml"
        path.write_text("goal: [unclosed")
        with pytest.raises(IntentValidationError, match="Failed to parse"):
            Intent.from_file(path)

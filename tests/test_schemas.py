from __future__ import annotations

import os
import unittest
from unittest import mock

from pydantic import ValidationError

from app.core.config import Settings
from app.schemas.abtest_schema import CreateExperimentRequest
from app.schemas.recommendation_schema import RecommendationRequest
from app.services.exceptions import ExperimentConfigError


class RecommendationRequestTestCase(unittest.TestCase):
    def test_camel_case_and_snake_case(self) -> None:
        a = RecommendationRequest.model_validate({"userId": "u1", "abTestId": "exp", "context": "detail"})
        b = RecommendationRequest(user_id="u1", ab_test_id="exp", context="detail")
        self.assertEqual(a, b)
        self.assertEqual(a.context, "detail")

    def test_rejects_bad_input(self) -> None:
        with self.assertRaises(ValidationError):
            RecommendationRequest.model_validate({"userId": ""})
        with self.assertRaises(ValidationError):
            RecommendationRequest.model_validate({"userId": "u1", "context": "cart"})
        with self.assertRaises(ValidationError):
            RecommendationRequest.model_validate({"userId": "u1", "limit": 0})


class CreateExperimentRequestTestCase(unittest.TestCase):
    def test_to_definition(self) -> None:
        req = CreateExperimentRequest.model_validate({
            "experimentId": "exp-1",
            "name": "algo",
            "variants": [{"name": "A", "parameters": {"algorithm": "hybrid"}}, {"name": "B"}],
            "targetUserPercentage": 50,
            "goals": ["conversion"],
        })
        exp = req.to_definition()
        self.assertEqual([v.name for v in exp.variants], ["A", "B"])
        self.assertEqual(exp.variants[0].parameters, {"algorithm": "hybrid"})
        self.assertEqual(exp.target_user_percentage, 50)
        self.assertEqual(exp.goals, ["conversion"])

    def test_invalid_definition_raises_config_error(self) -> None:
        req = CreateExperimentRequest.model_validate({
            "experimentId": "exp-1",
            "name": "dup",
            "variants": [{"name": "A"}, {"name": "A"}],
        })
        with self.assertRaises(ExperimentConfigError):
            req.to_definition()


class SettingsTestCase(unittest.TestCase):
    def test_defaults(self) -> None:
        settings = Settings(_env_file=None)
        self.assertEqual(settings.LOG_RETENTION_DAYS, 90)
        self.assertEqual(settings.PROFILE_MATCH_BONUS, 0.2)
        self.assertEqual(settings.DEFAULT_ALGORITHM, "content-based")

    def test_environment_override(self) -> None:
        with mock.patch.dict(os.environ, {"FETCH_TIMEOUT_SECONDS": "0.5", "LOG_RETENTION_DAYS": "30"}):
            settings = Settings(_env_file=None)
        self.assertEqual(settings.FETCH_TIMEOUT_SECONDS, 0.5)
        self.assertEqual(settings.LOG_RETENTION_DAYS, 30)


if __name__ == "__main__":
    unittest.main()

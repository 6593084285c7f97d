from __future__ import annotations

import hashlib
import unittest
from datetime import datetime, timedelta, timezone

from app.abtest.bucketing import get_variant_for_user, is_in_test, is_running
from app.abtest.definition import create_experiment, find_running
from app.abtest.hashing import hash_string, java_string_hash
from app.services.exceptions import ExperimentConfigError

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def _experiment(pct: int = 100, variants=("A", "B"), **kwargs):
    return create_experiment(
        kwargs.pop("experiment_id", "exp-1"),
        kwargs.pop("name", "ranking test"),
        [{"name": v, "parameters": {"label": f"variant-{v}"}} for v in variants],
        start_date=kwargs.pop("start_date", NOW - timedelta(days=1)),
        end_date=kwargs.pop("end_date", NOW + timedelta(days=10)),
        target_user_percentage=pct,
        **kwargs,
    )


def _user_ids(n: int) -> list[str]:
    return [hashlib.sha1(f"user-{i}".encode()).hexdigest() for i in range(n)]


class JavaStringHashTestCase(unittest.TestCase):
    def test_known_vectors(self) -> None:
        self.assertEqual(java_string_hash(""), 0)
        self.assertEqual(java_string_hash("a"), 97)
        self.assertEqual(java_string_hash("ab"), 3105)
        self.assertEqual(java_string_hash("abc"), 96354)
        self.assertEqual(java_string_hash("hello"), 99162322)
        self.assertEqual(java_string_hash("polygenelubricants"), -(2 ** 31))

    def test_surrogate_pairs_hash_as_utf16_units(self) -> None:
        # U+1F600 -> 0xD83D 0xDE00
        self.assertEqual(java_string_hash("\U0001F600"), 0xD83D * 31 + 0xDE00)

    def test_hash_string_non_negative(self) -> None:
        self.assertEqual(hash_string("polygenelubricants"), 2 ** 31)
        for s in ("user123", "用户", "x" * 100):
            self.assertGreaterEqual(hash_string(s), 0)


class ExperimentDefinitionTestCase(unittest.TestCase):
    def test_defaults(self) -> None:
        exp = create_experiment("exp-1", "defaults", [{"name": "A"}, {"name": "B"}])
        self.assertEqual(exp.target_user_percentage, 100)
        self.assertEqual(exp.goals, ["click_through_rate", "engagement"])
        self.assertEqual(exp.end_date - exp.start_date, timedelta(days=30))

    def test_rejects_invalid_definitions(self) -> None:
        with self.assertRaises(ExperimentConfigError):
            _experiment(variants=("A",))
        with self.assertRaises(ExperimentConfigError):
            _experiment(variants=("A", "A"))
        with self.assertRaises(ExperimentConfigError):
            _experiment(start_date=NOW, end_date=NOW)
        with self.assertRaises(ExperimentConfigError):
            _experiment(pct=0)
        with self.assertRaises(ExperimentConfigError):
            _experiment(pct=101)
        with self.assertRaises(ExperimentConfigError):
            _experiment(goals=["revenue"])

    def test_rejects_unknown_variant_algorithm(self) -> None:
        variants = [
            {"name": "A", "parameters": {"algorithm": "hybrid"}},
            {"name": "B", "parameters": {"algorithm": "deep-magic"}},
        ]
        with self.assertRaises(ExperimentConfigError):
            create_experiment("exp-1", "algo test", variants, start_date=NOW, end_date=NOW + timedelta(days=1))
        variants[1]["parameters"]["algorithm"] = "popular"
        exp = create_experiment("exp-1", "algo test", variants, start_date=NOW, end_date=NOW + timedelta(days=1))
        self.assertEqual(exp.variants[1].parameters["algorithm"], "popular")

    def test_config_error_is_value_error(self) -> None:
        with self.assertRaises(ValueError):
            _experiment(variants=())

    def test_find_running_orders_by_start_then_name(self) -> None:
        b = _experiment(experiment_id="b", name="b", start_date=NOW - timedelta(days=2))
        a = _experiment(experiment_id="a", name="a", start_date=NOW - timedelta(days=2))
        later = _experiment(experiment_id="c", name="c", start_date=NOW - timedelta(hours=1))
        stopped = _experiment(experiment_id="d", name="d", is_active=False)
        future = _experiment(experiment_id="e", name="e", start_date=NOW + timedelta(days=1))

        running = find_running([later, stopped, b, future, a], NOW)
        self.assertEqual([e.experiment_id for e in running], ["a", "b", "c"])


class BucketingTestCase(unittest.TestCase):
    def test_is_running_bounds_inclusive(self) -> None:
        exp = _experiment()
        self.assertTrue(is_running(exp, exp.start_date))
        self.assertTrue(is_running(exp, exp.end_date))
        self.assertFalse(is_running(exp, exp.end_date + timedelta(seconds=1)))
        exp.is_active = False
        self.assertFalse(is_running(exp, NOW))

    def test_not_running_returns_none(self) -> None:
        exp = _experiment(start_date=NOW + timedelta(days=1), end_date=NOW + timedelta(days=5))
        self.assertIsNone(get_variant_for_user(exp, "user123", NOW))

    def test_assignment_is_deterministic(self) -> None:
        exp = _experiment()
        first = get_variant_for_user(exp, "user123", NOW)
        second = get_variant_for_user(exp, "user123", NOW + timedelta(days=1))
        self.assertIsNotNone(first)
        self.assertEqual(first.name, second.name)
        self.assertEqual(first.name, ["A", "B"][hash_string("user123") % 2])

    def test_all_variants_reachable(self) -> None:
        exp = _experiment(variants=("A", "B", "C"))
        names = {get_variant_for_user(exp, uid, NOW).name for uid in _user_ids(300)}
        self.assertEqual(names, {"A", "B", "C"})

    def test_excluded_users_get_baseline(self) -> None:
        exp = _experiment(pct=30)
        for uid in _user_ids(500):
            variant = get_variant_for_user(exp, uid, NOW)
            if hash_string(uid) % 100 < 30:
                self.assertIsNotNone(variant)
            else:
                self.assertIsNone(variant)

    def test_percentage_targeting_converges(self) -> None:
        users = _user_ids(20000)
        for pct in (10, 25, 50, 80):
            exp = _experiment(pct=pct)
            included = sum(1 for uid in users if is_in_test(exp, uid))
            self.assertAlmostEqual(included / len(users), pct / 100, delta=0.02)


if __name__ == "__main__":
    unittest.main()

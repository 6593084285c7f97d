from app.abtest.bucketing import get_variant_for_user, is_in_test, is_running
from app.abtest.definition import create_experiment, find_running, validate_experiment
from app.abtest.hashing import hash_string, java_string_hash

__all__ = [
    "create_experiment",
    "find_running",
    "get_variant_for_user",
    "hash_string",
    "is_in_test",
    "is_running",
    "java_string_hash",
    "validate_experiment",
]

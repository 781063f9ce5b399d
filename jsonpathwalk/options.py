from enum import Enum


class Option(Enum):
    """Flags recognized by the evaluation engine and `read` result shaping."""

    SUPPRESS_EXCEPTIONS = "suppress_exceptions"
    ALWAYS_RETURN_LIST = "always_return_list"
    AS_PATH_LIST = "as_path_list"
    REQUIRE_PROPERTIES = "require_properties"
    DEFAULT_PATH_LEAF_TO_NULL = "default_path_leaf_to_null"
    REQUIRE_SINGLE_RESULT = "require_single_result"

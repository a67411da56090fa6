"""Core constants: cache key structure and query clause tokens.

Single source of truth for the literal values shared by the predicate
normalizer, the key builders and the SQLAlchemy query source (DRY).
"""

# Delimiter between global prefix, entity name and serialized key map
CACHE_KEY_SEP = "::"

DEFAULT_CACHE_KEY_PREFIX = "rowcache"
DEFAULT_EXPIRATION_MINUTES = 60 * 24

# Raw clause mapping keys
CLAUSE_KEY_TYPE = "type"
CLAUSE_KEY_COLUMN = "column"
CLAUSE_KEY_OPERATOR = "operator"
CLAUSE_KEY_VALUE = "value"
CLAUSE_KEY_VALUES = "values"
CLAUSE_KEY_BOOLEAN = "boolean"

# Clause types
CLAUSE_TYPE_BASIC = "Basic"
CLAUSE_TYPE_IN = "In"
CLAUSE_TYPE_NULL = "Null"
CLAUSE_TYPE_NOT_NULL = "NotNull"
CLAUSE_TYPE_RAW = "Raw"

# Conjunctions
CLAUSE_BOOL_AND = "and"
CLAUSE_BOOL_OR = "or"

# Operators
OPERATOR_EQUALS = "="
OPERATOR_IN = "In"
OPERATOR_IS = "Is"

# Characters stripped from column names (identifier quoting)
COLUMN_QUOTE_CHARS = "`\"[]"
COLUMN_QUALIFIER_SEP = "."

import re

from salestx.exception import StatementError

DOLLAR_KEYWORD = re.compile(r"(\$([a-z][a-z0-9_]*))")
DOLLAR_POSITIONAL = re.compile(r"(\$(\d+))")


def count_sql_params(query: str) -> int:
    """Count the `$1..$n` placeholders in a statement

    Raises:
        StatementError: If keyword placeholders are used, or the positional
            placeholders are not numbered `$1..$n` in order
    """
    if DOLLAR_KEYWORD.search(query):
        raise StatementError(
            "Keyword parameters are not supported, use $1..$n placeholders"
        )
    numbers = [int(match[1]) for match in DOLLAR_POSITIONAL.findall(query)]
    if numbers != list(range(1, len(numbers) + 1)):
        raise StatementError(
            f"Positional parameters must appear in order as $1..$n, "
            f"got {numbers}"
        )
    return len(numbers)


def convert_sql_params(query: str, positional_sub: str = r"%s") -> str:
    count_sql_params(query)
    return DOLLAR_POSITIONAL.sub(positional_sub, query, 0)

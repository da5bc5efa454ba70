"""
SQL text helpers.

Statements are built with ``?`` placeholders. Drivers using the ``format``
paramstyle (PyMySQL) need ``%s`` instead, and every literal percent sign
doubled, because the driver interpolates the whole statement with ``%``.

    SQL → Tokenize → Rewrite placeholders / escape percents → SQL
          (once)     (single pass, literals protected)

Main entry points:
- `standardize_placeholders()` - Convert ? → %s for format-style drivers
- `quote_identifier()` - Quote table/column names
"""
import re
from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    IDENTIFIER = auto()         # `quoted`
    POSITIONAL_PH = auto()      # ?
    PERCENT = auto()


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str


_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^'\\]|\\.|'')*'|"(?:[^"\\]|\\.|"")*")
    |(?P<ident>`(?:[^`]|``)*`)
    |(?P<qmark>\?)
    |(?P<percent>%)
""", re.VERBOSE)

_GROUP_TYPES = {
    'string': TokenType.STRING_LITERAL,
    'ident': TokenType.IDENTIFIER,
    'qmark': TokenType.POSITIONAL_PH,
    'percent': TokenType.PERCENT,
}

# tokens whose percent signs the format paramstyle would interpolate
_PERCENT_TOKENS = {TokenType.PERCENT, TokenType.STRING_LITERAL, TokenType.IDENTIFIER}


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into tokens in a single pass.

    Parameters
        sql: SQL query string

    Returns
        List of tokens preserving all SQL text
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()
        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start]))
        tokens.append(Token(_GROUP_TYPES[match.lastgroup], match.group(0)))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:]))

    return tokens


def standardize_placeholders(sql: str, placeholder: str = '?') -> str:
    """Rewrite ``?`` placeholders into ``placeholder``.

    For ``%s`` every other percent sign is doubled, including those inside
    string literals and quoted identifiers.
    """
    if not sql or placeholder == '?':
        return sql

    escape_percent = placeholder == '%s'
    result = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.POSITIONAL_PH:
            result.append(placeholder)
        elif escape_percent and token.type in _PERCENT_TOKENS:
            result.append(token.text.replace('%', '%%'))
        else:
            result.append(token.text)
    return ''.join(result)


def quote_identifier(identifier: str) -> str:
    """Quote a table or column name with backticks.

    Both MySQL and SQLite accept backtick-quoted identifiers.
    """
    return '`' + identifier.replace('`', '``') + '`'

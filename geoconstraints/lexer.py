import re
from typing import List, Tuple

Token = Tuple[str, str, int, int]  # (type, value, line, col)

SYMBOLS = {
    '(': 'LPAREN',
    ')': 'RPAREN',
    '{': 'LBRACE',
    '}': 'RBRACE',
    ',': 'COMMA',
    '+': 'PLUS',
    '-': 'MINUS',
    '*': 'STAR',
    '/': 'SLASH',
    '^': 'CARET',
    '.': 'DOT',
}

WS = ' \t\r'

_id_re = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')
_num_re = re.compile(r'(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?')


class ParseError(SyntaxError):
    """Malformed equation or constraints-block text."""


def tokenize_line(s: str, line_no: int = 1) -> List[Token]:
    tokens: List[Token] = []
    i = 0
    n = len(s)
    while i < n:
        ch = s[i]
        col = i + 1
        if ch == '#':
            break
        if ch in WS:
            i += 1
            continue
        if ch == '*' and s.startswith('**', i):
            tokens.append(('POW', '**', line_no, col))
            i += 2
            continue
        m = _num_re.match(s, i)
        if m:
            tokens.append(('NUMBER', m.group(0), line_no, col))
            i = m.end()
            continue
        m = _id_re.match(s, i)
        if m:
            tokens.append(('ID', m.group(0), line_no, col))
            i = m.end()
            continue
        if ch in SYMBOLS:
            tokens.append((SYMBOLS[ch], ch, line_no, col))
            i += 1
            continue
        raise ParseError(f'[line {line_no}, col {col}] unexpected character: {ch!r}')
    return tokens

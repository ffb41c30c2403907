import re
from typing import List, Optional, Tuple

from .ast import AnchorRef, Binary, Call, ConstraintSpec, Node, Number, Symbol, Unary
from .lexer import ParseError, Token, tokenize_line

_ERROR_LOC_RE = re.compile(r"\[line (\d+), col (\d+)\]")

FUNCTIONS = ('sin', 'cos', 'tan', 'asin', 'acos', 'atan', 'exp', 'sqrt', 'log', 'neg')

POINT_KINDS = ('coincident', 'distance', 'horizontal', 'vertical')
LINE_KINDS = ('parallel', 'perpendicular')


class Cursor:
    def __init__(self, tokens: List[Token]):
        self.toks = tokens
        self.i = 0

    def peek(self):
        return self.toks[self.i] if self.i < len(self.toks) else None

    def match(self, *types: str):
        if self.i < len(self.toks) and self.toks[self.i][0] in types:
            t = self.toks[self.i]
            self.i += 1
            return t
        return None

    def expect(self, *types: str):
        t = self.peek()
        if t and t[0] in types:
            self.i += 1
            return t
        want = '|'.join(types)
        if t:
            raise ParseError(f'[line {t[2]}, col {t[3]}] expected {want}, got {t[0]}')
        raise ParseError(f'Unexpected end of input: expected {want}')

    def at_end(self) -> bool:
        return self.i >= len(self.toks)


# --- equation mini-language -------------------------------------------------

def parse_sum(cur: Cursor) -> Node:
    node = parse_product(cur)
    while True:
        t = cur.match('PLUS', 'MINUS')
        if not t:
            return node
        node = Binary(t[1], node, parse_product(cur))


def parse_product(cur: Cursor) -> Node:
    node = parse_unary(cur)
    while True:
        t = cur.match('STAR', 'SLASH')
        if not t:
            return node
        node = Binary(t[1], node, parse_unary(cur))


def parse_unary(cur: Cursor) -> Node:
    if cur.match('MINUS'):
        return Unary('-', parse_unary(cur))
    return parse_power(cur)


def parse_power(cur: Cursor) -> Node:
    base = parse_atom(cur)
    if cur.match('CARET', 'POW'):
        # right associative: a^b^c == a^(b^c), and a^-1 is allowed
        return Binary('^', base, parse_unary(cur))
    return base


def parse_atom(cur: Cursor) -> Node:
    t = cur.peek()
    if not t:
        raise ParseError('Unexpected end of input: expected NUMBER|ID|LPAREN')
    if t[0] == 'NUMBER':
        cur.i += 1
        return Number(float(t[1]))
    if t[0] == 'ID':
        cur.i += 1
        if cur.match('LPAREN'):
            if t[1] not in FUNCTIONS:
                raise ParseError(f'[line {t[2]}, col {t[3]}] unknown function {t[1]!r}')
            arg = parse_sum(cur)
            if cur.peek() and cur.peek()[0] == 'COMMA':
                c = cur.peek()
                raise ParseError(f'[line {c[2]}, col {c[3]}] {t[1]}() takes exactly one argument')
            cur.expect('RPAREN')
            return Call(t[1], arg)
        return Symbol(t[1])
    if t[0] == 'LPAREN':
        cur.i += 1
        node = parse_sum(cur)
        cur.expect('RPAREN')
        return node
    raise ParseError(f'[line {t[2]}, col {t[3]}] unexpected token {t[1]!r}')


def parse_expression(text: str) -> Node:
    """Parse one equation into an expression tree."""

    try:
        tokens = tokenize_line(text, 1)
        if not tokens:
            raise ParseError('[line 1, col 1] empty expression')
        cur = Cursor(tokens)
        node = parse_sum(cur)
        if not cur.at_end():
            t = cur.peek()
            raise ParseError(f'[line {t[2]}, col {t[3]}] unexpected trailing token {t[1]!r}')
    except ParseError as err:
        augmented = _augment_syntax_error(err, text)
        if augmented is None:
            raise
        raise augmented from None
    return node


# --- constraints block --------------------------------------------------------

def parse_anchor_ref(cur: Cursor) -> Tuple[AnchorRef, int]:
    shape = cur.expect('ID')
    cur.expect('DOT')
    anchor = cur.expect('ID')
    return AnchorRef(shape[1], anchor[1]), shape[3]


def parse_constraint_stmt(cur: Cursor) -> ConstraintSpec:
    kw = cur.expect('ID')
    kind = kw[1].lower()
    if kind in POINT_KINDS:
        arity = 2
    elif kind in LINE_KINDS:
        arity = 4
    else:
        raise ParseError(f'[line {kw[2]}, col {kw[3]}] unknown constraint kind {kw[1]!r}')
    anchors = []
    cols = []
    for _ in range(arity):
        ref, col = parse_anchor_ref(cur)
        anchors.append(ref)
        cols.append(col)
    dist: Optional[float] = None
    if kind == 'distance':
        negative = cur.match('MINUS') is not None
        num = cur.expect('NUMBER')
        dist = -float(num[1]) if negative else float(num[1])
    if not cur.at_end():
        t = cur.peek()
        raise ParseError(f'[line {t[2]}, col {t[3]}] unexpected trailing token {t[1]!r}')
    return ConstraintSpec(kind, tuple(anchors), dist, kw[2], kw[3], tuple(cols))


def _strip_block_wrapper(tokens: List[Token]) -> List[Token]:
    if len(tokens) >= 2 and tokens[0][0] == 'ID' and tokens[0][1] == 'constraints' and tokens[1][0] == 'LBRACE':
        tokens = tokens[2:]
    if tokens and tokens[-1][0] == 'RBRACE':
        tokens = tokens[:-1]
    return tokens


def _augment_syntax_error(err: SyntaxError, line_text: str) -> Optional[ParseError]:
    message = str(err)
    if not line_text or "\n" in message:
        return None
    match = _ERROR_LOC_RE.search(message)
    if not match:
        return None
    col = max(int(match.group(2)), 1)
    caret_line = " " * (col - 1) + "^"
    snippet = f"    {line_text.rstrip()}\n    {caret_line}"
    return ParseError(f"{message}\n{snippet}")


def parse_constraints(text: str) -> List[ConstraintSpec]:
    specs: List[ConstraintSpec] = []
    for i, raw in enumerate(text.splitlines(), start=1):
        try:
            tokens = _strip_block_wrapper(tokenize_line(raw, i))
            if not tokens:
                continue
            spec = parse_constraint_stmt(Cursor(tokens))
        except ParseError as err:
            augmented = _augment_syntax_error(err, raw)
            if augmented is None:
                raise
            raise augmented from None
        specs.append(spec)
    return specs

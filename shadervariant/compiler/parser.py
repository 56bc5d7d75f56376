"""
Parsing of the directive language into a tree of nodes.

A directive occupies a whole line, and starts (after optional whitespace) with
``///#``. All other lines are text, and are kept verbatim::

    ///#include "common.wgsl"
    ///#decl VertexInput = _atomic_counter(0, 1)
    ///#if VERTEX_COLOR && !FLAT
    ...
    ///#elseif FLAT
    ...
    ///#else
    ...
    ///#endif

Conditions are flag expressions, made of flag names, ``True``, ``False``,
``!``, ``&&``, ``||`` and parentheses.
"""

import re
from collections import namedtuple

from .loading import DIRECTIVE_PREFIX, re_include_path
from .errors import DirectiveSyntaxError, UnbalancedConditionalError


re_directive = re.compile(r"^\s*" + re.escape(DIRECTIVE_PREFIX) + r"(\w*)(.*?)\s*$")
re_decl = re.compile(r"^([A-Za-z_]\w*)\s*(?:=\s*(.*))?$")
re_counter = re.compile(r"^_atomic_counter\s*\(\s*(-?\d+)\s*,\s*(-?\d+)\s*\)$")
re_int = re.compile(r"^-?\d+$")
re_token = re.compile(r"\s*(?:(&&|\|\||!|\(|\))|([A-Za-z_]\w*))")


# %% Nodes


CounterSpec = namedtuple("CounterSpec", ["base", "step"])
CounterSpec.__doc__ = "The seed (base) and increment (step) of a slot counter."


class Text:
    """A line of shader code."""

    __slots__ = ["line"]

    def __init__(self, line):
        self.line = line

    def __repr__(self):
        return f"Text({self.line.text!r})"


class Include:
    """An include directive that has not been spliced."""

    __slots__ = ["path", "line"]

    def __init__(self, path, line):
        self.path = path
        self.line = line

    def __repr__(self):
        return f"Include({self.path!r})"


class If:
    """A conditional block. The branches are (condition, body) tuples, the first
    one being the ``if``, the others the ``elseif``'s. The ``else_body`` is None
    if there is no ``else``.
    """

    __slots__ = ["branches", "else_body", "line"]

    def __init__(self, line):
        self.branches = []
        self.else_body = None
        self.line = line

    def __repr__(self):
        conditions = ", ".join(str(cond) for cond, _ in self.branches)
        return f"If({conditions}, else={self.else_body is not None})"


class Decl:
    """A declaration. The value is None (a plain flag), a CounterSpec, or a constant (int or bool)."""

    __slots__ = ["name", "value", "line"]

    def __init__(self, name, value, line):
        self.name = name
        self.value = value
        self.line = line

    def __repr__(self):
        return f"Decl({self.name!r}, {self.value!r})"


# %% Flag expressions


class Flag:
    __slots__ = ["name"]

    def __init__(self, name):
        self.name = name

    def __str__(self):
        return self.name


class Literal:
    __slots__ = ["value"]

    def __init__(self, value):
        self.value = bool(value)

    def __str__(self):
        return str(self.value)


class Not:
    __slots__ = ["operand"]

    def __init__(self, operand):
        self.operand = operand

    def __str__(self):
        return f"!{self.operand}"


class And:
    __slots__ = ["left", "right"]

    def __init__(self, left, right):
        self.left = left
        self.right = right

    def __str__(self):
        return f"({self.left} && {self.right})"


class Or:
    __slots__ = ["left", "right"]

    def __init__(self, left, right):
        self.left = left
        self.right = right

    def __str__(self):
        return f"({self.left} || {self.right})"


def tokenize_expression(text):
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        match = re_token.match(text, pos)
        if match is None:
            raise ValueError(f"unexpected character {text[pos:].lstrip()[:1]!r}")
        tokens.append(match.group(1) or match.group(2))
        pos = match.end()
    return tokens


class _ExpressionParser:
    """Recursive descent parser. ``||`` binds weaker than ``&&``, which binds
    weaker than ``!``. Binary operators are left-associative.
    """

    def __init__(self, tokens):
        self.tokens = tokens
        self.pos = 0

    def peek(self):
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def next(self):
        token = self.peek()
        if token is None:
            raise ValueError("unexpected end of expression")
        self.pos += 1
        return token

    def parse(self):
        expr = self.parse_or()
        if self.peek() is not None:
            raise ValueError(f"unexpected token {self.peek()!r}")
        return expr

    def parse_or(self):
        expr = self.parse_and()
        while self.peek() == "||":
            self.next()
            expr = Or(expr, self.parse_and())
        return expr

    def parse_and(self):
        expr = self.parse_unary()
        while self.peek() == "&&":
            self.next()
            expr = And(expr, self.parse_unary())
        return expr

    def parse_unary(self):
        if self.peek() == "!":
            self.next()
            return Not(self.parse_unary())
        return self.parse_primary()

    def parse_primary(self):
        token = self.next()
        if token == "(":
            expr = self.parse_or()
            if self.next() != ")":
                raise ValueError("expected ')'")
            return expr
        elif token in ("True", "False"):
            return Literal(token == "True")
        elif token in ("&&", "||", ")"):
            raise ValueError(f"unexpected token {token!r}")
        else:
            return Flag(token)


def parse_expression(text, template=None, lineno=None):
    """Parse a flag expression into a tree of Flag, Literal, Not, And and Or nodes."""
    try:
        tokens = tokenize_expression(text)
        if not tokens:
            raise ValueError("empty expression")
        return _ExpressionParser(tokens).parse()
    except ValueError as err:
        raise DirectiveSyntaxError(
            f"Invalid flag expression {text.strip()!r}: {err}", template, lineno
        ) from None


# %% Directives


def parse_decl(arg, line):
    match = re_decl.match(arg)
    if match is None:
        raise DirectiveSyntaxError(
            f"Invalid declaration {arg!r}", line.template, line.lineno
        )
    name, value_text = match.group(1), match.group(2)

    if value_text is None:
        return Decl(name, None, line)

    value_text = value_text.strip()
    counter_match = re_counter.match(value_text)
    if counter_match:
        base, step = int(counter_match.group(1)), int(counter_match.group(2))
        if step <= 0:
            raise DirectiveSyntaxError(
                f"Counter step of '{name}' must be positive, got {step}",
                line.template,
                line.lineno,
            )
        return Decl(name, CounterSpec(base, step), line)
    elif re_int.match(value_text):
        return Decl(name, int(value_text), line)
    elif value_text in ("True", "False"):
        return Decl(name, value_text == "True", line)
    else:
        raise DirectiveSyntaxError(
            f"Invalid value for '{name}': {value_text!r}", line.template, line.lineno
        )


def parse_directives(lines):
    """Parse a list of SourceLine objects into a list of nodes.

    Raises DirectiveSyntaxError for malformed directives, and
    UnbalancedConditionalError for if-blocks that do not nest properly.
    """
    root = []
    body = root
    stack = []  # (If node, the body that contains it)

    for line in lines:
        match = re_directive.match(line.text)
        if match is None:
            body.append(Text(line))
            continue

        keyword, arg = match.group(1), match.group(2).strip()
        where = line.template, line.lineno

        if keyword == "if":
            node = If(line)
            node.branches.append((parse_expression(arg, *where), []))
            body.append(node)
            stack.append((node, body))
            body = node.branches[-1][1]
        elif keyword == "elseif":
            if not stack:
                raise UnbalancedConditionalError("Found 'elseif' without 'if'", *where)
            node = stack[-1][0]
            if node.else_body is not None:
                raise UnbalancedConditionalError("Found 'elseif' after 'else'", *where)
            node.branches.append((parse_expression(arg, *where), []))
            body = node.branches[-1][1]
        elif keyword == "else":
            if arg:
                raise DirectiveSyntaxError(f"Unexpected text after 'else': {arg!r}", *where)
            if not stack:
                raise UnbalancedConditionalError("Found 'else' without 'if'", *where)
            node = stack[-1][0]
            if node.else_body is not None:
                raise UnbalancedConditionalError("Found a second 'else'", *where)
            node.else_body = body = []
        elif keyword == "endif":
            if arg:
                raise DirectiveSyntaxError(f"Unexpected text after 'endif': {arg!r}", *where)
            if not stack:
                raise UnbalancedConditionalError("Found 'endif' without 'if'", *where)
            _, body = stack.pop()
        elif keyword == "decl":
            body.append(parse_decl(arg, line))
        elif keyword == "include":
            path_match = re_include_path.match(arg)
            if path_match is None:
                raise DirectiveSyntaxError(f"Invalid include {arg!r}", *where)
            body.append(Include(path_match.group(1), line))
        elif not keyword:
            raise DirectiveSyntaxError("Missing directive name", *where)
        else:
            raise DirectiveSyntaxError(f"Unknown directive '{keyword}'", *where)

    if stack:
        line = stack[-1][0].line
        raise UnbalancedConditionalError(
            "Found 'if' without 'endif'", line.template, line.lineno
        )

    return root

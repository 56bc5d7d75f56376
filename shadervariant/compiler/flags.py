"""
Evaluation of flag expressions, and selection of the nodes that survive for a
given set of flags.
"""

from .parser import Text, Include, If, Decl, Flag, Literal, Not, And, Or


def as_flag_set(flags):
    """Turn the given flags (any iterable of str, or a single str) into a frozenset."""
    if flags is None:
        return frozenset()
    elif isinstance(flags, str):
        flags = [flags]
    flags = frozenset(flags)
    for flag in flags:
        if not isinstance(flag, str):
            raise TypeError(f"Flags must be str, not {flag!r}")
    return flags


def evaluate(expr, flags):
    """Evaluate a flag expression for the given set of enabled flags.
    Flags that are not in the set are false.
    """
    if isinstance(expr, Flag):
        return expr.name in flags
    elif isinstance(expr, Literal):
        return expr.value
    elif isinstance(expr, Not):
        return not evaluate(expr.operand, flags)
    elif isinstance(expr, And):
        return evaluate(expr.left, flags) and evaluate(expr.right, flags)
    elif isinstance(expr, Or):
        return evaluate(expr.left, flags) or evaluate(expr.right, flags)
    else:
        raise TypeError(f"Not a flag expression: {expr!r}")


def select_branch(node, flags):
    """Get the body of the first branch of the If-node whose condition holds,
    the else-body if none does, or None if there is no else.
    """
    for condition, body in node.branches:
        if evaluate(condition, flags):
            return body
    return node.else_body


def select_nodes(nodes, flags):
    """Prune the node tree for the given flags.

    Returns a flat list of the surviving (Text, Decl and Include) nodes in
    document order. A surviving declaration enables its name as a flag for the
    conditions that follow it, unless it is declared as False or 0.
    """
    active = set(flags)
    result = []
    _select(nodes, active, result)
    return result


def _select(nodes, active, result):
    for node in nodes:
        if isinstance(node, If):
            body = select_branch(node, active)
            if body:
                _select(body, active, result)
        elif isinstance(node, (Text, Include, Decl)):
            if isinstance(node, Decl):
                if isinstance(node.value, int) and not node.value:
                    active.discard(node.name)
                else:
                    active.add(node.name)
            result.append(node)
        else:
            raise TypeError(f"Unexpected node {node!r}")


def collect_flags(nodes):
    """Get the sorted names of all flags that conditions in the tree refer to."""
    names = set()
    _collect(nodes, names)
    return sorted(names)


def _collect(nodes, names):
    for node in nodes:
        if isinstance(node, If):
            for condition, body in node.branches:
                _collect_names(condition, names)
                _collect(body, names)
            if node.else_body:
                _collect(node.else_body, names)


def _collect_names(expr, names):
    if isinstance(expr, Flag):
        names.add(expr.name)
    elif isinstance(expr, Not):
        _collect_names(expr.operand, names)
    elif isinstance(expr, (And, Or)):
        _collect_names(expr.left, names)
        _collect_names(expr.right, names)

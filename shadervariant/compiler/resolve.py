"""
Resolving of placeholders and annotation markers in the surviving shader text.

* ``#{NAME}`` is replaced by the value of ``NAME``. For a constant that is its
  value, for a plain declaration it is ``true``, and for a counter scope it
  is the next value of that counter.
* ``@loc_struct(SCOPE) name`` becomes ``@location(N) name``, with N the next
  value of SCOPE. With ``@loc_struct(SCOPE) @builtin(B) name`` the field becomes
  ``@builtin(B) name`` and no slot is allocated.
* ``@loc_global(SCOPE) var<TAG> name`` becomes
  ``@group(G) @binding(B) var<TAG> name``, with B the next value of SCOPE, and
  G the index of SCOPE among the global scopes (in order of appearance).
  Push constants (``var<push_constant>``) get no group or binding.

All declarations are collected before any substitution is done, and slots
are handed out in document order of the surviving text.
"""

import re

from .parser import Text, Include, Decl, CounterSpec
from .allocator import SymbolTable, SlotAllocator
from .reflection import ReflectionTable, AttributeSlot, ResourceSlot
from .errors import DirectiveSyntaxError, UnresolvedIncludeError


re_ident = r"[A-Za-z_]\w*"

re_markers = re.compile(
    r"#\{\s*(?P<placeholder>" + re_ident + r")\s*\}"
    r"|@loc_struct\(\s*(?P<struct_scope>" + re_ident + r")\s*\)\s*"
    r"(?:@builtin\(\s*(?P<builtin>\w+)\s*\)\s*)?(?P<field>" + re_ident + r")"
    r"|@loc_global\(\s*(?P<global_scope>" + re_ident + r")\s*\)\s*"
    r"var(?:\s*<(?P<tag>[^>]*)>)?\s+(?P<var>" + re_ident + r")"
)
re_leftover = re.compile(r"#\{|@loc_struct\b|@loc_global\b")
re_type_colon = re.compile(r"\s*:\s*")


def scan_type(text, pos):
    """Get the wgsl type annotation (``: type``) at the given position, or None.
    Handles nested template arguments like ``array<vec4<f32>, 4>``.
    """
    match = re_type_colon.match(text, pos)
    if match is None:
        return None
    pos = match.end()
    depth = 0
    chars = []
    for c in text[pos:]:
        if c == "<":
            depth += 1
        elif c == ">":
            depth -= 1
            if depth < 0:
                break
        elif depth == 0 and c in ",;=){\r\n":
            break
        chars.append(c)
    type = "".join(chars).strip()
    return type or None


def format_value(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def normalize_tag(tag):
    return ", ".join(part.strip() for part in tag.split(","))


class SlotResolver:
    """Resolve the placeholders and markers of the surviving text, line by line.
    Builds the reflection table along the way.
    """

    def __init__(self, allocator):
        self.allocator = allocator
        self.symbols = allocator.symbols
        self.reflection = ReflectionTable()

    def process_line(self, line):
        """Return the resolved text for the given SourceLine."""
        text = line.text
        if "#{" not in text and "@loc_" not in text:
            return text

        parts = []
        pos = 0
        for match in re_markers.finditer(text):
            self._check_leftover(text[pos : match.start()], line)
            parts.append(text[pos : match.start()])
            if match.group("placeholder"):
                parts.append(self._resolve_placeholder(match, line))
            elif match.group("struct_scope"):
                parts.append(self._resolve_struct_field(match, text, line))
            else:
                parts.append(self._resolve_global(match, text, line))
            pos = match.end()
        self._check_leftover(text[pos:], line)
        parts.append(text[pos:])
        return "".join(parts)

    def _check_leftover(self, text, line):
        match = re_leftover.search(text)
        if match:
            raise DirectiveSyntaxError(
                f"Malformed marker near {text[match.start():].strip()!r}",
                line.template,
                line.lineno,
            )

    def _resolve_placeholder(self, match, line):
        name = match.group("placeholder")
        value = self.symbols.get_value(name, line.template, line.lineno)
        if isinstance(value, CounterSpec):
            value = self.allocator.allocate(name, line.template, line.lineno)
        return format_value(value)

    def _resolve_struct_field(self, match, text, line):
        scope = match.group("struct_scope")
        builtin = match.group("builtin")
        field = match.group("field")
        wgsl_type = scan_type(text, match.end())

        if builtin:
            self.symbols.get_counter_spec(scope, line.template, line.lineno)
            slot = AttributeSlot(None, builtin, wgsl_type)
            code = f"@builtin({builtin}) {field}"
        else:
            location = self.allocator.allocate(scope, line.template, line.lineno)
            slot = AttributeSlot(location, None, wgsl_type)
            code = f"@location({location}) {field}"

        self.reflection.add_attribute(scope, field, slot, line.template, line.lineno)
        return code

    def _resolve_global(self, match, text, line):
        scope = match.group("global_scope")
        tag = match.group("tag")
        name = match.group("var")
        wgsl_type = scan_type(text, match.end())
        tag = normalize_tag(tag) if tag is not None else None
        decl = f"var<{tag}> {name}" if tag else f"var {name}"

        if tag == "push_constant":
            self.symbols.get_counter_spec(scope, line.template, line.lineno)
            slot = ResourceSlot(None, None, tag, wgsl_type)
            code = decl
        else:
            binding = self.allocator.allocate(scope, line.template, line.lineno)
            group = self.reflection.groups.setdefault(
                scope, len(self.reflection.groups)
            )
            slot = ResourceSlot(group, binding, tag, wgsl_type)
            code = f"@group({group}) @binding({binding}) {decl}"

        self.reflection.add_resource(scope, name, slot, line.template, line.lineno)
        return code


def resolve_nodes(nodes, symbols=None):
    """Resolve a pruned list of nodes into (code, reflection).

    First all declarations are collected into the symbol table, then the text
    lines are resolved in order. The symbol table is frozen afterwards.
    """
    symbols = SymbolTable() if symbols is None else symbols

    for node in nodes:
        if isinstance(node, Decl):
            symbols.declare(node)
        elif isinstance(node, Include):
            raise UnresolvedIncludeError(node.path, node.line.template, node.line.lineno)

    resolver = SlotResolver(SlotAllocator(symbols))
    parts = [resolver.process_line(node.line) for node in nodes if isinstance(node, Text)]
    symbols.freeze()

    reflection = resolver.reflection
    reflection.allocations = symbols.allocations
    reflection.constants = symbols.constants
    return "".join(parts), reflection

"""
Allocation of slots (locations and bindings) from per-scope counters.

A scope is declared in a template with::

    ///#decl VertexInput = _atomic_counter(0, 1)

Each allocation in that scope then returns the current value of the counter,
and advances it by the step. Allocators and symbol tables are created per
compilation; there is no state that outlives a compilation.
"""

from .parser import CounterSpec
from .errors import CounterSpecConflictError, UnknownScopeError, DuplicateSlotError


__all__ = ["CounterSpec", "SymbolTable", "SlotAllocator"]


def _describe(value):
    if isinstance(value, CounterSpec):
        return f"_atomic_counter({value.base}, {value.step})"
    return repr(value)


class SymbolTable:
    """The names declared in a variant, and the slots allocated per scope.

    Filled during a compilation, and frozen when it completes.
    """

    def __init__(self):
        self._values = {}  # name -> bool | int | CounterSpec
        self._origins = {}  # name -> SourceLine of first declaration
        self._slots = {}  # scope -> list of allocated values, in order
        self._frozen = False

    def _check_not_frozen(self):
        if self._frozen:
            raise RuntimeError("Cannot modify a frozen SymbolTable.")

    def freeze(self):
        """Make the table read-only."""
        self._frozen = True

    def declare(self, decl):
        """Add a (surviving) declaration. A plain declaration is a true flag.

        Declaring a name again with an identical value is allowed. Any
        other redeclaration is a CounterSpecConflictError.
        """
        self._check_not_frozen()
        value = True if decl.value is None else decl.value
        try:
            existing = self._values[decl.name]
        except KeyError:
            self._values[decl.name] = value
            self._origins[decl.name] = decl.line
            return
        if type(existing) is type(value) and existing == value:
            return
        origin = self._origins[decl.name]
        raise CounterSpecConflictError(
            f"'{decl.name}' is declared as {_describe(value)}, but was declared "
            f"as {_describe(existing)} before (in {origin.template}, line {origin.lineno})",
            decl.line.template,
            decl.line.lineno,
        )

    def __contains__(self, name):
        return name in self._values

    def get_value(self, name, template=None, lineno=None):
        """Get the declared value of a name. Raises UnknownScopeError if undeclared."""
        try:
            return self._values[name]
        except KeyError:
            raise UnknownScopeError(name, template, lineno) from None

    def get_counter_spec(self, scope, template=None, lineno=None):
        """Get the CounterSpec of a scope. Raises UnknownScopeError if the
        scope is undeclared or not a counter.
        """
        value = self.get_value(scope, template, lineno)
        if not isinstance(value, CounterSpec):
            raise UnknownScopeError(
                scope,
                template,
                lineno,
                f"'{scope}' is declared as {_describe(value)}, not as a counter scope",
            )
        return value

    def record(self, scope, value, template=None, lineno=None):
        """Record that a value was allocated in the given scope."""
        self._check_not_frozen()
        slots = self._slots.setdefault(scope, [])
        if value in slots:
            raise DuplicateSlotError(
                f"Slot {value} of scope '{scope}' is assigned twice", template, lineno
            )
        slots.append(value)

    def get_slots(self, scope):
        """Get the values allocated in the given scope (in allocation order)."""
        return tuple(self._slots.get(scope, ()))

    @property
    def constants(self):
        """A dict of the declared names that have a constant value (ints and bools)."""
        return {
            name: value
            for name, value in self._values.items()
            if not isinstance(value, CounterSpec)
        }

    @property
    def counters(self):
        """A dict mapping counter scopes to their CounterSpec."""
        return {
            name: value
            for name, value in self._values.items()
            if isinstance(value, CounterSpec)
        }

    @property
    def allocations(self):
        """A dict mapping scope to a tuple of allocated values, in first-allocated order."""
        return {scope: tuple(slots) for scope, slots in self._slots.items()}


class SlotAllocator:
    """Hands out slots from the counters declared in a SymbolTable.

    A counter is initialized at its base the first time its scope is
    allocated from.
    """

    def __init__(self, symbols):
        self._symbols = symbols
        self._next_values = {}

    @property
    def symbols(self):
        return self._symbols

    def allocate(self, scope, template=None, lineno=None):
        """Get the next value of the given scope, and advance its counter."""
        spec = self._symbols.get_counter_spec(scope, template, lineno)
        value = self._next_values.get(scope, spec.base)
        self._next_values[scope] = value + spec.step
        self._symbols.record(scope, value, template, lineno)
        return value

"""
The reflection table of a compiled variant: which slot each annotated
attribute and resource ended up at. It can also produce the descriptors that
wgpu needs to create the matching vertex buffer and bind group layouts.
"""

import re
from collections import namedtuple

import wgpu

from .errors import DuplicateSlotError


AttributeSlot = namedtuple("AttributeSlot", ["location", "builtin", "type"])
AttributeSlot.__doc__ = "A struct field: its location (None for builtins), builtin name, and wgsl type."

ResourceSlot = namedtuple("ResourceSlot", ["group", "binding", "tag", "type"])
ResourceSlot.__doc__ = "A global resource: its group and binding (None for push constants), var tag, and wgsl type."


visibility_render = wgpu.ShaderStage.VERTEX | wgpu.ShaderStage.FRAGMENT

re_vec = re.compile(r"^vec([234])<(\w+)>$")
re_vec_short = re.compile(r"^vec([234])([fiuh])$")
re_texture = re.compile(r"^texture_(\w+?)(?:<(.*)>)?$")

scalar_formats = {
    "f32": "float32",
    "u32": "uint32",
    "i32": "sint32",
    "f16": "float16",
}
scalar_shorthands = {"f": "f32", "i": "i32", "u": "u32", "h": "f16"}
scalar_sizes = {"float32": 4, "uint32": 4, "sint32": 4, "float16": 2}


def to_vertex_format(wgsl_type):
    """Convert a wgsl type (e.g. 'vec3<f32>' or 'vec3f') to a wgpu.VertexFormat."""
    t = (wgsl_type or "").replace(" ", "")
    match = re_vec_short.match(t)
    if match:
        t = f"vec{match.group(1)}<{scalar_shorthands[match.group(2)]}>"

    fmt = ""
    match = re_vec.match(t)
    if match:
        if match.group(2) in scalar_formats:
            fmt = scalar_formats[match.group(2)] + "x" + match.group(1)
    elif t in scalar_formats:
        fmt = scalar_formats[t]

    if fmt and fmt in wgpu.VertexFormat:
        return fmt
    else:
        raise ValueError(f"Unexpected vertex attribute type '{wgsl_type}'")


def vertex_format_size(fmt):
    """Get the size in bytes of a vertex format."""
    primitive, _, n = fmt.partition("x")
    return scalar_sizes[primitive] * int(n or "1")


def to_binding_layout(slot):
    """Get the type-specific part of a bind group layout entry for a ResourceSlot.

    The result is a dict with a single key: "buffer", "sampler", "texture" or
    "storage_texture".
    """
    tag = slot.tag or ""
    wgsl_type = (slot.type or "").replace(" ", "")
    space, _, access = tag.partition(",")
    space, access = space.strip(), access.strip()

    if space == "uniform":
        return {
            "buffer": {
                "type": wgpu.BufferBindingType.uniform,
                "has_dynamic_offset": False,
                "min_binding_size": None,
            }
        }
    elif space == "storage":
        if access == "read_write":
            buffer_type = wgpu.BufferBindingType.storage
        else:
            buffer_type = wgpu.BufferBindingType.read_only_storage
        return {
            "buffer": {
                "type": buffer_type,
                "has_dynamic_offset": False,
                "min_binding_size": None,
            }
        }
    elif space:
        raise ValueError(f"Cannot bind a resource with address space '{space}'")

    if wgsl_type == "sampler":
        return {"sampler": {"type": wgpu.SamplerBindingType.filtering}}
    elif wgsl_type == "sampler_comparison":
        return {"sampler": {"type": wgpu.SamplerBindingType.comparison}}

    match = re_texture.match(wgsl_type)
    if match is None:
        raise ValueError(f"Cannot derive a binding layout for type '{slot.type}'")
    kind, args = match.group(1), (match.group(2) or "")

    if kind.startswith("storage_"):
        fmt, _, access = args.partition(",")
        accesses = {
            "read": wgpu.StorageTextureAccess.read_only,
            "write": wgpu.StorageTextureAccess.write_only,
            "read_write": wgpu.StorageTextureAccess.read_write,
        }
        return {
            "storage_texture": {
                "access": accesses[access or "write"],
                "format": fmt,
                "view_dimension": _to_view_dim(kind[len("storage_") :]),
            }
        }

    multisampled = False
    if kind.startswith("depth_"):
        kind = kind[len("depth_") :]
        sample_type = wgpu.TextureSampleType.depth
    else:
        sample_types = {
            "f32": wgpu.TextureSampleType.float,
            "u32": wgpu.TextureSampleType.uint,
            "i32": wgpu.TextureSampleType.sint,
        }
        if args not in sample_types:
            raise ValueError(f"Cannot derive a sample type for type '{slot.type}'")
        sample_type = sample_types[args]
    if kind.startswith("multisampled_"):
        kind = kind[len("multisampled_") :]
        multisampled = True

    return {
        "texture": {
            "sample_type": sample_type,
            "view_dimension": _to_view_dim(kind),
            "multisampled": multisampled,
        }
    }


def _to_view_dim(kind):
    view_dim = kind.replace("_", "-")  # 2d_array -> 2d-array
    if view_dim not in wgpu.TextureViewDimension:
        raise ValueError(f"Unexpected texture dimension '{kind}'")
    return view_dim


def _add_unique(d, scope, name, slot, template, lineno):
    if name in d:
        raise DuplicateSlotError(
            f"'{name}' is annotated twice in scope '{scope}'", template, lineno
        )
    d[name] = slot


class ReflectionTable:
    """Describes the slots of a compiled variant, partitioned by scope.

    * ``attributes``: scope -> field name -> AttributeSlot
    * ``resources``: scope -> resource name -> ResourceSlot
    * ``groups``: scope -> bind group index
    * ``allocations``: scope -> tuple of allocated values, in order
    * ``constants``: name -> declared constant value
    """

    def __init__(self):
        self.attributes = {}
        self.resources = {}
        self.groups = {}
        self.allocations = {}
        self.constants = {}

    def __repr__(self):
        return f"<ReflectionTable with {len(self.attributes)} attribute scopes and {len(self.resources)} resource scopes>"

    def __eq__(self, other):
        if not isinstance(other, ReflectionTable):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def add_attribute(self, scope, name, slot, template=None, lineno=None):
        """Add a struct field. A name can only be annotated once per scope."""
        fields = self.attributes.setdefault(scope, {})
        _add_unique(fields, scope, name, slot, template, lineno)

    def add_resource(self, scope, name, slot, template=None, lineno=None):
        """Add a global resource. A name can only be annotated once per scope."""
        items = self.resources.setdefault(scope, {})
        _add_unique(items, scope, name, slot, template, lineno)

    def get_locations(self, scope):
        """Get a dict mapping field name to location, for the non-builtin fields of a scope."""
        return {
            name: slot.location
            for name, slot in self.attributes.get(scope, {}).items()
            if slot.builtin is None
        }

    def get_bindings(self, scope):
        """Get a dict mapping resource name to (group, binding), for the bound resources of a scope."""
        return {
            name: (slot.group, slot.binding)
            for name, slot in self.resources.get(scope, {}).items()
            if slot.binding is not None
        }

    def get_vertex_attributes(self, scope):
        """Get a list of wgpu vertex attribute dicts for the given struct scope.

        The attributes are assumed to be tightly packed in a single buffer,
        in order of location.
        """
        fields = sorted(
            (slot.location, name, slot)
            for name, slot in self.attributes.get(scope, {}).items()
            if slot.builtin is None
        )
        attributes = []
        offset = 0
        for location, name, slot in fields:
            try:
                fmt = to_vertex_format(slot.type)
            except ValueError as err:
                raise ValueError(f"Attribute '{name}' in '{scope}': {err}") from None
            attributes.append(
                {"format": fmt, "offset": offset, "shader_location": location}
            )
            offset += vertex_format_size(fmt)
        return attributes

    def get_vertex_buffer_layout(self, scope, step_mode="vertex"):
        """Get a wgpu vertex buffer layout dict for the given struct scope."""
        attributes = self.get_vertex_attributes(scope)
        stride = 0
        if attributes:
            last = attributes[-1]
            stride = last["offset"] + vertex_format_size(last["format"])
        return {
            "array_stride": stride,
            "step_mode": getattr(wgpu.VertexStepMode, step_mode),
            "attributes": attributes,
        }

    def get_bind_group_layout_entries(self, scope, visibility=visibility_render):
        """Get a list of wgpu bind group layout entry dicts for the given resource scope.

        Push constants are not part of a bind group and are skipped.
        """
        if isinstance(visibility, str):
            visibility = getattr(wgpu.ShaderStage, visibility)
        entries = []
        for name, slot in self.resources.get(scope, {}).items():
            if slot.binding is None:
                continue
            try:
                layout = to_binding_layout(slot)
            except ValueError as err:
                raise ValueError(f"Resource '{name}' in '{scope}': {err}") from None
            entry = {"binding": slot.binding, "visibility": visibility}
            entry.update(layout)
            entries.append(entry)
        return entries

    def to_dict(self):
        """Get the reflection as a dict of plain (JSON-compatible) values."""
        return {
            "attributes": {
                scope: {name: slot._asdict() for name, slot in fields.items()}
                for scope, fields in self.attributes.items()
            },
            "resources": {
                scope: {name: slot._asdict() for name, slot in items.items()}
                for scope, items in self.resources.items()
            },
            "groups": dict(self.groups),
            "allocations": {
                scope: list(values) for scope, values in self.allocations.items()
            },
            "constants": dict(self.constants),
        }

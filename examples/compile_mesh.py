"""
Example that compiles the variants of a two-pass technique, and prints the
slots and pipeline layouts that each variant ends up with.

Run with ``SHADERVARIANT_LOG_LEVEL=debug`` to see what the compiler does.
"""

import os
import itertools

import jinja2

import shadervariant as sv


shader_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "shaders")

sv.register_shader_loader("example", jinja2.FileSystemLoader(shader_dir))
technique = sv.Technique.from_file(os.path.join(shader_dir, "mesh.toml"), "example")
cache = sv.get_default_cache()


def print_variant(variant):
    reflection = variant.reflection
    print(f"{variant.template} [{sv.variant_name(variant.flags) or '-'}]")
    print("    locations:", reflection.get_locations("VertexInput"))
    print("    varyings: ", reflection.get_locations("Varyings"))
    print("    bindings: ", reflection.get_bindings("Material"))
    layout = reflection.get_vertex_buffer_layout("VertexInput")
    print("    stride:   ", layout["array_stride"])


if __name__ == "__main__":
    main_pass = technique.get_pass("main")
    units = sorted(main_pass.units)
    flag_sets = [
        flags for n in range(len(units) + 1) for flags in itertools.combinations(units, n)
    ]
    template = technique.get_template_name(main_pass)
    for variant in cache.preload(template, flag_sets):
        print_variant(variant)

    outline = technique.compile_pass("outline", (), cache)
    print_variant(outline)

    print()
    print(technique.compile_pass("main", ["VERTEX_COLOR", "ALPHA_TEST"], cache).code)
    print("cache stats:", cache.get_stats())

import jinja2
from pytest import raises

from shadervariant.compiler import (
    resolve_includes,
    load_template,
    register_shader_loader,
    unregister_shader_loader,
    CyclicIncludeError,
    UnresolvedIncludeError,
    DirectiveSyntaxError,
)
from shadervariant.compiler.loading import as_loader


codes = {}
codes["a.wgsl"] = """fn a() -> f32 {
    return 1.0;
}
"""
codes["b.wgsl"] = """///#include "a.wgsl"
fn b() -> f32 {
    return a();
}
"""
codes["c.wgsl"] = """///#include "b.wgsl"
///#include "a.wgsl"
fn c() {}"""
codes["cycle1.wgsl"] = """///#include "cycle2.wgsl"
"""
codes["cycle2.wgsl"] = """fn x() {}
///#include "cycle1.wgsl"
"""
codes["self.wgsl"] = """///#include "self.wgsl"
"""
codes["lib/main.wgsl"] = """///#include "util.wgsl"
///#include "a.wgsl"
"""
codes["lib/util.wgsl"] = """fn util() {}
"""


def get_code(document):
    return "".join(line.text for line in document.lines)


def test_includes_none():
    document = resolve_includes("a.wgsl", codes)
    assert document.name == "a.wgsl"
    assert get_code(document) == codes["a.wgsl"]
    assert list(document.templates) == ["a.wgsl"]


def test_includes_simple():
    document = resolve_includes("b.wgsl", codes)
    ref = """fn a() -> f32 {
    return 1.0;
}
fn b() -> f32 {
    return a();
}
"""
    assert get_code(document) == ref


def test_includes_are_spliced_once():
    # a.wgsl is included via b.wgsl and directly, it is present once
    document = resolve_includes("c.wgsl", codes)
    code = get_code(document)
    assert code.count("fn a()") == 1
    assert code.index("fn a()") < code.index("fn b()") < code.index("fn c()")
    assert sorted(document.templates) == ["a.wgsl", "b.wgsl", "c.wgsl"]


def test_includes_keep_origin():
    document = resolve_includes("b.wgsl", codes)
    origins = [(line.template, line.lineno) for line in document.lines]
    assert origins == [
        ("a.wgsl", 1),
        ("a.wgsl", 2),
        ("a.wgsl", 3),
        ("b.wgsl", 2),
        ("b.wgsl", 3),
        ("b.wgsl", 4),
    ]


def test_includes_without_trailing_newline():
    loader = {"x.wgsl": '///#include "y.wgsl"\nfn x() {}\n', "y.wgsl": "fn y() {}"}
    document = resolve_includes("x.wgsl", loader)
    assert get_code(document) == "fn y() {}\nfn x() {}\n"


def test_includes_inside_conditionals_are_spliced():
    loader = {
        "x.wgsl": '///#if FOO\n///#include "a.wgsl"\n///#endif\n',
        "a.wgsl": codes["a.wgsl"],
    }
    document = resolve_includes("x.wgsl", loader)
    texts = [line.text for line in document.lines]
    assert texts[0] == "///#if FOO\n"
    assert texts[1] == "fn a() -> f32 {\n"
    assert texts[-1] == "///#endif\n"


def test_includes_relative():
    document = resolve_includes("lib/main.wgsl", codes)
    code = get_code(document)
    assert "fn util()" in code
    assert "fn a()" in code
    assert sorted(document.templates) == ["a.wgsl", "lib/main.wgsl", "lib/util.wgsl"]


def test_includes_cycle():
    with raises(CyclicIncludeError) as err:
        resolve_includes("cycle1.wgsl", codes)
    assert err.value.chain == ("cycle1.wgsl", "cycle2.wgsl", "cycle1.wgsl")
    assert err.value.template == "cycle2.wgsl"
    assert err.value.lineno == 2
    assert "cycle1.wgsl -> cycle2.wgsl -> cycle1.wgsl" in str(err.value)

    with raises(CyclicIncludeError) as err:
        resolve_includes("self.wgsl", codes)
    assert err.value.chain == ("self.wgsl", "self.wgsl")


def test_includes_missing():
    loader = {"x.wgsl": 'fn x() {}\n///#include "missing.wgsl"\n'}
    with raises(UnresolvedIncludeError) as err:
        resolve_includes("x.wgsl", loader)
    assert err.value.path == "missing.wgsl"
    assert err.value.template == "x.wgsl"
    assert err.value.lineno == 2
    assert err.value.kind == "UnresolvedInclude"

    with raises(UnresolvedIncludeError) as err:
        resolve_includes("nope.wgsl", loader)
    assert err.value.template is None


def test_includes_need_quoted_path():
    loader = {"x.wgsl": "///#include a.wgsl\n", "a.wgsl": ""}
    with raises(DirectiveSyntaxError) as err:
        resolve_includes("x.wgsl", loader)
    assert err.value.lineno == 1


def test_load_template():
    template = load_template("./lib//util.wgsl", codes)
    assert template.name == "lib/util.wgsl"
    assert template.source == codes["lib/util.wgsl"]
    assert template.is_uptodate()
    lines = template.get_lines()
    assert [(line.text, line.lineno) for line in lines] == [("fn util() {}\n", 1)]


def test_uptodate_from_loader():
    mapping = {"x.wgsl": "fn x() {}\n"}
    template = load_template("x.wgsl", jinja2.DictLoader(mapping))
    assert template.is_uptodate()
    mapping["x.wgsl"] = "fn x2() {}\n"
    assert not template.is_uptodate()


def test_function_loader():
    def load(name):
        if name == "f.wgsl":
            return "fn f() {}\n"

    assert load_template("f.wgsl", load).source == "fn f() {}\n"
    with raises(UnresolvedIncludeError):
        load_template("g.wgsl", load)


def test_register_shader_loader():
    register_shader_loader("mylib", {"main.wgsl": '///#include "a.wgsl"\n', "a.wgsl": "a\n"})

    # Includes are found relative to the context
    document = resolve_includes("mylib/main.wgsl")
    assert get_code(document) == "a\n"
    assert sorted(document.templates) == ["mylib/a.wgsl", "mylib/main.wgsl"]

    with raises(RuntimeError):
        register_shader_loader("mylib", {})

    unregister_shader_loader("mylib")
    with raises(UnresolvedIncludeError):
        resolve_includes("mylib/main.wgsl")


def test_register_shader_loader_checks():
    with raises(TypeError):
        register_shader_loader("my/lib", {})
    with raises(TypeError):
        register_shader_loader("", {})
    with raises(TypeError):
        as_loader(42)
    with raises(TypeError):
        load_template("", codes)


def test_includes_diamond():
    loader = {
        "mesh.wgsl": '///#include "common.wgsl"\n///#include "light.wgsl"\nfn mesh() {}\n',
        "light.wgsl": '///#include "common.wgsl"\nfn light() {}\n',
        "common.wgsl": "struct Camera {};\n",
    }
    document = resolve_includes("mesh.wgsl", loader)
    assert get_code(document) == "struct Camera {};\nfn light() {}\nfn mesh() {}\n"
    assert sorted(document.templates) == ["common.wgsl", "light.wgsl", "mesh.wgsl"]


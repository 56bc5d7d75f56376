import time
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

import jinja2
from pytest import raises

from shadervariant.compiler import (
    ShaderCompiler,
    VariantCache,
    UnknownScopeError,
)


def make_codes():
    codes = {}
    codes["common.wgsl"] = """///#decl POS = _atomic_counter(0, 1)
"""
    codes["a.wgsl"] = """///#include "common.wgsl"
@loc_struct(POS) position: vec3<f32>,
///#if COLOR
@loc_struct(POS) color: vec4<f32>,
///#endif
"""
    codes["b.wgsl"] = """const B = 1;
"""
    return codes


def test_cache_key():
    cache = VariantCache()
    assert cache.get_key("a.wgsl", ["B", "A"]) == cache.get_key("./a.wgsl", ("A", "B"))
    assert cache.get_key("a.wgsl") == ("a.wgsl", frozenset())


def test_cache_compile():
    cache = VariantCache(ShaderCompiler(make_codes()))
    assert cache.get_stats() == (0, 0, 0)

    variant1 = cache.compile("a.wgsl", ["COLOR"])
    variant2 = cache.compile("a.wgsl", ("COLOR",))
    variant3 = cache.compile("a.wgsl")
    assert variant1 is variant2
    assert variant1 is not variant3
    assert "@location(1) color" in variant1.code
    assert cache.get_stats() == (2, 1, 2)


def test_cache_needs_compiler():
    with raises(TypeError):
        VariantCache({"a.wgsl": ""})


def test_cache_concurrent_callers_share_one_compilation():
    codes = make_codes()
    calls = []
    lock = threading.Lock()

    def load(name):
        with lock:
            calls.append(name)
        time.sleep(0.05)
        return codes.get(name)

    cache = VariantCache(ShaderCompiler(load))

    def work(i):
        return cache.compile("a.wgsl", ["COLOR"])

    with ThreadPoolExecutor(max_workers=8) as executor:
        variants = list(executor.map(work, range(8)))

    assert all(variant is variants[0] for variant in variants)
    assert calls.count("a.wgsl") == 1
    assert cache.get_stats() == (1, 7, 1)


def test_cache_unrelated_keys_compile_in_parallel():
    codes = make_codes()
    started = threading.Barrier(2, timeout=5)

    def load(name):
        if name in ("a.wgsl", "b.wgsl"):
            # Both roots must be loading at the same time to pass the barrier
            started.wait()
        return codes.get(name)

    cache = VariantCache(ShaderCompiler(load))
    with ThreadPoolExecutor(max_workers=2) as executor:
        future1 = executor.submit(cache.compile, "a.wgsl")
        future2 = executor.submit(cache.compile, "b.wgsl")
        assert future1.result().code.startswith("@location(0)")
        assert future2.result().code == "const B = 1;\n"


def test_cache_error_propagates_to_all_waiters():
    codes = {"bad.wgsl": "let x = #{NOPE};\n"}

    def load(name):
        time.sleep(0.05)
        return codes.get(name)

    cache = VariantCache(ShaderCompiler(load))

    def work(i):
        try:
            cache.compile("bad.wgsl")
        except UnknownScopeError as err:
            return err
        return None

    with ThreadPoolExecutor(max_workers=4) as executor:
        results = list(executor.map(work, range(4)))

    assert all(isinstance(err, UnknownScopeError) for err in results)
    assert cache.get_stats()[0] == 0


def test_cache_error_is_not_cached():
    codes = {"x.wgsl": "let x = #{N};\n"}
    cache = VariantCache(ShaderCompiler(codes))

    with raises(UnknownScopeError):
        cache.compile("x.wgsl")
    assert cache.get_stats() == (0, 0, 1)

    # The dict loader looks the source up again, so this fixes the template
    codes["x.wgsl"] = "///#decl N = 2\nlet x = #{N};\n"
    variant = cache.compile("x.wgsl")
    assert variant.code == "let x = 2;\n"
    assert cache.get_stats() == (1, 0, 2)


def test_cache_preload():
    cache = VariantCache(ShaderCompiler(make_codes()))
    flag_sets = [[], ["COLOR"], ("COLOR",)]
    variants = cache.preload("a.wgsl", flag_sets, max_workers=2)
    assert len(variants) == 3
    assert variants[0].flags == frozenset()
    assert variants[1].flags == frozenset(["COLOR"])
    assert variants[1] is variants[2]
    assert cache.get_stats()[0] == 2
    assert cache.compile("a.wgsl", ["COLOR"]) is variants[1]


def test_cache_invalidate():
    cache = VariantCache(ShaderCompiler(make_codes()))
    cache.compile("a.wgsl")
    cache.compile("a.wgsl", ["COLOR"])
    cache.compile("b.wgsl")
    assert cache.get_stats()[0] == 3

    cache.invalidate("b.wgsl")
    assert cache.get_stats()[0] == 2

    # Invalidating an include drops the variants that use it
    cache.invalidate("common.wgsl")
    assert cache.get_stats()[0] == 0

    cache.compile("a.wgsl")
    cache.compile("b.wgsl")
    cache.invalidate()
    assert cache.get_stats()[0] == 0


def test_cache_invalidate_stale():
    codes = make_codes()
    cache = VariantCache(ShaderCompiler(jinja2.DictLoader(codes)))
    variant1 = cache.compile("a.wgsl")
    cache.compile("b.wgsl")
    assert cache.invalidate_stale() == []

    # Change an include
    codes["common.wgsl"] = "///#decl POS = _atomic_counter(3, 1)\n"
    removed = cache.invalidate_stale()
    assert removed == [("a.wgsl", frozenset())]
    assert cache.get_stats()[0] == 1

    variant2 = cache.compile("a.wgsl")
    assert variant2 is not variant1
    assert "@location(3) position" in variant2.code


def test_cache_logs_hits_and_misses(caplog):
    caplog.set_level(logging.DEBUG, logger="shadervariant")
    cache = VariantCache(ShaderCompiler(make_codes()))

    cache.compile("a.wgsl", ["COLOR"])
    messages = [r.getMessage() for r in caplog.records]
    assert "Variant cache miss for 'a.wgsl' [COLOR]" in messages
    assert any(m.startswith("Compiled 'a.wgsl' for flags [COLOR]") for m in messages)

    caplog.clear()
    cache.compile("a.wgsl", ["COLOR"])
    messages = [r.getMessage() for r in caplog.records]
    assert messages == ["Variant cache hit for 'a.wgsl' [COLOR]"]

"""Tests for knowledge graph resolution."""

from __future__ import annotations

import logging

from repodocs.indexer.resolver import KnowledgeGraph, resolve, symbol_id
from tests.helpers import make_symbol


def _edges(graph: KnowledgeGraph) -> dict:
    return {
        sid: (s.relationships.calls, s.relationships.called_by, s.relationships.references)
        for sid, s in graph.symbol_table.items()
    }


def test_cross_file_call(extractor):
    a = extractor.extract("export function foo() {\n  return 1;\n}\n", "a.ts")
    b = extractor.extract("export function bar() {\n  return foo();\n}\n", "b.ts")
    graph = resolve([a, b])

    foo = graph.get("a.ts:foo:1")
    bar = graph.get("b.ts:bar:1")
    assert bar.relationships.calls == [foo.id]
    assert foo.relationships.called_by == [bar.id]
    assert foo.relationships.references == [bar.id]
    assert graph.usage_count(foo.id) == 1


def test_forward_reference_resolves():
    caller = make_symbol("main", "a.ts", 1, "function main() { later(); }")
    callee = make_symbol("later", "z.ts", 1, "function later() {}")
    graph = resolve([[caller], [callee]])
    assert graph.get("a.ts:main:1").relationships.calls == ["z.ts:later:1"]


def test_ids_are_location_based():
    assert symbol_id("src/a.ts", "foo", 3) == "src/a.ts:foo:3"
    graph = resolve([[make_symbol("foo", "src/a.ts", 3)]])
    assert list(graph.symbol_table) == ["src/a.ts:foo:3"]


def test_same_file_candidate_wins():
    helper_a = make_symbol("helper", "a.ts", 1, "function helper() {}")
    helper_b = make_symbol("helper", "b.ts", 1, "function helper() {}")
    main_b = make_symbol("main", "b.ts", 5, "function main() { helper(); }")
    graph = resolve([[helper_a], [helper_b, main_b]])

    assert graph.get("b.ts:main:5").relationships.calls == ["b.ts:helper:1"]
    assert graph.candidates("helper") == ["a.ts:helper:1", "b.ts:helper:1"]


def test_first_in_scan_order_wins_across_files():
    helper_a = make_symbol("helper", "a.ts", 1, "function helper() {}")
    helper_b = make_symbol("helper", "b.ts", 1, "function helper() {}")
    user = make_symbol("user", "c.ts", 1, "function user() { helper(); }")
    graph = resolve([[helper_a], [helper_b], [user]])

    assert graph.get("c.ts:user:1").relationships.calls == ["a.ts:helper:1"]
    assert graph.lookup("helper") == "a.ts:helper:1"
    assert graph.lookup("helper", from_file="b.ts") == "b.ts:helper:1"
    assert graph.lookup("missing") is None


def test_duplicate_id_keeps_first(caplog):
    first = make_symbol("foo", "a.ts", 1, "function foo() { first(); }")
    second = make_symbol("foo", "a.ts", 1, "function foo() { second(); }")
    with caplog.at_level(logging.WARNING, logger="repodocs.indexer.resolver"):
        graph = resolve([[first, second]])
    assert len(graph) == 1
    assert "first" in graph.get("a.ts:foo:1").body
    assert graph.candidates("foo") == ["a.ts:foo:1"]
    assert "Duplicate symbol id" in caplog.text


def test_self_reference_is_not_an_edge():
    rec = make_symbol("fact", "m.ts", 1, "function fact(n) { return n ? n * fact(n - 1) : 1; }")
    graph = resolve([[rec]])
    assert graph.get("m.ts:fact:1").relationships.calls == []


def test_class_does_not_call_its_own_methods():
    cls = make_symbol("Engine", "e.ts", 1, "class Engine {\n  start() { helper(); }\n}", kind="class", end_line=3)
    method = make_symbol("start", "e.ts", 2, "start() { helper(); }", kind="method")
    helper = make_symbol("helper", "h.ts", 1, "function helper() {}")
    graph = resolve([[cls, method], [helper]])

    assert graph.get("e.ts:Engine:1").relationships.calls == ["h.ts:helper:1"]
    assert graph.get("e.ts:start:2").relationships.calls == ["h.ts:helper:1"]
    assert graph.get("h.ts:helper:1").relationships.called_by == ["e.ts:Engine:1", "e.ts:start:2"]


def test_mutual_calls_form_a_cycle():
    ping = make_symbol("ping", "p.ts", 1, "function ping() { pong(); }")
    pong = make_symbol("pong", "p.ts", 2, "function pong() { ping(); }")
    graph = resolve([[ping, pong]])
    assert graph.get("p.ts:ping:1").relationships.calls == ["p.ts:pong:2"]
    assert graph.get("p.ts:pong:2").relationships.calls == ["p.ts:ping:1"]
    assert graph.get("p.ts:ping:1").relationships.called_by == ["p.ts:pong:2"]


def test_edges_are_deduplicated_in_first_occurrence_order():
    a = make_symbol("alpha", "x.ts", 1, "function alpha() {}")
    b = make_symbol("beta", "x.ts", 2, "function beta() {}")
    c = make_symbol("main", "y.ts", 1, "function main() { beta(); alpha(); beta(); }")
    graph = resolve([[a, b], [c]])
    assert graph.get("y.ts:main:1").relationships.calls == ["x.ts:beta:2", "x.ts:alpha:1"]


def test_unknown_identifiers_are_skipped():
    sym = make_symbol("main", "a.ts", 1, "function main() { console.log(window.location); }")
    graph = resolve([[sym]])
    assert graph.get("a.ts:main:1").relationships.calls == []


def test_resolution_is_idempotent_and_does_not_mutate_input(extractor):
    files = [
        extractor.extract("export function foo() { return bar(); }\n", "a.ts"),
        extractor.extract("export function bar() { return foo(); }\nclass K { m() { foo(); } }\n", "b.ts"),
    ]
    first = resolve(files)
    second = resolve(files)

    assert list(first.symbol_table) == list(second.symbol_table)
    assert _edges(first) == _edges(second)
    assert all(s.id == "" and s.relationships.calls == [] for f in files for s in f)


def test_no_dangling_ids(extractor):
    files = [
        extractor.extract("export function foo() { return bar(); }\n", "a.ts"),
        extractor.extract("export function bar() { return foo() + baz(); }\n", "b.ts"),
    ]
    graph = resolve(files)
    for sym in graph.symbol_table.values():
        rel = sym.relationships
        for sid in rel.calls + rel.called_by + rel.references:
            assert sid in graph


def test_round_trip_prunes_dangling_ids():
    graph = resolve([
        [make_symbol("foo", "a.ts", 1, "function foo() {}")],
        [make_symbol("bar", "b.ts", 1, "function bar() { foo(); }")],
    ])
    data = graph.to_dict()
    del data["symbol_table"]["a.ts:foo:1"]

    restored = KnowledgeGraph.from_dict(data)
    assert list(restored.symbol_table) == ["b.ts:bar:1"]
    assert restored.get("b.ts:bar:1").relationships.calls == []
    assert "foo" not in restored.name_index


def test_most_referenced():
    util = make_symbol("util", "u.ts", 1, "function util() {}")
    a = make_symbol("a", "a.ts", 1, "function a() { util(); }")
    b = make_symbol("b", "b.ts", 1, "function b() { util(); a(); }")
    graph = resolve([[util], [a], [b]])
    assert [s.name for s in graph.most_referenced(5)] == ["util", "a"]
    assert [s.name for s in graph.callers("u.ts:util:1")] == ["a", "b"]
    assert [s.name for s in graph.callees("b.ts:b:1")] == ["util", "a"]

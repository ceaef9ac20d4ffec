"""
Tests for BatchScheduler: readiness, batching, barrier and stall handling.
"""

import logging

import pytest
from duskload.resolver import Loader, NamespaceState, SimulatedUnitLoader
from duskload.shared.errors import DEPENDENCY_CYCLE, MISSING_DEPENDENCY, UNIT_LOADER_FAILURE
from duskload.resolver.unit_loader import CallbackUnitLoader
from tests.test_utils import RecordingUnitLoader, provide_unit, register_all


class TestReadiness:
    """Which namespaces make it into a batch"""

    def test_different_unit_dependency_blocks(self, manual_loader, recording):
        register_all(manual_loader, {"u1": (["x"], []), "u2": (["y"], ["x"])})
        manual_loader.import_("y")

        assert manual_loader.scheduler.batch_log == [["x"]]
        assert recording.units == ["u1"]
        assert list(manual_loader.import_set) == ["y"]

    def test_co_unit_dependency_does_not_block(self, manual_loader, recording):
        register_all(manual_loader, {"u1": (["a", "b"], ["b"])})
        manual_loader.import_("a")

        assert manual_loader.scheduler.batch_log == [["a", "b"]]
        assert recording.units == ["u1"]
        assert manual_loader.import_set == {}

    def test_deferred_dependency_does_not_block(self, manual_loader, recording):
        register_all(manual_loader, {"u1": (["a"], [">b"]), "u2": (["b"], [])})
        manual_loader.import_("a")

        assert manual_loader.scheduler.batch_log == [["a", "b"]]
        assert recording.units == ["u1", "u2"]

    def test_external_always_eligible(self, manual_loader, recording):
        register_all(manual_loader, {"u1": (["a"], ["b"]), "u2": (["b"], ["@lib.js", "c"]), "u3": (["c"], [])})
        manual_loader.import_("a")

        assert manual_loader.scheduler.batch_log == [["@lib.js", "c"]]
        assert recording.externals == ["lib.js"]
        assert recording.units == ["u3"]

    def test_missing_dependency_blocks_with_warning(self, manual_loader, recording, caplog):
        register_all(manual_loader, {"u1": (["a"], ["ghost"])})
        with caplog.at_level(logging.WARNING):
            manual_loader.import_("a")

        assert recording.calls == []
        assert "u1 depends on ghost, which is not available" in caplog.text
        assert manual_loader.reporter.with_code(MISSING_DEPENDENCY)
        assert not manual_loader.is_batching

    def test_blocking_dependency_reports_first_blocker(self, manual_loader):
        register_all(manual_loader, {"u1": (["a"], [">z", "b", "c"]), "u2": (["b"], []), "u3": (["c"], [])})
        desc = manual_loader.registry.lookup("a")
        assert manual_loader.scheduler.blocking_dependency(desc).name == "b"


class TestDispatch:
    def test_unit_dispatched_once_for_several_ready_namespaces(self, manual_loader, recording):
        register_all(manual_loader, {"u1": (["a", "b", "c"], [])})
        manual_loader.import_("a")
        manual_loader.import_("b")

        assert recording.units == ["u1"]
        assert manual_loader.registry.lookup_unit("u1").dispatched

    def test_dispatch_marks_loading_and_raises_barrier(self, manual_loader):
        register_all(manual_loader, {"u1": (["a", "b"], [])})
        manual_loader.import_("a")

        assert manual_loader.registry.lookup("a").state is NamespaceState.LOADING
        assert manual_loader.registry.lookup("b").state is NamespaceState.LOADING
        assert manual_loader.provide_count == 2

    def test_names_owned_elsewhere_do_not_raise_barrier(self, manual_loader):
        register_all(manual_loader, {"u1": (["a"], []), "u2": (["a", "b"], [])})
        manual_loader.import_("b")

        assert manual_loader.provide_count == 1
        assert manual_loader.registry.lookup("a").state is NamespaceState.UNLOADED

    def test_next_batch_waits_for_whole_barrier(self, manual_loader, recording):
        register_all(manual_loader, {
            "u1": (["x1", "x2"], []),
            "u2": (["w"], []),
            "u3": (["y"], ["x1", "w"]),
        })
        manual_loader.import_("y")
        assert manual_loader.scheduler.batch_log == [["x1", "w"]]

        manual_loader.provide("x1", 1)
        manual_loader.provide("w", 2)
        assert recording.units == ["u1", "u2"]
        assert manual_loader.provide_count == 1

        manual_loader.provide("x2", 3)
        assert recording.units == ["u1", "u2", "u3"]

    def test_loader_exception_is_recorded_not_raised(self, caplog):
        def explode(unit_id, external):
            raise RuntimeError("network down")

        loader = Loader(CallbackUnitLoader(explode))
        loader.register_unit("u1", ["a"], [])
        with caplog.at_level(logging.ERROR):
            loader.import_("a")

        assert "network down" in caplog.text
        assert loader.reporter.with_code(UNIT_LOADER_FAILURE)
        assert loader.registry.lookup_unit("u1").dispatched

    def test_failed_load_does_not_block_later_imports(self):
        calls = []

        def load(unit_id, external):
            calls.append(unit_id)
            if unit_id == "bad":
                raise RuntimeError("404")

        loader = Loader(CallbackUnitLoader(load))
        register_all(loader, {"bad": (["a"], []), "good": (["b"], [])})
        loader.import_("a")
        assert loader.provide_count == 0
        assert not loader.is_batching

        loader.import_("b")
        assert calls == ["bad", "good"]
        assert loader.registry.lookup("a").state is NamespaceState.LOADING

        # A late provide from the failed unit still completes it without skewing the barrier
        received = []
        loader.require("a", received.append)
        loader.provide("a", 1)
        assert received == [1]
        assert loader.provide_count == 1
        loader.provide("b", 2)
        assert loader.provide_count == 0

    def test_failed_load_leaves_other_chains_running(self):
        calls = []

        def load(unit_id, external):
            calls.append(unit_id)
            if unit_id == "bad":
                raise RuntimeError("404")

        loader = Loader(CallbackUnitLoader(load))
        register_all(loader, {"bad": (["a"], []), "ok": (["b"], []), "top": (["c"], ["b"])})
        loader.import_("a")
        loader.import_("c")
        assert calls == ["bad", "ok"]
        loader.provide("b", 2)
        assert calls == ["bad", "ok", "top"]

    def test_external_dispatched_alongside_ready_units(self, manual_loader, recording):
        register_all(manual_loader, {"u1": (["a"], ["@lib.js", "b"]), "u2": (["b"], [">a"])})
        manual_loader.register_unit("u0", ["root"], ["a"])
        manual_loader.import_("root")
        # batch 1: lib.js and b; a waits for b
        assert manual_loader.scheduler.batch_log[0] == ["@lib.js", "b"]
        provide_unit(manual_loader, "u2")
        assert manual_loader.scheduler.batch_log[1] == ["a"]


class TestStall:
    """An irreducible cycle is reported once and the scheduler goes idle"""

    def test_cycle_logs_blocking_pairs_and_idles(self, manual_loader, recording, caplog):
        register_all(manual_loader, {"ua": (["A"], ["B"]), "ub": (["B"], ["A"])})
        with caplog.at_level(logging.WARNING):
            manual_loader.import_("A")

        assert recording.calls == []
        assert not manual_loader.is_batching
        assert "Dependency problem" in caplog.text
        assert "ua blocked by ub" in caplog.text
        assert "ub blocked by ua" in caplog.text
        diagnostics = manual_loader.reporter.with_code(DEPENDENCY_CYCLE)
        assert len(diagnostics) == 2
        # State is intact: both still pending and unloaded
        assert list(manual_loader.import_set) == ["A", "B"]
        assert manual_loader.registry.lookup("A").state is NamespaceState.UNLOADED

    def test_externals_only_batch_then_stall(self, manual_loader, recording):
        register_all(manual_loader, {"ua": (["A"], ["B", "@lib.js"]), "ub": (["B"], ["A"])})
        manual_loader.import_("A")

        assert manual_loader.scheduler.batch_log == [["@lib.js"]]
        assert recording.externals == ["lib.js"]
        assert recording.units == []
        assert not manual_loader.is_batching
        assert manual_loader.reporter.with_code(DEPENDENCY_CYCLE)

    def test_trace_pass_does_not_mutate(self, manual_loader):
        register_all(manual_loader, {"ua": (["A"], ["B"]), "ub": (["B"], ["A"])})
        manual_loader.collector.collect("A")
        before = dict(manual_loader.import_set)
        assert manual_loader.scheduler.compute_batch(trace=True) == []
        assert manual_loader.import_set == before

    def test_later_import_restarts_after_stall(self, manual_loader, recording):
        register_all(manual_loader, {"ua": (["A"], ["B"]), "ub": (["B"], ["A"]), "uc": (["C"], [])})
        manual_loader.import_("A")
        assert not manual_loader.is_batching

        manual_loader.import_("C")
        assert recording.units == ["uc"]
        assert manual_loader.is_batching


class TestReentrancy:
    """Synchronous provides inside dispatch go through the work queue"""

    def test_synchronous_chain_does_not_grow_stack(self):
        depth = 1500
        sim = SimulatedUnitLoader(immediate=True)
        loader = Loader(sim)
        for i in range(depth):
            requires = [f"n{i + 1}"] if i + 1 < depth else []
            loader.register_unit(f"u{i}", [f"n{i}"], requires)

        loader.import_("n0")
        assert loader.is_imported("n0")
        assert len(loader.scheduler.batch_log) == depth
        assert sim.loaded[0] == f"u{depth - 1}"

    def test_provide_inside_load_does_not_interleave_batches(self):
        seen = []

        class Probe(RecordingUnitLoader):
            def load(self, unit_id, external=False):
                super().load(unit_id, external)
                seen.append(list(loader.scheduler.batch_set))
                for name in loader.registry.lookup_unit(unit_id).provides:
                    loader.provide(name, name)

        loader = Loader(Probe())
        register_all(loader, {"u1": (["a"], []), "u2": (["b"], []), "u3": (["c"], ["a", "b"])})
        loader.import_("c")

        # u1 and u2 dispatched from the same batch before c's batch was computed
        assert loader.scheduler.batch_log == [["a", "b"], ["c"]]
        assert [str(s) for s in seen[0]] == ["a", "b"]
        assert [str(s) for s in seen[1]] == ["a", "b"]
        assert loader.is_imported("c")


class TestAbort:
    def test_abort_clears_pending_and_idles(self, manual_loader, recording):
        register_all(manual_loader, {"u1": (["x"], []), "u2": (["y"], ["x"])})
        manual_loader.import_("y")
        manual_loader.abort()

        assert manual_loader.import_set == {}
        assert manual_loader.scheduler.batch_set == []
        assert not manual_loader.is_batching

        # The dispatched unit still finishes harmlessly
        manual_loader.provide("x", 1)
        assert manual_loader.is_imported("x")
        assert recording.units == ["u1"]
        assert manual_loader.provide_count == 0

    def test_import_after_abort_restarts(self, manual_loader, recording):
        register_all(manual_loader, {"u1": (["x"], []), "u2": (["y"], ["x"])})
        manual_loader.import_("y")
        manual_loader.abort()
        manual_loader.provide("x", 1)

        manual_loader.import_("y")
        assert recording.units == ["u1", "u2"]

    def test_import_after_abort_waits_for_outstanding_provides(self, manual_loader, recording):
        register_all(manual_loader, {"u1": (["x"], []), "u2": (["y"], ["x"]), "u3": (["z"], [])})
        manual_loader.import_("y")
        manual_loader.abort()

        manual_loader.import_("z")
        # u1 still owes a provide, so z's batch waits
        assert recording.units == ["u1"]
        manual_loader.provide("x", 1)
        assert recording.units == ["u1", "u3"]

import threading
from unittest.mock import MagicMock

import pytest
from flash_query import (
    CancellationToken,
    ExecutionStrategy,
    InvalidArgumentError,
    QueryDispatcher,
    Queryable,
    SyncFallbackStrategy,
    get_dispatcher,
    set_dispatcher,
)

from .models import STUB_ENGINE, StubQueryable


def make_strategy(engine=STUB_ENGINE):
    """A strategy double whose async methods are AsyncMocks."""
    strategy = MagicMock(spec=ExecutionStrategy)
    strategy.engine = engine
    return strategy


class TestRegistry:
    def test_resolve_returns_registered_strategy(self):
        dispatcher = QueryDispatcher()
        strategy = make_strategy()
        dispatcher.register(strategy)

        assert dispatcher.resolve(StubQueryable([])) is strategy

    def test_resolve_falls_back_for_unknown_engines(self):
        dispatcher = QueryDispatcher()
        dispatcher.register(make_strategy())

        resolved = dispatcher.resolve(Queryable([]))
        assert resolved is dispatcher.fallback
        assert isinstance(resolved, SyncFallbackStrategy)

    def test_resolve_falls_back_for_untagged_sources(self):
        """Should treat plain iterables as belonging to no engine."""
        dispatcher = QueryDispatcher()
        assert dispatcher.resolve([1, 2, 3]) is dispatcher.fallback

    def test_re_registration_replaces_previous_strategy(self):
        """Should let the last registration for an engine win."""
        dispatcher = QueryDispatcher()
        old, new = make_strategy(), make_strategy()

        dispatcher.register(old)
        dispatcher.register(new)

        assert dispatcher.resolve(StubQueryable([])) is new
        assert dispatcher.registered_engines() == frozenset({STUB_ENGINE})

    def test_repeated_identical_registration_is_idempotent(self):
        dispatcher = QueryDispatcher()
        strategy = make_strategy()

        dispatcher.register(strategy)
        dispatcher.register(strategy)

        assert dispatcher.lookup(STUB_ENGINE) is strategy

    def test_register_rejects_none(self):
        with pytest.raises(InvalidArgumentError, match="must not be None"):
            QueryDispatcher().register(None)  # type: ignore[arg-type]

    def test_lookup_reports_missing_engines(self):
        dispatcher = QueryDispatcher()

        assert dispatcher.lookup("nothing") is None
        assert dispatcher.is_registered("nothing") is False

    def test_custom_fallback_is_used(self):
        fallback = make_strategy(engine="custom-fallback")
        dispatcher = QueryDispatcher(fallback=fallback)

        assert dispatcher.resolve(Queryable([])) is fallback

    def test_concurrent_registration_and_resolution(self):
        """Should stay consistent when many threads register and resolve."""
        dispatcher = QueryDispatcher()
        strategies = [make_strategy(engine=f"engine-{i}") for i in range(50)]
        errors = []

        def register(strategy):
            try:
                dispatcher.register(strategy)
                dispatcher.resolve(StubQueryable([]))
            except Exception as e:  # pragma: no cover
                errors.append(e)

        threads = [threading.Thread(target=register, args=(s,)) for s in strategies]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(dispatcher.registered_engines()) == 50
        assert dispatcher.lookup("engine-7") is strategies[7]


class TestDelegation:
    @pytest.mark.asyncio
    async def test_operations_delegate_with_identical_arguments(self):
        dispatcher = QueryDispatcher()
        strategy = make_strategy()
        strategy.count.return_value = 42
        strategy.to_dict.return_value = {"k": "v"}
        dispatcher.register(strategy)

        source = StubQueryable([])
        token = CancellationToken()

        def predicate(n):
            return n > 1

        assert await dispatcher.count(source, predicate, cancel=token) == 42
        strategy.count.assert_awaited_once_with(source, predicate, cancel=token)

        assert await dispatcher.to_dict(source, str, None, str.lower) == {"k": "v"}
        strategy.to_dict.assert_awaited_once_with(
            source, str, None, str.lower, cancel=None
        )

    @pytest.mark.asyncio
    async def test_strategy_failures_propagate_unchanged(self):
        dispatcher = QueryDispatcher()
        strategy = make_strategy()
        failure = ConnectionError("engine unreachable")
        strategy.first.side_effect = failure
        dispatcher.register(strategy)

        with pytest.raises(ConnectionError) as excinfo:
            await dispatcher.first(StubQueryable([1]))

        assert excinfo.value is failure

    @pytest.mark.asyncio
    async def test_unregistered_engine_runs_synchronously(self):
        dispatcher = QueryDispatcher()
        qs = Queryable([1, 2, 3, 4, 5])

        assert await dispatcher.count(qs) == 5
        assert await dispatcher.sum(qs.where(lambda n: n > 3)) == 9
        assert await dispatcher.to_list(qs.skip(3)) == [4, 5]


class TestDefaultDispatcher:
    def test_set_dispatcher_returns_previous(self):
        replacement = QueryDispatcher()
        previous = set_dispatcher(replacement)
        try:
            assert get_dispatcher() is replacement
        finally:
            set_dispatcher(previous)

        assert get_dispatcher() is previous

    def test_set_dispatcher_rejects_none(self):
        with pytest.raises(InvalidArgumentError):
            set_dispatcher(None)  # type: ignore[arg-type]

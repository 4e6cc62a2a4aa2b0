"""중복 거래 가드 테스트"""

import threading

import pytest

from src.core.exceptions import ConflictError, NotFoundError
from src.core.trade import TradeGuard, TradeOutcome, make_trade_key


def test_key_format():
    assert make_trade_key("u1", "m1", "item", "buy") == "buy:u1:m1:item"


class TestHold:
    def test_duplicate_rejected_while_held(self):
        guard = TradeGuard()
        key = make_trade_key("u1", "m1", "item", "buy")
        with guard.hold(key):
            assert guard.is_active(key)
            with pytest.raises(ConflictError):
                with guard.hold(key):
                    pass
        assert not guard.is_active(key)

    def test_released_on_exception(self):
        guard = TradeGuard()
        with pytest.raises(RuntimeError):
            with guard.hold("k"):
                raise RuntimeError("fail")
        assert guard.active_count == 0
        with guard.hold("k"):
            pass

    def test_different_keys_independent(self):
        guard = TradeGuard()
        with guard.hold("buy:u1:m1:a"):
            with guard.hold("sell:u1:m1:a"):
                assert guard.active_count == 2

    def test_concurrent_same_key_one_wins(self):
        """동시에 같은 키를 잡으면 하나만 성공"""
        guard = TradeGuard()
        barrier = threading.Barrier(2)
        release = threading.Event()
        results: list[str] = []

        def worker():
            barrier.wait()
            try:
                with guard.hold("same"):
                    results.append("ok")
                    release.wait(timeout=2)
            except ConflictError:
                results.append("conflict")
                release.set()

        threads = [threading.Thread(target=worker) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert sorted(results) == ["conflict", "ok"]


class TestTradeOutcome:
    def test_ok(self):
        outcome = TradeOutcome.ok({"price": 7150})
        assert outcome.success
        assert outcome.error is None

    def test_failure_keeps_kind_and_message(self):
        outcome = TradeOutcome.failure(NotFoundError("상인을 찾을 수 없습니다."))
        assert not outcome.success
        assert outcome.error == "상인을 찾을 수 없습니다."
        assert outcome.error_kind == "not_found"
        assert outcome.data == {}

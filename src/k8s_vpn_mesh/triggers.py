"""
재조정(reconcile) 트리거 큐
여러 생산자(watch, resync)와 단일 소비자(reconcile loop)를 연결
"""

import threading
from typing import Optional


class TriggerQueue:
    """단일 슬롯 트리거 큐

    대기 중인 트리거가 있으면 새 트리거는 합쳐진다. 대기 중인 트리거가
    이후의 재조정 한 번을 보장하고, 재조정은 항상 최신 클러스터 상태를 읽는다.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._pending = False
        self._error: Optional[BaseException] = None
        self.fired = 0
        self.coalesced = 0

    def fire(self):
        """트리거 발생 (블로킹 없음)"""
        with self._cond:
            self.fired += 1
            if self._pending:
                self.coalesced += 1
                return
            self._pending = True
            self._cond.notify()

    def fail(self, error: BaseException):
        """생산자 스레드의 치명적 에러를 소비자에게 전달"""
        with self._cond:
            if self._error is None:
                self._error = error
            self._cond.notify()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """트리거 대기 후 소비

        Returns:
            트리거를 소비했으면 True, 타임아웃이면 False

        Raises:
            생산자가 전달한 에러
        """
        with self._cond:
            self._cond.wait_for(lambda: self._pending or self._error is not None, timeout)
            if self._error is not None:
                raise self._error
            if not self._pending:
                return False
            self._pending = False
            return True

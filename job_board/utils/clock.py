"""Epoch-millisecond timestamps shared by records and stores."""

import time


def now_millis() -> int:
    return int(time.time() * 1000)

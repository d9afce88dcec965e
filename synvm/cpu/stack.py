"""
synvm — Value Stack

Unbounded LIFO of 15-bit values. Shared by push/pop and by the return
addresses that call/ret leave behind.
"""

from typing import List

from ..errors import StackUnderflow


class Stack:

    def __init__(self):
        self._items: List[int] = []

    def push(self, value: int):
        self._items.append(value)

    def pop(self) -> int:
        if not self._items:
            raise StackUnderflow("pop from empty stack")
        return self._items.pop()

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def items(self) -> List[int]:
        """Copy of the stack, bottom first."""
        return list(self._items)

    def reset(self):
        self._items.clear()

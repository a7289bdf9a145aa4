"""
This module provides `RleVec`, a vector-like container that stores runs of identical values as the value and the
cumulative offset of the last element of the run.

When the data consists of long stretches of identical values, storing each run once instead of each element can save
a lot of space. The cost is in access: an arbitrary index is resolved by a binary search over the stored run ends,
which is O(log n) instead of the O(1) of a list. In the table below n is the number of runs, not the number of
elements.

    ========  ====  ========  ===================  ===================  ======================  ======================
              push  index     set, breaking a run  set, no run broken   insert, breaking a run  insert, no run broken
    ========  ====  ========  ===================  ===================  ======================  ======================
    RleVec    O(1)  O(log n)  O(log n + n)         O(log n)             O(log n + n)            O(log n + n)
    list      O(1)  O(1)      O(1)                                      O(n)
    ========  ====  ========  ===================  ===================  ======================  ======================

Usage
-----
    from rle_vec import RleVec

    rle = RleVec([0, 0, 0, 1, 1, 1, 1, 2, 2, 3])
    rle.set(1, 2)
    rle.insert(4, 4)
    rle.to_sequence()   # [0, 2, 0, 1, 4, 1, 1, 1, 2, 2, 3]
    list(rle.runs())    # [Run(value=0, length=1), Run(value=2, length=1), ...]

Notes
-----
- Appending and lookups only compare values with `==`. `set`, `insert` and `remove` may need the same value in two
  runs after breaking one, and store a `copy.copy` of it there.
- Iterators must not outlive a mutation of their vector: the next step after any mutation raises `RuntimeError`.
- Slicing is not supported, the runs cannot be exposed as a contiguous region.
"""
import copy
import operator
from typing import Any, Generic, Iterable, List, NamedTuple, Optional, Tuple, TypeVar

import numpy as np

T = TypeVar('T')

END_DTYPE = np.int64
# Largest cumulative end offset, the last index of the longest vector. The length, MAX_END + 1, must still fit in
# the index-sized integer returned by len()
MAX_END = int(np.iinfo(END_DTYPE).max) - 1
MIN_CAPACITY = 4 # Run slots allocated on the first growth of the ends buffer


class Run(NamedTuple):
    """A run as seen by callers: the repeated value and the number of elements in the run."""
    value: Any
    length: int


class RleVec(Generic[T]):
    """
    A run-length encoded vector supporting a subset of the `list` operations.

    Runs are stored as a structure of arrays: `_values[i]` is the value of the i-th run and `_ends[i]` the 0-based
    logical index of its last element. The ends are strictly increasing and no two adjacent values are equal.

    Parameters
    ----------
    iterable : Iterable[T], optional
        Values to push into the new vector, in order.
    capacity : int, optional
        Number of runs (not elements) to reserve storage for, by default 0.
    """

    def __init__(self, iterable: Optional[Iterable[T]] = None, capacity: int = 0):
        if capacity < 0:
            raise ValueError("capacity must be non-negative")
        self._values = []
        self._ends = np.empty(capacity, dtype=END_DTYPE)
        self._version = 0 # Bumped by every mutation, checked by the iterators
        if iterable is not None:
            self.extend(iterable)

    @classmethod
    def new(cls) -> 'RleVec[T]':
        """Constructs a new empty vector."""
        return cls()

    @classmethod
    def with_capacity(cls, capacity: int) -> 'RleVec[T]':
        """
        Constructs a new empty vector with storage reserved for `capacity` runs. Choosing this value requires
        knowledge about the composition of the data that is going to be inserted, not just its size.
        """
        return cls(capacity=capacity)

    @classmethod
    def from_sequence(cls, values: Iterable[T]) -> 'RleVec[T]':
        """
        Constructs a vector from a sequence of values, producing the minimal run table for it.

        Parameters
        ----------
        values : Iterable[T]
            Values in logical order.

        Returns
        -------
        RleVec[T]
            The new vector.
        """
        rle = cls()
        for value in values:
            rle.push(value)
        return rle

    @classmethod
    def from_runs(cls, runs: Iterable[Tuple[T, int]]) -> 'RleVec[T]':
        """
        Constructs a vector from a sequence of runs.

        Parameters
        ----------
        runs : Iterable[Tuple[T, int]]
            `Run` objects or (value, length) pairs. They need not be minimal: adjacent runs with equal values are
            merged and runs of length 0 are skipped.

        Returns
        -------
        RleVec[T]
            The new vector.
        """
        rle = cls()
        for value, length in runs:
            rle.push_n(value, length)
        return rle

    @classmethod
    def from_array(cls, array: np.ndarray) -> 'RleVec[T]':
        """
        Constructs a vector from a numpy array, finding all run boundaries in a single vectorized pass. The array is
        flattened in C order first.

        Parameters
        ----------
        array : np.ndarray
            Array of values. Anything accepted by `np.asarray` works.

        Returns
        -------
        RleVec[T]
            The new vector, with the array elements converted to Python scalars.
        """
        array = np.asarray(array).ravel()
        if array.size == 0:
            return cls()
        # A run ends wherever the next element differs, and at the last element
        ends = np.append(np.flatnonzero(array[1:] != array[:-1]), array.size - 1)
        rle = cls(capacity=ends.size)
        rle._values = array[ends].tolist()
        rle._ends[:ends.size] = ends
        return rle

    def push(self, value: T) -> None:
        """Appends a value, extending the last run if it holds an equal value."""
        self.push_n(value, 1)

    def push_n(self, value: T, count: int) -> None:
        """
        Appends `count` copies of a value at once. Pushing 0 copies does nothing.

        Raises
        ------
        ValueError
            If count is negative.
        OverflowError
            If the length of the vector would exceed MAX_END + 1.
        """
        count = operator.index(count)
        if count < 0:
            raise ValueError("count must be non-negative")
        if count == 0:
            return
        n = len(self._values)
        last_end = int(self._ends[n-1]) if n else -1
        if last_end > MAX_END - count:
            raise OverflowError(f"RleVec length overflow: cannot add {count} elements to a length of {last_end + 1}")
        self._version += 1
        if n and self._values[-1] == value:
            self._ends[n-1] = last_end + count
        else:
            self._insert_runs(n, [value], [last_end + count])

    def extend(self, iterable: Iterable[T]) -> None:
        """Appends every value of an iterable."""
        for value in iterable:
            self.push(value)

    def set(self, index: int, value: T) -> None:
        """
        Replaces the value at `index`. This can break a run and therefore be expensive: if the value is equal to the
        one already there the cost is O(log n), otherwise up to O(log n + n) to make room for the new runs.

        Raises
        ------
        IndexError
            If index is out of bounds.
        """
        index = self._position(index, len(self))
        p, start, end = self._index_info(index)
        if self._values[p] == value:
            return
        self._version += 1

        # A run of a single element is replaced, or joined with its neighbours
        if start == end:
            joined = p > 0 and self._values[p-1] == value
            if joined:
                self._delete_run(p)
                self._ends[p-1] = end
                p -= 1
            if p < len(self._values) - 1 and self._values[p+1] == value:
                # The next run already starts right after run p: dropping p folds it in
                self._delete_run(p)
            elif not joined:
                self._values[p] = value
            return

        # Longer runs shrink at a boundary or are split in three
        if index == start:
            if p > 0 and self._values[p-1] == value:
                self._ends[p-1] = start
            else:
                self._insert_runs(p, [value], [start])
        elif index == end:
            self._ends[p] = end - 1
            if p == len(self._values) - 1 or self._values[p+1] != value:
                self._insert_runs(p + 1, [value], [end])
        else:
            self._ends[p] = index - 1
            self._insert_runs(p + 1, [value, copy.copy(self._values[p])], [index, end])

    def insert(self, index: int, value: T) -> None:
        """
        Inserts a value before `index`, shifting all the following elements. Because the ends of every following run
        change, the complexity is O(log n + n).

        Raises
        ------
        IndexError
            If index is greater than the length of the vector.
        OverflowError
            If the vector is already at its maximum length.
        """
        length = len(self)
        index = self._position(index, length + 1)
        if index == length:
            self.push(value)
            return
        if length > MAX_END:
            raise OverflowError(f"RleVec length overflow: cannot insert into a vector of length {length}")

        p, start, end = self._index_info(index)
        self._version += 1
        self._ends[p:len(self._values)] += 1

        # Run p already holds the value: it grew by one through the shift
        if self._values[p] == value:
            return

        if index == start:
            if p > 0 and self._values[p-1] == value:
                self._ends[p-1] += 1
            else:
                self._insert_runs(p, [value], [index])
        else:
            self._ends[p] = index - 1
            self._insert_runs(p + 1, [value, copy.copy(self._values[p])], [index, end + 1])

    def remove(self, index: int) -> T:
        """
        Removes and returns the value at `index`, shifting all the following elements. If the removed element was a
        run of its own, the runs around it are merged when they hold equal values.

        Raises
        ------
        IndexError
            If index is out of bounds.
        """
        index = self._position(index, len(self))
        p, start, end = self._index_info(index)
        self._version += 1
        self._ends[p:len(self._values)] -= 1

        if start != end:
            return copy.copy(self._values[p])

        value = self._values[p]
        self._delete_run(p)
        if 0 < p < len(self._values) and self._values[p-1] == self._values[p]:
            self._ends[p-1] = self._ends[p]
            self._delete_run(p)
        return value

    def is_empty(self) -> bool:
        return not self._values

    def runs_len(self) -> int:
        """Returns the number of runs."""
        return len(self._values)

    def capacity(self) -> int:
        """Returns the number of runs the vector can hold without reallocating."""
        return len(self._ends)

    def starts(self) -> List[int]:
        """Returns the 0-based start offsets of the runs."""
        n = len(self._values)
        if n == 0:
            return []
        return [0] + (self._ends[:n-1] + 1).tolist()

    def ends(self) -> List[int]:
        """Returns the 0-based inclusive end offsets of the runs."""
        return self._ends[:len(self._values)].tolist()

    def iter(self) -> 'RleVecIterator[T]':
        """Returns an iterator over the values, comparable to iterating over a list."""
        return RleVecIterator(self)

    def runs(self) -> 'RleRunIterator[T]':
        """Returns an iterator over the runs, as `Run(value, length)`."""
        return RleRunIterator(self)

    def to_sequence(self) -> List[T]:
        """Returns all the values in a list."""
        return list(self.iter())

    def to_array(self, dtype=None) -> np.ndarray:
        """
        Returns all the values in a numpy array. The run values must be scalars.

        Parameters
        ----------
        dtype : data-type, optional
            Type of the returned array. By default numpy infers it from the run values.
        """
        n = len(self._values)
        lengths = np.diff(self._ends[:n], prepend=-1)
        return np.repeat(np.asarray(self._values, dtype=dtype), lengths)

    def __len__(self) -> int:
        n = len(self._values)
        return int(self._ends[n-1]) + 1 if n else 0

    def __getitem__(self, index: int) -> T:
        index = self._position(index, len(self))
        return self._values[self._run_index(index)]

    def __setitem__(self, index: int, value: T) -> None:
        self.set(index, value)

    def __delitem__(self, index: int) -> None:
        self.remove(index)

    def __iter__(self) -> 'RleVecIterator[T]':
        return self.iter()

    def __contains__(self, value: Any) -> bool:
        return value in self._values

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, RleVec):
            return NotImplemented
        n = len(self._values)
        return self._values == other._values and np.array_equal(self._ends[:n], other._ends[:n])

    __hash__ = None

    def __repr__(self) -> str:
        return f"RleVec.from_runs({list(self.runs())!r})"

    def _position(self, index: int, upper: int) -> int:
        # Normalizes negative indices like a list and checks 0 <= position < upper
        if isinstance(index, slice):
            raise TypeError("RleVec does not support slicing")
        index = operator.index(index)
        position = index + len(self) if index < 0 else index
        if not 0 <= position < upper:
            raise IndexError(f"RleVec index out of bounds: the len is {len(self)} but the index is {index}")
        return position

    def _run_index(self, index: int) -> int:
        # First run whose end is at or after index; index must already be in bounds
        return int(np.searchsorted(self._ends[:len(self._values)], index, side='left'))

    def _index_info(self, index: int) -> Tuple[int, int, int]:
        p = self._run_index(index)
        start = int(self._ends[p-1]) + 1 if p > 0 else 0
        return p, start, int(self._ends[p])

    def _reserve(self, size: int) -> None:
        if size <= len(self._ends):
            return
        ends = np.empty(max(size, 2 * len(self._ends), MIN_CAPACITY), dtype=END_DTYPE)
        n = len(self._values)
        ends[:n] = self._ends[:n]
        self._ends = ends

    def _insert_runs(self, p: int, values: List[T], ends: List[int]) -> None:
        # Inserts consecutive runs before position p, shifting the following runs only once
        k = len(values)
        n = len(self._values)
        self._reserve(n + k)
        self._ends[p+k:n+k] = self._ends[p:n].copy()
        self._ends[p:p+k] = ends
        self._values[p:p] = values

    def _delete_run(self, p: int) -> None:
        n = len(self._values)
        self._ends[p:n-1] = self._ends[p+1:n].copy()
        del self._values[p]


class RleVecIterator(Generic[T]):
    """
    Iterator over the values of an `RleVec`, one element at a time.

    Besides the iterator protocol it offers shortcuts that work on runs instead of elements: `nth` skips ahead with a
    binary search over the run ends, and `max`, `min`, `count` and `last` consume the rest of the iterator looking at
    each remaining run once.
    """

    def __init__(self, rle: RleVec[T]):
        self._rle = rle
        self._version = rle._version
        self._pos = 0 # Current run
        self._index = 0 # Logical index of the next element
        self._remaining = int(rle._ends[0]) + 1 if rle._values else 0 # Elements left in the current run

    def __iter__(self) -> 'RleVecIterator[T]':
        return self

    def __next__(self) -> T:
        self._check_version()
        if self._remaining == 0:
            if self._pos + 1 < self._rle.runs_len():
                self._pos += 1
                self._remaining = int(self._rle._ends[self._pos] - self._rle._ends[self._pos-1])
            else:
                raise StopIteration
        self._remaining -= 1
        self._index += 1
        return self._rle._values[self._pos]

    def __length_hint__(self) -> int:
        return len(self._rle) - self._index

    def nth(self, n: int) -> Optional[T]:
        """
        Returns the n-th next value (0 is the next one), skipping the values before it. Returns None and exhausts the
        iterator if fewer than n + 1 values remain.
        """
        self._check_version()
        if n < 0:
            raise ValueError("n must be non-negative")
        target = self._index + n
        if target >= len(self._rle):
            self._exhaust()
            return None
        runs = self._rle.runs_len()
        p = self._pos + int(np.searchsorted(self._rle._ends[self._pos:runs], target, side='left'))
        self._pos = p
        self._remaining = int(self._rle._ends[p]) - target
        self._index = target + 1
        return self._rle._values[p]

    def max(self, default: Optional[T] = None) -> Optional[T]:
        """Consumes the iterator and returns the largest remaining value, or `default` if none remain."""
        return max(self._rest(), default=default)

    def min(self, default: Optional[T] = None) -> Optional[T]:
        """Consumes the iterator and returns the smallest remaining value, or `default` if none remain."""
        return min(self._rest(), default=default)

    def count(self) -> int:
        """Consumes the iterator and returns the number of remaining values."""
        self._check_version()
        remaining = len(self._rle) - self._index
        self._exhaust()
        return remaining

    def last(self) -> Optional[T]:
        """Consumes the iterator and returns the last value, or None if none remain."""
        self._check_version()
        if self._index == len(self._rle):
            return None
        self._exhaust()
        return self._rle._values[-1]

    def _rest(self) -> List[T]:
        # Values of the runs not entirely consumed yet
        self._check_version()
        first = self._pos if self._remaining else self._pos + 1
        values = self._rle._values[first:]
        self._exhaust()
        return values

    def _exhaust(self) -> None:
        self._pos = max(self._rle.runs_len() - 1, 0)
        self._remaining = 0
        self._index = len(self._rle)

    def _check_version(self) -> None:
        if self._rle._version != self._version:
            raise RuntimeError("RleVec changed during iteration")


class RleRunIterator(Generic[T]):
    """Iterator over the runs of an `RleVec`, yielding `Run(value, length)`."""

    def __init__(self, rle: RleVec[T]):
        self._rle = rle
        self._version = rle._version
        self._pos = 0
        self._last_end = -1 # End of the last run emitted

    def __iter__(self) -> 'RleRunIterator[T]':
        return self

    def __next__(self) -> Run:
        if self._rle._version != self._version:
            raise RuntimeError("RleVec changed during iteration")
        if self._pos >= self._rle.runs_len():
            raise StopIteration
        end = int(self._rle._ends[self._pos])
        run = Run(self._rle._values[self._pos], end - self._last_end)
        self._last_end = end
        self._pos += 1
        return run

    def __length_hint__(self) -> int:
        return self._rle.runs_len() - self._pos


def test_rle_vec(num_tests=10, num_ops=200, buffer_size=100, out=None):
    import random

    def generate_random_buffer(size, unique_elements=5, max_run_length=16, singleton_probability=0.5):
        buffer = []
        while len(buffer) < size:
            if random.random() < singleton_probability:
                run_length = 1
            else:
                run_length = random.randint(1, min(max_run_length, size - len(buffer)))
            buffer.extend([random.randint(0, unique_elements-1)] * run_length)
        return buffer

    def check(rle, model):
        assert len(rle) == len(model), f"Length mismatch: {len(rle)} != {len(model)}"
        assert rle.to_sequence() == model, "Values do not match the list model"
        values = rle._values
        assert all(values[i] != values[i+1] for i in range(len(values)-1)), "Adjacent runs with equal values"
        ends = rle.ends()
        assert all(ends[i] < ends[i+1] for i in range(len(ends)-1)), "Run ends are not strictly increasing"

    for _ in range(num_tests):
        model = generate_random_buffer(buffer_size)
        rle = RleVec.from_sequence(model)
        check(rle, model)
        runs_initial = rle.runs_len()

        for _ in range(num_ops):
            op = random.choice(("push", "set", "insert", "remove"))
            value = random.randint(0, 4)
            if op == "push" or not model:
                rle.push(value)
                model.append(value)
            elif op == "set":
                index = random.randrange(len(model))
                rle.set(index, value)
                model[index] = value
            elif op == "insert":
                index = random.randint(0, len(model))
                rle.insert(index, value)
                model.insert(index, value)
            else:
                index = random.randrange(len(model))
                assert rle.remove(index) == model.pop(index), "Removed value does not match the list model"
            check(rle, model)

        assert RleVec.from_runs(rle.runs()) == rle, "Run round trip does not reproduce the vector"
        if out is not None:
            print('Initial runs: ', runs_initial, file=out)
            print('Final Len/Runs: ', len(rle), rle.runs_len(), file=out)
            print('Compression ratio: ', len(rle) / max(rle.runs_len(), 1), file=out)

    if out is not None:
        print("All tests passed!", file=out)


if __name__ == "__main__":
    import sys
    test_rle_vec(out=sys.stdout)

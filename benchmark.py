import time

import numpy as np

from rle_vec import RleVec

TEST_CASES = (
    ('unique values', 1),
    ('runs of 10', 10),
    ('runs of 100', 100),
    ('runs of 1000', 1000),
)
SIZE = 10_000
NUM_OPS = 1_000

rng = np.random.default_rng(42)

def time_fmt(seconds):
    for unit in ("s", "ms", "us"):
        if seconds >= 1.0:
            return f"{seconds:3.1f}{unit}"
        seconds *= 1000.0
    return f"{seconds:3.1f}ns"

def measure(fn, *args):
    start = time.perf_counter()
    fn(*args)
    return time.perf_counter() - start

for name, run_length in TEST_CASES:
    # Values change every run_length elements
    data = (np.arange(SIZE) // run_length).astype(np.int64)
    values = data.tolist()
    indices = rng.integers(0, SIZE, NUM_OPS).tolist()

    rle = RleVec.from_array(data)
    vec = list(values)
    assert rle.to_sequence() == vec

    def read_all(container):
        for i in indices:
            container[i]

    def set_all(container):
        for i in indices:
            container[i] = -1

    def insert_all(container):
        for i in indices:
            container.insert(i, -1)

    def remove_all(container):
        for i in indices:
            del container[i]

    print('Test case: ', name)
    print('Runs: ', rle.runs_len(), 'Len: ', len(rle))
    print('Create from list: ', time_fmt(measure(RleVec.from_sequence, values)))
    print('Create from array: ', time_fmt(measure(RleVec.from_array, data)))
    print('Iterate RleVec/list: ', time_fmt(measure(list, rle)), time_fmt(measure(list, vec)))
    print('Index RleVec/list: ', time_fmt(measure(read_all, rle)), time_fmt(measure(read_all, vec)))
    print('Set RleVec/list: ', time_fmt(measure(set_all, rle)), time_fmt(measure(set_all, vec)))
    print('Insert RleVec/list: ', time_fmt(measure(insert_all, rle)), time_fmt(measure(insert_all, vec)))
    print('Remove RleVec/list: ', time_fmt(measure(remove_all, rle)), time_fmt(measure(remove_all, vec)))
    print('To list: ', time_fmt(measure(rle.to_sequence)))
    print('To array: ', time_fmt(measure(rle.to_array)))

    # Both containers went through the same operations
    assert rle.to_sequence() == vec
    print()

"""
This module provides byte-level interoperability for `RleVec` objects holding byte values (integers from 0 to 255).

`run_length_encode` and `run_length_decode` convert between such a vector and the traditional Run-Length Encoding
byte format, in which each run is written as a (value, count) pair of bytes. `RleVecReader` exposes the logical bytes
of a vector as a raw binary stream, to be consumed by anything that reads from file objects.
"""
import io
import operator
from typing import Union

from rle_vec import RleVec

MAX_RUN_BYTE = 255 # Largest count of a single (value, count) pair


def _byte(value) -> int:
    try:
        value = operator.index(value)
    except TypeError as e:
        raise ValueError(f"RleVec value {value!r} is not a byte") from e
    if not 0 <= value <= 255:
        raise ValueError(f"RleVec value {value!r} is not a byte")
    return value


def run_length_encode(rle: RleVec) -> bytes:
    """
    Perform traditional Run-Length Encoding of a byte-valued RleVec.

    Runs longer than 255 elements are written as several pairs with the same value.

    Parameters
    ----------
    RleVec
        rle : The vector to encode. All its values must be integers from 0 to 255.

    Returns
    -------
    bytes
        The run-length encoded data.
    """
    output = bytearray()
    for value, count in rle.runs():
        symb = _byte(value)
        while count > MAX_RUN_BYTE:
            output.append(symb)
            output.append(MAX_RUN_BYTE)
            count -= MAX_RUN_BYTE
        output.append(symb)
        output.append(count)
    return bytes(output)


def run_length_decode(encoded_buffer: Union[bytes, bytearray]) -> RleVec:
    """
    Decode traditional Run-Length Encoded data into an RleVec.

    Consecutive pairs with the same value are merged into one run, and pairs with a count of 0 are ignored.

    Parameters
    ----------
    bytes or bytearray
        encoded_buffer : The run-length encoded data.

    Returns
    -------
    RleVec
        The decoded vector.
    """
    if len(encoded_buffer) % 2 != 0:
        raise ValueError("Invalid buffer: no count found for last run-encoded symbol")
    rle = RleVec()
    for i in range(0, len(encoded_buffer), 2):
        rle.push_n(encoded_buffer[i], encoded_buffer[i+1])
    return rle


class RleVecReader(io.RawIOBase):
    """
    Raw binary stream over the logical bytes of a byte-valued RleVec.

    Bytes are produced on demand, run by run, so the vector is never expanded in memory as a whole. The vector must
    not be modified while it is being read.

    Usage
    -----
        reader = io.BufferedReader(RleVecReader(rle))
        shutil.copyfileobj(reader, output_file)
    """

    def __init__(self, rle: RleVec):
        super().__init__()
        self._runs = rle.runs()
        self._symb = 0
        self._pending = 0 # Bytes of the current run not read yet

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        """Fills buffer with the next bytes and returns how many were written, 0 once the vector is exhausted."""
        view = memoryview(buffer).cast('B')
        size = len(view)
        written = 0
        while written < size:
            if self._pending == 0:
                run = next(self._runs, None)
                if run is None:
                    break
                self._symb, self._pending = _byte(run.value), run.length
            count = min(self._pending, size - written)
            view[written:written+count] = bytes((self._symb,)) * count
            written += count
            self._pending -= count
        return written


def test_rle(num_tests=10, buffer_size=1000, out=None):
    import random

    def generate_random_buffer(size, unique_elements=5, max_run_length=600, singleton_probability=0.5):
        buffer = bytearray()
        buffer_size = 0
        while buffer_size < size:
            if random.random() < singleton_probability:
                run_length = 1
            else:
                run_length = random.randint(1, min(max_run_length, size - buffer_size))
            buffer_size += run_length
            buffer.extend(random.randint(0, unique_elements-1).to_bytes(1, byteorder="big") * run_length)
        return bytes(buffer)

    for _ in range(num_tests):
        original_data = generate_random_buffer(buffer_size)
        rle = RleVec.from_sequence(original_data)

        encoded_data = run_length_encode(rle)
        decoded_rle = run_length_decode(encoded_data)
        if out is not None:
            print('Encoded/Len: ', len(encoded_data), file=out)
            print('Decoded/Len: ', len(decoded_rle), file=out)
            print('Compression ratio: ', len(original_data)/len(encoded_data), file=out)
        assert decoded_rle == rle, "RLE: Decoded vector does not match original vector"

        read_data = io.BufferedReader(RleVecReader(rle), buffer_size=64).read()
        assert read_data == original_data, "Reader: Read data does not match original data"

    if out is not None:
        print("All tests passed!", file=out)


if __name__ == "__main__":
    import sys
    test_rle(out=sys.stdout)

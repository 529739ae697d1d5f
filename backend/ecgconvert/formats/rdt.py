"""
RDT binary ECG format.

Layout (little-endian):
  header  3 x int16: channel count, sampling rate (Hz), ADU gain
  body    int16 samples interleaved by sample: ch1 ch2 ... chN, ch1 ch2 ... chN, ...
"""
import logging
import struct
from pathlib import Path

import numpy as np

from ..workspace import SignalRecord
from .base import SignalReader

logger = logging.getLogger(__name__)

HEADER_FORMAT = '<3h'
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)
SAMPLE_DTYPE = np.dtype('<i2')


class RDTReader(SignalReader):
    """Loads an RDT file."""

    def parse(self) -> bool:
        try:
            raw = self.source_path.read_bytes()
        except OSError as e:
            logger.error(f"Cannot read RDT file {self.source_path}: {e}")
            return False

        if len(raw) < HEADER_SIZE:
            logger.error(f"RDT file too short for header: {self.source_path} ({len(raw)} bytes)")
            return False

        channels, sampling_rate, adu_gain = struct.unpack(HEADER_FORMAT, raw[:HEADER_SIZE])
        if channels <= 0 or sampling_rate <= 0:
            logger.error(f"Invalid RDT header: channels={channels}, sampling_rate={sampling_rate}")
            return False

        body = raw[HEADER_SIZE:]
        frame_size = channels * SAMPLE_DTYPE.itemsize
        if len(body) % frame_size != 0:
            logger.error(
                f"RDT body of {len(body)} bytes is not a whole number of "
                f"{channels}-channel frames"
            )
            return False

        samples = np.frombuffer(body, dtype=SAMPLE_DTYPE)
        # rows of the file are samples; the matrix wants channels as rows
        self._set_matrix(samples.reshape(-1, channels).T)
        self.sampling_rate = float(sampling_rate)
        if adu_gain > 0:
            self.adu_gain = adu_gain

        logger.info(
            f"RDT file parsed: {self.channels} channels, "
            f"{self.samples_per_channel} samples at {self.sampling_rate}Hz"
        )
        return True


def write_rdt(record: SignalRecord, output_file: Path, record_name: str) -> int:
    """
    Write a record as an RDT file.

    Returns:
        Number of sample rows written
    """
    if record.data.size and (record.data.min() < -32768 or record.data.max() > 32767):
        raise ValueError("RDT stores 16-bit samples; signal exceeds the int16 range")

    header = struct.pack(
        HEADER_FORMAT,
        record.channel_count,
        int(round(record.sampling_rate)),
        record.adu_gain,
    )
    body = np.ascontiguousarray(record.data.T).astype(SAMPLE_DTYPE).tobytes()

    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, 'wb') as f:
        f.write(header)
        f.write(body)

    logger.info(f"writeRDT({output_file}, {record_name}): {record.samples_per_channel} rows")
    return record.samples_per_channel

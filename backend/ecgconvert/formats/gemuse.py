"""
GE MUSE text export reader and writer.

  # SampleRate: 500
  # AduGain: 200
  I,II,V1,V2,V3,V4,V5,V6
  -12,30,5,8,...
  ...

Metadata lines start with '#'. The first other line is a lead-name header
when it is not numeric. Each further line holds one sample of every channel.
"""
import csv
import logging
from pathlib import Path
from typing import Dict, List

import numpy as np

from ..settings import settings
from ..workspace import SignalRecord
from .base import SignalReader

logger = logging.getLogger(__name__)


def _is_numeric_row(row: List[str]) -> bool:
    try:
        for value in row:
            int(value)
        return True
    except ValueError:
        return False


class GEMuseReader(SignalReader):
    """Loads a GE MUSE text export."""

    def parse(self) -> bool:
        metadata: Dict[str, str] = {}
        header = None
        rows: List[List[int]] = []

        try:
            with open(self.source_path, 'r', encoding='utf-8', newline='') as f:
                for line_no, row in enumerate(csv.reader(f), start=1):
                    row = [value.strip() for value in row if value.strip()]
                    if not row:
                        continue
                    if row[0].startswith('#'):
                        key, _, value = ','.join(row).lstrip('#').partition(':')
                        metadata[key.strip().lower()] = value.strip()
                        continue
                    if header is None and not rows and not _is_numeric_row(row):
                        header = row
                        continue
                    rows.append([int(value) for value in row])
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Cannot read GE MUSE file {self.source_path}: {e}")
            return False
        except ValueError as e:
            logger.error(f"Non-numeric sample in GE MUSE file {self.source_path} line {line_no}: {e}")
            return False

        if not rows:
            logger.error(f"No samples found in GE MUSE file: {self.source_path}")
            return False

        width = len(rows[0])
        if any(len(row) != width for row in rows):
            logger.error(f"Ragged sample rows in GE MUSE file: {self.source_path}")
            return False
        if header is not None and len(header) != width:
            logger.warning(f"GE MUSE header names {len(header)} leads for {width} columns, ignoring it")
            header = None

        try:
            self.sampling_rate = float(metadata.get('samplerate', settings.DEFAULT_SAMPLING_RATE))
            if 'adugain' in metadata:
                self.adu_gain = int(metadata['adugain'])
        except ValueError as e:
            logger.error(f"Invalid GE MUSE metadata {metadata}: {e}")
            return False

        self._set_matrix(np.array(rows).T)
        self.lead_names = header

        logger.info(
            f"GE MUSE file parsed: {self.channels} channels, "
            f"{self.samples_per_channel} samples at {self.sampling_rate}Hz"
        )
        return True


def write_gemuse(record: SignalRecord, output_file: Path, record_name: str) -> int:
    """
    Write a record as a GE MUSE text export.

    Returns:
        Number of sample rows written
    """
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, 'w', encoding='utf-8', newline='') as f:
        f.write(f"# SampleRate: {int(record.sampling_rate)}\n")
        f.write(f"# AduGain: {record.adu_gain}\n")
        writer = csv.writer(f, lineterminator='\n')
        if record.lead_name_list:
            writer.writerow(record.lead_name_list)
        writer.writerows(record.data.T.tolist())

    logger.info(f"write_geMuse({output_file}, {record_name}): {record.samples_per_channel} rows")
    return record.samples_per_channel

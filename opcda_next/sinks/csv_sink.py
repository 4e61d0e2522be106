import csv
from pathlib import Path
from typing import Dict, List

from . import RECORD_FIELDS


class CSVSink:
    """Appends polled item records to a CSV file, header on first write."""

    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file_exists = self.path.exists() and self.path.stat().st_size > 0

    def write_records(self, records: List[Dict]) -> None:
        if not records:
            return
        mode = 'a' if self._file_exists else 'w'
        with open(self.path, mode, newline='', encoding='utf-8') as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=RECORD_FIELDS, extrasaction='ignore')
            if not self._file_exists:
                writer.writeheader()
                self._file_exists = True
            writer.writerows(records)

from pathlib import Path
from typing import Dict, List

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from . import RECORD_FIELDS

SCHEMA = pa.schema([
    ("timestamp", pa.string()),
    ("tag", pa.string()),
    ("value", pa.string()),
    ("quality", pa.int16()),
    ("source_timestamp", pa.string()),
])


class ParquetSink:
    """Appends polled item records to a Parquet file.

    Values are stored as strings, a tag set usually mixes numeric and textual items.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def write_records(self, records: List[Dict]) -> None:
        if not records:
            return
        df = pd.DataFrame(records, columns=list(RECORD_FIELDS))
        df["value"] = df["value"].map(lambda v: None if v is None else str(v))
        table = pa.Table.from_pandas(df, schema=SCHEMA, preserve_index=False)
        if self.path.exists():
            existing = pq.read_table(self.path)
            table = pa.concat_tables([existing, table])
        pq.write_table(table, self.path)

"""
Local search backend on Polars.

Keeps each collection as a Polars DataFrame with one row per document:

    _id       - document id
    _seq      - insertion sequence (tie-breaker for equal scores)
    _source   - JSON document body
    <field>   - every top-level string field of the body
    <field>.tokens - the analyzed tokens of that field

Writes are buffered per collection and folded into its frame on the next
search, count or flush, so a run of single-document writes costs one
concat rather than one per write.

Text matching follows the search-engine model: query text and field
values are lower-cased and split into word tokens, and hits are ranked by
a BM25-style term weight.

With a ``data_dir`` the collections are saved as Parquet files on flush()
and reloaded on start, which makes the backend durable across restarts.
Without one it is a purely in-memory store, used in tests and for
throwaway sessions.
"""

from __future__ import annotations

import json
import logging
import math
import re
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

import polars as pl

from rdf_searchbase.errors import StoreError
from rdf_searchbase.storage.backend import (
    PREFIXES_INDEX,
    TRIPLES_INDEX,
    Document,
    SearchBackend,
    SearchHit,
)

logger = logging.getLogger(__name__)

TOKENS_SUFFIX = ".tokens"

_TOKEN = re.compile(r"\w+", re.UNICODE)

# BM25 parameters
K1 = 1.2
B = 0.75


def analyze(text: Any) -> List[str]:
    """Lower-case and split text into word tokens."""
    if text is None:
        return []
    return _TOKEN.findall(str(text).lower())


def _empty_frame() -> pl.DataFrame:
    return pl.DataFrame(schema={"_id": pl.Utf8, "_seq": pl.Int64, "_source": pl.Utf8})


class LocalSearchBackend(SearchBackend):
    """
    In-process search backend.

    Example:
        backend = LocalSearchBackend("./data")
        backend.create_index("rdf_triples")
        backend.index_document("rdf_triples", {"subject": "http://ex/a", ...})
        hits = backend.search("rdf_triples", {"match": {"subject": "a"}})
    """

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        """
        Args:
            data_dir: Directory for Parquet files; None keeps data in memory
        """
        self.data_dir = Path(data_dir) if data_dir else None
        self._frames: Dict[str, pl.DataFrame] = {}
        self._dirty: Set[str] = set()
        # Rows written since the last merge, and the explicit ids among them
        self._pending: Dict[str, List[Dict[str, Any]]] = {}
        self._replaced: Dict[str, Set[str]] = {}
        self._seq = 0
        self._lock = threading.RLock()

        if self.data_dir is not None and self.data_dir.exists():
            self._load()

    # -------------------------------------------------------------------------
    # Collections
    # -------------------------------------------------------------------------

    def index_exists(self, index: str) -> bool:
        with self._lock:
            return index in self._frames

    def create_index(self, index: str, mappings: Optional[Dict[str, Any]] = None) -> None:
        with self._lock:
            if index in self._frames:
                raise StoreError(f"Index already exists: {index}")
            self._frames[index] = _empty_frame()
            self._dirty.add(index)

    def _frame(self, index: str) -> pl.DataFrame:
        try:
            return self._frames[index]
        except KeyError:
            raise StoreError(f"No such index: {index}") from None

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _row(self, doc_id: str, document: Document) -> Dict[str, Any]:
        self._seq += 1
        row: Dict[str, Any] = {
            "_id": doc_id,
            "_seq": self._seq,
            "_source": json.dumps(document, ensure_ascii=False),
        }
        for name, value in document.items():
            if isinstance(value, str) and not name.startswith("_"):
                row[name] = value
                row[name + TOKENS_SUFFIX] = analyze(value)
        return row

    def _append(self, index: str, rows: List[Dict[str, Any]], explicit_ids: Iterable[str] = ()) -> None:
        self._frame(index)
        self._pending.setdefault(index, []).extend(rows)
        explicit_ids = set(explicit_ids)
        if explicit_ids:
            self._replaced.setdefault(index, set()).update(explicit_ids)
        self._dirty.add(index)

    def _merge(self, index: str) -> pl.DataFrame:
        """Fold buffered rows into the collection frame in one concat."""
        frame = self._frame(index)
        rows = self._pending.pop(index, None)
        if not rows:
            return frame
        replaced = self._replaced.pop(index, set())

        tokens_columns = {name for row in rows for name in row if name.endswith(TOKENS_SUFFIX)}
        new = pl.DataFrame(
            rows,
            schema_overrides={name: pl.List(pl.Utf8) for name in tokens_columns},
            infer_schema_length=None,
        )
        if replaced:
            # Later writes of an explicit id win over earlier ones
            new = new.unique(subset="_id", keep="last", maintain_order=True)
            if frame.height:
                frame = frame.filter(~pl.col("_id").is_in(list(replaced)))

        frame = pl.concat([frame, new], how="diagonal_relaxed")
        self._frames[index] = frame
        return frame

    def index_document(self, index: str, document: Document, doc_id: Optional[str] = None) -> str:
        with self._lock:
            if doc_id:
                self._append(index, [self._row(doc_id, document)], [doc_id])
                return doc_id
            doc_id = uuid.uuid4().hex
            self._append(index, [self._row(doc_id, document)])
            return doc_id

    def bulk_index(self, index: str, documents: Sequence[Tuple[Optional[str], Document]]) -> int:
        if not documents:
            return 0
        with self._lock:
            explicit_ids = [doc_id for doc_id, _ in documents if doc_id]
            rows = [self._row(doc_id or uuid.uuid4().hex, doc) for doc_id, doc in documents]
            self._append(index, rows, explicit_ids)
            return len(rows)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    def search(
        self,
        index: str,
        query: Optional[Dict[str, Any]] = None,
        size: int = 10,
        sort: Optional[List[Dict[str, Any]]] = None,
    ) -> List[SearchHit]:
        with self._lock:
            frame = self._merge(index)
        if frame.height == 0:
            return []

        mask, score = self._compile(frame, query or {"match_all": {}})
        result = frame.with_columns(score.alias("_score")).filter(mask)

        by, descending = [], []
        for clause in sort or []:
            for name, options in clause.items():
                order = options.get("order", "asc") if isinstance(options, dict) else options
                if name in result.columns:
                    by.append(name)
                    descending.append(order == "desc")
        if not by:
            by, descending = ["_score"], [True]
        by.append("_seq")
        descending.append(False)

        result = result.sort(by, descending=descending, nulls_last=True).head(size)
        return [
            SearchHit(index=index, id=row["_id"], source=json.loads(row["_source"]), score=row["_score"])
            for row in result.select(["_id", "_source", "_score"]).iter_rows(named=True)
        ]

    def _compile(self, frame: pl.DataFrame, query: Dict[str, Any]) -> Tuple[pl.Expr, pl.Expr]:
        """Translate a query into (match mask, score) expressions."""
        if len(query) != 1:
            raise StoreError(f"Query must have exactly one clause: {query!r}")
        (kind, body), = query.items()

        if kind == "match_all":
            return pl.lit(True), pl.lit(1.0)

        if kind == "match":
            (field, options), = body.items()
            if isinstance(options, dict):
                return self._match(frame, field, options.get("query", ""), options.get("operator", "or"))
            return self._match(frame, field, options, "or")

        if kind == "multi_match":
            fields = body.get("fields") or [
                c[: -len(TOKENS_SUFFIX)] for c in frame.columns if c.endswith(TOKENS_SUFFIX)
            ]
            compiled = [self._match(frame, f, body.get("query", ""), body.get("operator", "or")) for f in fields]
            if not compiled:
                return pl.lit(False), pl.lit(0.0)
            mask = pl.any_horizontal([m for m, _ in compiled])
            # best_fields: a document scores by its best matching field
            score = pl.max_horizontal([s for _, s in compiled])
            return mask, score

        if kind == "bool":
            clauses = body.get("must", [])
            if isinstance(clauses, dict):
                clauses = [clauses]
            if not clauses:
                return pl.lit(True), pl.lit(1.0)
            compiled = [self._compile(frame, c) for c in clauses]
            return pl.all_horizontal([m for m, _ in compiled]), pl.sum_horizontal([s for _, s in compiled])

        raise StoreError(f"Unsupported query clause: {kind}")

    def _match(self, frame: pl.DataFrame, field: str, text: Any, operator: str) -> Tuple[pl.Expr, pl.Expr]:
        tokens_column = field + TOKENS_SUFFIX
        tokens = list(dict.fromkeys(analyze(text)))
        if not tokens or tokens_column not in frame.columns:
            return pl.lit(False), pl.lit(0.0)

        tokens_col = pl.col(tokens_column)
        length = tokens_col.list.len().fill_null(0).cast(pl.Float64)
        avg_length = frame.select(tokens_col.list.len().mean()).item() or 1.0
        n_docs = frame.height

        hits, weights = [], []
        for token in tokens:
            tf = tokens_col.list.count_matches(pl.lit(token)).fill_null(0).cast(pl.Float64)
            doc_freq = frame.select((tokens_col.list.count_matches(pl.lit(token)).fill_null(0) > 0).sum()).item()
            idf = math.log(1 + (n_docs - doc_freq + 0.5) / (doc_freq + 0.5))
            hits.append(tf > 0)
            weights.append(idf * tf * (K1 + 1) / (tf + K1 * (1 - B + B * length / avg_length)))

        mask = pl.all_horizontal(hits) if operator == "and" else pl.any_horizontal(hits)
        return mask, pl.sum_horizontal(weights)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def flush(self, indices: Iterable[str] = (TRIPLES_INDEX, PREFIXES_INDEX)) -> None:
        if self.data_dir is None:
            return
        with self._lock:
            for index in indices:
                if index in self._dirty and index in self._frames:
                    frame = self._merge(index)
                    try:
                        self.data_dir.mkdir(parents=True, exist_ok=True)
                        frame.write_parquet(self.data_dir / f"{index}.parquet")
                    except (OSError, pl.exceptions.PolarsError) as e:
                        raise StoreError(f"Could not save index {index}: {e}") from e
                    self._dirty.discard(index)
                    logger.debug(f"Saved {frame.height} documents to {index}.parquet")

    def _load(self) -> None:
        for path in sorted(p for p in self.data_dir.glob("*.parquet") if p.is_file()):
            frame = pl.read_parquet(path)
            self._frames[path.stem] = frame
            if frame.height:
                self._seq = max(self._seq, frame["_seq"].max())
            logger.info(f"Loaded {frame.height} documents from {path.name}")

    def close(self) -> None:
        self.flush(list(self._frames))

    def count(self, index: str) -> int:
        """Number of documents in a collection."""
        with self._lock:
            return self._merge(index).height

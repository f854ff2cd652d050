"""
prodrag - ProductVectorStore
=============================
OOP wrapper around LanceDB providing a clean interface for:
  • Index (table) lifecycle with a strict PyArrow schema
  • Per-product upsert keyed on the product id
  • Approximate nearest-neighbour search (HNSW graph, cosine distance)

Design decisions:
  • **Singleton DB connection** — ``_get_connection()`` caches the
    ``lancedb.DBConnection`` per URI to avoid file-lock issues.
  • **Fresh reads** — the connection uses a zero read-consistency
    interval and missing tables are reopened lazily, so a long-running API
    process sees whatever the ETL has written since it started.
  • **Explicit lifecycle** — ``create_index()`` must run before the first
    ``upsert()``; upsert never creates a missing table implicitly.
  • **Idempotent writes** — ``upsert()`` is a ``merge_insert`` on ``id``:
    re-indexing a product replaces its row, it never duplicates it.
  • **Vectors in, hits out** — the store never embeds; callers pass
    vectors produced by the ``EmbeddingClient``.

Document schema::

    {
        "id": str,
        "vector": float32[dimension],
        "metadata": {id, name, category, brand, price, text},
        "timestamp": ISO-8601 str
    }
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import lancedb
import pyarrow as pa

from prodrag.config.settings import Settings
from prodrag.src.utils.errors import EmbeddingDimensionError, IndexNotReadyError
from prodrag.src.utils.logger import get_logger
from prodrag.src.utils.text_utils import ProductMetadata

logger = get_logger(__name__)

# ── Type Aliases ──────────────────────────────────────────────────────
SearchHit = dict[str, str | float | ProductMetadata | None]

# ── ANN method ─────────────────────────────────────────────────────────
ANN_INDEX_TYPE = "IVF_HNSW_SQ"
DISTANCE_TYPE = "cosine"

_METADATA_TYPE = pa.struct([
    pa.field("id", pa.utf8()),
    pa.field("name", pa.utf8()),
    pa.field("category", pa.utf8()),
    pa.field("brand", pa.utf8()),
    pa.field("price", pa.float64()),
    pa.field("text", pa.utf8()),
])

# Every read checks for a newer table version; the ETL writes from another process.
READ_CONSISTENCY_INTERVAL = timedelta(0)

_DB_LOCK = threading.Lock()
_db_connection_cache: dict[str, lancedb.DBConnection] = {}


def build_product_schema(dimension: int) -> pa.Schema:
    """PyArrow schema of one indexed product document."""
    return pa.schema([
        pa.field("id", pa.utf8(), nullable=False),
        pa.field("vector", pa.list_(pa.float32(), dimension)),
        pa.field("metadata", _METADATA_TYPE),
        pa.field("timestamp", pa.utf8()),
    ])


def _get_connection(uri: str, api_key: str | None = None) -> lancedb.DBConnection:
    """
    Return a **singleton** ``lancedb.DBConnection`` for *uri*.

    Thread-safe via ``_DB_LOCK``.  ``api_key`` is only passed for remote
    (``db://``) databases.
    """
    if uri not in _db_connection_cache:
        with _DB_LOCK:
            if uri not in _db_connection_cache:
                logger.info("Opening new LanceDB connection: %s", uri)
                _db_connection_cache[uri] = lancedb.connect(uri, api_key=api_key, read_consistency_interval=READ_CONSISTENCY_INTERVAL) if api_key else lancedb.connect(uri, read_consistency_interval=READ_CONSISTENCY_INTERVAL)
    return _db_connection_cache[uri]


def _sql_literal(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


class ProductVectorStore:
    """
    High-level abstraction over the LanceDB product table.

    Parameters
    ----------
    uri
        Database directory or remote URI.
    table_name
        Name of the product table ("index").
    dimension
        Vector size; must match the embedding model output.
    api_key
        Credentials for a remote LanceDB.
    ann_m, ann_ef_construction, ann_ef_search
        HNSW graph parameters.
    ann_min_rows
        Minimum table size before an ANN index is trained.
    """

    __slots__ = ("_uri", "_table_name", "_dimension", "_schema", "_ann_m", "_ann_ef_construction", "_ann_ef_search", "_ann_min_rows", "db", "table")

    def __init__(self, uri: str, table_name: str, dimension: int = 1536, api_key: str | None = None, ann_m: int = 16, ann_ef_construction: int = 128, ann_ef_search: int = 100, ann_min_rows: int = 256) -> None:
        self._uri = uri
        self._table_name = table_name
        self._dimension = dimension
        self._schema = build_product_schema(dimension)
        self._ann_m = ann_m
        self._ann_ef_construction = ann_ef_construction
        self._ann_ef_search = ann_ef_search
        self._ann_min_rows = ann_min_rows
        self.db: lancedb.DBConnection = _get_connection(uri, api_key)
        self.table: lancedb.table.Table | None = None

        if self.exists():
            self.table = self.db.open_table(self._table_name)
            logger.info("Opened existing table '%s' (%d rows).", self._table_name, self.table.count_rows())


    @classmethod
    def from_settings(cls, settings: Settings) -> ProductVectorStore:
        api_key = settings.LANCEDB_API_KEY.get_secret_value() if settings.LANCEDB_API_KEY else None
        return cls(uri=settings.LANCEDB_URI, table_name=settings.LANCEDB_TABLE_NAME, dimension=settings.EMBEDDING_DIMENSION, api_key=api_key, ann_m=settings.ANN_M, ann_ef_construction=settings.ANN_EF_CONSTRUCTION, ann_ef_search=settings.ANN_EF_SEARCH, ann_min_rows=settings.ANN_MIN_ROWS)


    @property
    def table_name(self) -> str:
        return self._table_name

    # ══════════════════════════════════════════════════════════════════
    #  INDEX LIFECYCLE
    # ══════════════════════════════════════════════════════════════════

    def exists(self) -> bool:
        """Return True if the product table exists."""
        return self._table_name in self._list_table_names()


    def create_index(self) -> bool:
        """
        Create the product table with the fixed schema.

        Idempotent: an existing table counts as success.

        Returns
        -------
        bool
            ``True`` if a new table was created, ``False`` if it already existed.
        """
        if self.exists():
            self.table = self.db.open_table(self._table_name)
            logger.info("Index '%s' already exists.", self._table_name)
            return False

        try:
            self.table = self.db.create_table(self._table_name, schema=self._schema)
        except ValueError as exc:
            # Lost a race with another creator.
            if "already exists" not in str(exc):
                raise
            self.table = self.db.open_table(self._table_name)
            logger.info("Index '%s' already exists.", self._table_name)
            return False

        logger.info("Created index '%s' (dim=%d).", self._table_name, self._dimension)
        return True


    def delete_index(self) -> bool:
        """Drop the product table.  Returns False if there was nothing to drop."""
        self.table = None
        if not self.exists():
            logger.warning("Index '%s' does not exist, nothing to drop.", self._table_name)
            return False

        self.db.drop_table(self._table_name)
        logger.info("Deleted index '%s'.", self._table_name)
        return True


    def build_ann_index(self) -> bool:
        """
        Train (or refresh) the HNSW graph index on the vector column.

        LanceDB needs enough rows to train IVF partitions; below
        ``ann_min_rows`` the table is left to exact search.

        Returns
        -------
        bool
            ``True`` if an index was (re)built.
        """
        table = self._require_table()
        rows = table.count_rows()
        if rows < self._ann_min_rows:
            logger.info("Skipping ANN index: %d rows < %d minimum (exact search).", rows, self._ann_min_rows)
            return False

        table.create_index(metric=DISTANCE_TYPE, vector_column_name="vector", index_type=ANN_INDEX_TYPE, m=self._ann_m, ef_construction=self._ann_ef_construction, replace=True)
        logger.info("Built %s index on '%s' (%d rows, m=%d, ef_construction=%d).", ANN_INDEX_TYPE, self._table_name, rows, self._ann_m, self._ann_ef_construction)
        return True

    # ══════════════════════════════════════════════════════════════════
    #  DOCUMENTS
    # ══════════════════════════════════════════════════════════════════

    def upsert(self, product_id: str, vector: list[float], metadata: ProductMetadata) -> None:
        """
        Insert or replace the document stored under *product_id*.

        Raises
        ------
        ValueError
            If *product_id* is empty.
        EmbeddingDimensionError
            If *vector* does not match the index dimension.
        IndexNotReadyError
            If ``create_index()`` has not been run.
        """
        if not product_id:
            raise ValueError("product_id must be a non-empty string.")
        if len(vector) != self._dimension:
            raise EmbeddingDimensionError(self._dimension, len(vector))
        table = self._require_table()

        document = {
            "id": product_id,
            "vector": [float(v) for v in vector],
            "metadata": {key: metadata.get(key) for key in ("id", "name", "category", "brand", "price", "text")},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        data = pa.Table.from_pylist([document], schema=self._schema)
        table.merge_insert("id").when_matched_update_all().when_not_matched_insert_all().execute(data)
        logger.debug("Stored vector for product %s", product_id)


    def get(self, product_id: str) -> dict | None:
        """Return the stored document for *product_id* (without ``_distance``), or None."""
        table = self._require_table()
        rows = table.search().where(f"id = {_sql_literal(product_id)}").limit(2).to_list()
        return rows[0] if rows else None


    def search(self, vector: list[float], k: int = 5) -> list[SearchHit]:
        """
        Approximate nearest-neighbour search.

        Returns
        -------
        list[SearchHit]
            At most *k* hits ordered by descending ``score``
            (``1 - cosine distance``), each with ``id``, ``score``,
            ``metadata`` and ``timestamp``.
        """
        table = self._require_table()
        if len(vector) != self._dimension:
            raise EmbeddingDimensionError(self._dimension, len(vector))

        rows = table.search(vector, vector_column_name="vector").distance_type(DISTANCE_TYPE).ef(self._ann_ef_search).limit(k).to_list()

        hits: list[SearchHit] = [
            {"id": row["id"], "score": 1.0 - float(row["_distance"]), "metadata": row.get("metadata") or {}, "timestamp": row.get("timestamp")}
            for row in rows
        ]
        hits.sort(key=lambda hit: hit["score"], reverse=True)  # type: ignore[arg-type, return-value]
        logger.info("Search returned %d hit(s) (k=%d).", len(hits), k)
        return hits


    def count(self) -> int:
        """Return the total number of indexed products."""
        table = self._open_if_present()
        return 0 if table is None else table.count_rows()


    def _open_if_present(self) -> lancedb.table.Table | None:
        """Pick up a table created after this store was built (e.g. by the ETL CLI)."""
        if self.table is None and self.exists():
            self.table = self.db.open_table(self._table_name)
            logger.info("Opened index '%s' created by another writer.", self._table_name)
        return self.table


    def _require_table(self) -> lancedb.table.Table:
        table = self._open_if_present()
        if table is None:
            raise IndexNotReadyError(f"Index '{self._table_name}' does not exist. Run create_index() first.")
        return table


    def _list_table_names(self) -> list[str]:
        names: list[str] = []
        page_token: str | None = None
        while True:
            response = self.db.list_tables(page_token=page_token)
            names.extend(response.tables)
            page_token = response.page_token
            if not page_token:
                return names


    def __repr__(self) -> str:
        return f"ProductVectorStore(uri='{self._uri}', table='{self._table_name}', rows={self.count()})"

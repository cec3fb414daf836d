"""Loading of pre-computed feature matrices."""

import time
from pathlib import Path
from typing import Union

import numpy as np

from map_evaluator.errors import LoadError
from map_evaluator.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_FEATURES_KEY = "caffe_features"

OPENCV_SUFFIXES = {".xml", ".yml", ".yaml", ".json"}
TEXT_SUFFIXES = {".txt", ".csv"}


class FeatureStore:
    """Immutable dense N x D feature matrix, row i belongs to catalog item i.

    Args:
        matrix: 2-D array of features (copied and flagged read-only)

    Example:
        >>> store = FeatureStore.load(Path("features.npz"))
        >>> store.vector_at(0).shape
        (4096,)
    """

    def __init__(self, matrix: np.ndarray) -> None:
        matrix = np.array(matrix, copy=True)

        if matrix.ndim != 2 or matrix.shape[0] == 0 or matrix.shape[1] == 0:
            raise LoadError(
                f"Expected a non-empty 2-D feature matrix, got shape {matrix.shape}"
            )
        if not np.issubdtype(matrix.dtype, np.number):
            raise LoadError(f"Feature matrix is not numeric (dtype={matrix.dtype})")

        matrix.setflags(write=False)
        self._matrix = matrix

    @property
    def matrix(self) -> np.ndarray:
        """Read-only view of the whole matrix."""
        return self._matrix

    @property
    def dimension(self) -> int:
        return int(self._matrix.shape[1])

    def row_count(self) -> int:
        return int(self._matrix.shape[0])

    def __len__(self) -> int:
        return self.row_count()

    def vector_at(self, item_id: int) -> np.ndarray:
        """Return the read-only feature vector of catalog item ``item_id``."""
        if not 0 <= item_id < self.row_count():
            raise IndexError(
                f"Item id {item_id} out of range [0, {self.row_count()})"
            )
        return self._matrix[item_id]

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        key: str = DEFAULT_FEATURES_KEY,
    ) -> "FeatureStore":
        """Load a feature matrix from disk.

        Supported containers:
            - ``.npz`` numpy archive, matrix stored under ``key``
            - ``.xml`` / ``.yml`` / ``.yaml`` / ``.json`` (optionally gzipped)
              OpenCV FileStorage document, matrix stored under ``key``
            - ``.txt`` / ``.csv`` feature extractor text output,
              one ``name:v1;v2;...;`` row per line

        Args:
            path: Path to the feature source
            key: Logical identifier of the matrix inside the container

        Returns:
            Loaded FeatureStore

        Raises:
            LoadError: Source missing, unreadable or without ``key``
        """
        path = Path(path)
        if not path.is_file():
            raise LoadError(f"Feature file not found: {path}")

        logger.info(f"Loading features from file: {path}")
        start_time = time.time()

        suffixes = [s.lower() for s in path.suffixes]
        suffix = suffixes[-1] if suffixes else ""
        if suffix == ".gz" and len(suffixes) > 1:
            suffix = suffixes[-2]

        if suffix == ".npz":
            matrix = _load_npz(path, key)
        elif suffix in OPENCV_SUFFIXES:
            matrix = _load_opencv_storage(path, key)
        elif suffix in TEXT_SUFFIXES:
            matrix = _load_text(path)
        else:
            raise LoadError(
                f"Unsupported feature file format '{suffix}': {path}"
            )

        store = cls(matrix)

        logger.info(f"Features loaded in {time.time() - start_time:.3f} seconds")
        logger.info(f"  Rows: {store.row_count()}")
        logger.info(f"  Dimension: {store.dimension}")

        return store

    def save(self, output_path: Path, key: str = DEFAULT_FEATURES_KEY) -> None:
        """Save the matrix as a compressed ``.npz`` archive under ``key``."""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        np.savez_compressed(output_path, **{key: self._matrix})
        logger.info(f"Features saved to: {output_path}")


def _load_npz(path: Path, key: str) -> np.ndarray:
    try:
        with np.load(path, allow_pickle=False) as data:
            if key not in data.files:
                raise LoadError(
                    f"No matrix '{key}' in {path} (available: {data.files})"
                )
            return data[key]
    except LoadError:
        raise
    except Exception as e:
        raise LoadError(f"Failed to read {path}: {e}") from e


def _load_opencv_storage(path: Path, key: str) -> np.ndarray:
    import cv2

    try:
        storage = cv2.FileStorage(str(path), cv2.FILE_STORAGE_READ)
    except cv2.error as e:
        raise LoadError(f"Failed to read {path}: {e}") from e

    try:
        if not storage.isOpened():
            raise LoadError(f"Failed to open feature storage: {path}")

        node = storage.getNode(key)
        if node.empty() or node.isNone():
            raise LoadError(f"No matrix '{key}' in {path}")

        matrix = node.mat()
        if matrix is None:
            raise LoadError(f"Node '{key}' in {path} is not a matrix")
        return matrix
    finally:
        storage.release()


def _load_text(path: Path) -> np.ndarray:
    rows = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue

                # "<image name>:<v1>;<v2>;...;" - the name may itself contain ':'
                _, _, values = line.rpartition(":")
                tokens = [t for t in values.split(";") if t.strip()]
                try:
                    rows.append([float(t) for t in tokens])
                except ValueError as e:
                    raise LoadError(
                        f"Invalid feature value in {path} on line {line_number}: {e}"
                    ) from e
    except OSError as e:
        raise LoadError(f"Failed to read {path}: {e}") from e

    if not rows:
        raise LoadError(f"No feature rows in {path}")

    lengths = {len(row) for row in rows}
    if len(lengths) != 1:
        raise LoadError(
            f"Rows of {path} have different lengths: {sorted(lengths)}"
        )

    return np.asarray(rows, dtype=np.float32)

"""
Tabular Block

A row of a table with M categorical and N continuous columns. Rows are
mappings from column name to value (dicts, pandas Series, ...).
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

import numpy as np

from .block import Block, as_array, is_number, _title
from .invariants import MessageInvariant


def _numpy_view(obs) -> np.ndarray:
    arr = as_array(obs)
    return np.asarray(obs) if arr is None else arr


@dataclass(frozen=True)
class TableRow(Block):
    """
    Block for a table row.

    Args:
        catcols: Names of categorical columns (M)
        contcols: Names of continuous columns (N)
        categorydict: Column name -> tuple of allowed categories

    Categorical values may be missing (`None`); continuous values must
    be numbers (NaN counts as a number).
    """

    catcols: Tuple[str, ...]
    contcols: Tuple[str, ...]
    categorydict: Mapping[str, Tuple[Any, ...]]

    def __post_init__(self):
        object.__setattr__(self, 'catcols', tuple(self.catcols))
        object.__setattr__(self, 'contcols', tuple(self.contcols))
        object.__setattr__(self, 'categorydict', {
            col: tuple(self.categorydict[col]) for col in self.catcols
        })

    def __hash__(self):
        return hash((self.catcols, self.contcols, tuple(self.categorydict.items())))

    @property
    def M(self) -> int:
        return len(self.catcols)

    @property
    def N(self) -> int:
        return len(self.contcols)

    def _problems(self, obs) -> Optional[str]:
        if not hasattr(obs, 'keys') or not hasattr(obs, '__getitem__'):
            return f"`obs` should be a mapping from column to value, instead got `{type(obs).__name__}`."
        keys = set(obs.keys())
        missing = [c for c in self.catcols + self.contcols if c not in keys]
        if missing:
            return f"Missing columns: {missing}."
        bad_cat = {
            c: obs[c] for c in self.catcols
            if obs[c] is not None and obs[c] not in self.categorydict[c]
        }
        if bad_cat:
            return f"Unknown categories: {bad_cat}."
        bad_cont = {
            c: obs[c] for c in self.contcols
            if obs[c] is not None and not is_number(obs[c])
        }
        if bad_cont:
            return f"Non-numerical continuous values: {bad_cont}."
        return None

    def checkblock(self, obs) -> bool:
        return self._problems(obs) is None

    def mockblock(self) -> Dict[str, Any]:
        row = {}
        for col in self.catcols:
            cats = self.categorydict[col]
            row[col] = cats[np.random.randint(len(cats))] if cats else None
        for col in self.contcols:
            row[col] = float(np.random.randn())
        return row

    def invariant(self, blockname: str = "block", obsname: str = "obs"):
        return MessageInvariant(
            _title(self, blockname, obsname),
            self._problems,
            description=(
                f"`{obsname}` should contain the categorical columns {list(self.catcols)} "
                f"and the continuous columns {list(self.contcols)}."
            ),
        )

    @classmethod
    def setup(
        cls,
        data: Iterable[Mapping],
        catcols: Optional[Sequence[str]] = None,
        contcols: Optional[Sequence[str]] = None,
        **kwargs
    ) -> "TableRow":
        """
        Scan rows once. Columns not listed are classified by value:
        a column with any non-numeric, non-missing value is categorical.
        """
        rows = list(data)
        if not rows:
            raise ValueError("Cannot set up `TableRow` from an empty data container")
        columns = list(rows[0].keys())

        if catcols is None or contcols is None:
            inferred_cat = [
                c for c in columns
                if any(r[c] is not None and not is_number(r[c]) for r in rows)
            ]
            if catcols is None:
                catcols = [c for c in inferred_cat if contcols is None or c not in contcols]
            if contcols is None:
                contcols = [c for c in columns if c not in catcols]

        categorydict = {
            col: tuple(dict.fromkeys(r[col] for r in rows if r[col] is not None))
            for col in catcols
        }
        return cls(catcols, contcols, categorydict)

    def summary(self) -> str:
        return f"TableRow[{self.M}, {self.N}]"


@dataclass(frozen=True)
class EncodedTableRow(TableRow):
    """
    A `TableRow` after `TabularPreprocessing`: observations are pairs
    `(cat_indices, cont_values)` of length M and N. Index 0 marks a
    missing or unknown category, index i + 1 is `categorydict[col][i]`.
    """

    __hash__ = TableRow.__hash__

    def checkblock(self, obs) -> bool:
        if not isinstance(obs, (tuple, list)) or len(obs) != 2:
            return False
        try:
            cats, conts = (_numpy_view(o) for o in obs)
        except (TypeError, ValueError):
            return False
        if cats.shape != (self.M,) or conts.shape != (self.N,):
            return False
        if cats.dtype.kind not in "iu" or conts.dtype.kind not in "biuf":
            return False
        limits = np.array([len(self.categorydict[c]) for c in self.catcols], dtype=np.int64)
        return bool(np.all((cats >= 0) & (cats <= limits)))

    def mockblock(self):
        cats = np.array(
            [np.random.randint(len(self.categorydict[c]) + 1) for c in self.catcols],
            dtype=np.int64)
        return cats, np.random.randn(self.N).astype(np.float32)

    def invariant(self, blockname: str = "block", obsname: str = "obs"):
        return Block.invariant(self, blockname, obsname)

    def summary(self) -> str:
        return f"EncodedTableRow[{self.M}, {self.N}]"

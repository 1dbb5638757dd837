"""Ancestor and level queries over the GO term DAG."""

from collections import defaultdict
from typing import Iterable, Optional

import polars as pl
import structlog

from snpgo_pipeline.ontology.models import GOTerm, NAMESPACE_ROOTS, ROOT_SENTINEL, namespace_code

logger = structlog.get_logger()


class AncestorIndex:
    """Read-only index of the GO DAG with memoized ancestor closures.

    Holds term -> parents and term -> children adjacency. ``ancestors`` walks
    each term at most once across the lifetime of the index, so closures for
    genes that share ancestry reuse earlier work instead of re-walking the
    graph.
    """

    def __init__(self, parents: dict[str, frozenset[str]], namespaces: dict[str, str]):
        self._parents = parents
        self._namespaces = namespaces

        children: dict[str, set[str]] = defaultdict(set)
        for term, term_parents in parents.items():
            for parent in term_parents:
                children[parent].add(term)
        self._children = {term: frozenset(kids) for term, kids in children.items()}

        self._ancestors: dict[str, frozenset[str]] = {}

    @classmethod
    def from_terms(cls, terms: Iterable[GOTerm]) -> "AncestorIndex":
        parents = {}
        namespaces = {}
        for term in terms:
            parents[term.go_id] = frozenset(term.parents)
            namespaces[term.go_id] = term.namespace
        return cls(parents, namespaces)

    @classmethod
    def from_dataframe(
        cls,
        df: pl.DataFrame,
        relationships: Optional[list[str]] = None,
    ) -> "AncestorIndex":
        """Build from an edge table.

        Args:
            df: Columns go_id, namespace, parent_id (null for roots) and,
                optionally, relationship
            relationships: Relationship types to follow; None follows all edges
        """
        if relationships is not None and "relationship" in df.columns:
            # Clear edges of other types; the term itself stays registered
            followed = pl.col("relationship").is_in(relationships) | pl.col("relationship").is_null()
            df = df.with_columns(
                pl.when(followed).then(pl.col("parent_id")).otherwise(None).alias("parent_id")
            )

        grouped = (
            df.group_by("go_id")
            .agg(
                pl.col("namespace").first(),
                pl.col("parent_id").drop_nulls().unique().alias("parents"),
            )
            .sort("go_id")
        )

        parents = {}
        namespaces = {}
        for row in grouped.iter_rows(named=True):
            parents[row["go_id"]] = frozenset(row["parents"])
            namespaces[row["go_id"]] = namespace_code(row["namespace"])

        # Parents referenced by an edge but without a row of their own become
        # roots in their child's namespace
        parent_only: dict[str, str] = {}
        for term, term_parents in parents.items():
            for parent in term_parents:
                if parent not in parents and parent != ROOT_SENTINEL:
                    parent_only.setdefault(parent, namespaces[term])
        if parent_only:
            logger.warning(
                "ancestor_index_parent_only_terms",
                term_count=len(parent_only),
                examples=sorted(parent_only)[:5],
            )
            for parent, namespace in parent_only.items():
                parents[parent] = frozenset()
                namespaces[parent] = namespace

        index = cls(parents, namespaces)
        logger.info("ancestor_index_built", term_count=len(index))
        return index

    def __len__(self) -> int:
        return len(self._parents)

    def __contains__(self, go_id: str) -> bool:
        return go_id in self._parents

    def resolves(self, go_id: str) -> bool:
        return go_id in self._parents

    def terms(self) -> list[str]:
        return sorted(self._parents)

    def namespace_of(self, go_id: str) -> str:
        return self._namespaces[go_id]

    @staticmethod
    def root(namespace: str) -> str:
        return NAMESPACE_ROOTS[namespace_code(namespace)]

    def parents(self, go_id: str) -> frozenset[str]:
        return self._parents.get(go_id, frozenset())

    def children(self, go_id: str) -> frozenset[str]:
        return self._children.get(go_id, frozenset())

    def ancestors(self, go_id: str) -> frozenset[str]:
        """Every term on every path from ``go_id`` up to its root, excluding itself.

        Parents that are not themselves indexed (such as the "all" sentinel)
        are included but not expanded further.

        Raises:
            KeyError: If ``go_id`` is not in the index
            ValueError: If a cycle is reached
        """
        if go_id not in self._parents:
            raise KeyError(go_id)
        cached = self._ancestors.get(go_id)
        if cached is not None:
            return cached

        # Iterative post-order DFS; on_path holds entered but unfinished terms
        stack = [(go_id, False)]
        on_path: set[str] = set()
        while stack:
            term, expanded = stack.pop()
            if expanded:
                on_path.discard(term)
                closure = set()
                for parent in self._parents[term]:
                    closure.add(parent)
                    closure.update(self._ancestors.get(parent, ()))
                self._ancestors[term] = frozenset(closure)
                continue
            if term in self._ancestors:
                continue

            on_path.add(term)
            stack.append((term, True))
            for parent in self._parents[term]:
                if parent in on_path:
                    raise ValueError(f"Cycle in GO graph through {parent}")
                if parent in self._parents and parent not in self._ancestors:
                    stack.append((parent, False))

        return self._ancestors[go_id]

    def ancestor_map(self, go_ids: Iterable[str]) -> dict[str, frozenset[str]]:
        """Ancestors for each resolvable id in ``go_ids``; unknown ids are skipped."""
        return {
            go_id: self.ancestors(go_id)
            for go_id in sorted(set(go_ids))
            if go_id in self._parents
        }

    def levels(self, namespace: str, depth: int = 3) -> list[frozenset[str]]:
        """Cumulative level sets below the namespace root.

        ``levels(ns, depth)[k]`` holds every term reachable from the root in at
        most ``k`` child steps, so index 0 is the root alone and the last entry
        is the set within ``depth`` edges.
        """
        level = frozenset([self.root(namespace)])
        result = [level]
        for _ in range(depth):
            expanded = set(level)
            for term in level:
                expanded.update(self.children(term))
            level = frozenset(expanded)
            result.append(level)
        return result

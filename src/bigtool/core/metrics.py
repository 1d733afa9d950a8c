"""Metrics collection for search, loading and the discovery loop."""
from datetime import datetime
from typing import Dict, Any, Optional
from dataclasses import dataclass, field


@dataclass
class NodeMetrics:
    """Metrics for one discovery loop node, shared by every run of the node."""
    node_name: str
    end_time: Optional[datetime] = None
    execution_time: Optional[float] = None
    total_execution_time: float = 0.0
    error_count: int = 0
    success_count: int = 0

    def complete(self, execution_time: float, success: bool = True) -> None:
        """Record one finished execution; callers time it themselves."""
        self.end_time = datetime.now()
        self.execution_time = execution_time
        self.total_execution_time += execution_time
        if success:
            self.success_count += 1
        else:
            self.error_count += 1


@dataclass
class SearchMetrics:
    """Metrics for search queries."""
    total_queries: int = 0
    empty_queries: int = 0
    total_results: int = 0
    queries_by_mode: Dict[str, int] = field(default_factory=dict)
    total_search_time: float = 0.0

    @property
    def average_search_time(self) -> float:
        return self.total_search_time / self.total_queries if self.total_queries else 0.0

    def add_query(self, mode: str, result_count: int, search_time: float) -> None:
        """Add a completed search."""
        self.total_queries += 1
        self.total_results += result_count
        if result_count == 0:
            self.empty_queries += 1
        self.queries_by_mode[mode] = self.queries_by_mode.get(mode, 0) + 1
        self.total_search_time += search_time


@dataclass
class LoaderMetrics:
    """Counters for a tool loader."""
    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    failures: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0


class MetricsCollector:
    """Collect and aggregate metrics."""
    def __init__(self):
        self.node_metrics: Dict[str, NodeMetrics] = {}
        self.search_metrics = SearchMetrics()
        self.start_time = datetime.now()

    def start_node(self, node_name: str) -> NodeMetrics:
        """Get or create the metrics record for a node."""
        if node_name not in self.node_metrics:
            self.node_metrics[node_name] = NodeMetrics(node_name=node_name)
        return self.node_metrics[node_name]

    def add_search(self, mode: str, result_count: int, search_time: float) -> None:
        """Add a search metric."""
        self.search_metrics.add_query(mode=mode, result_count=result_count, search_time=search_time)

    def reset(self) -> None:
        self.node_metrics.clear()
        self.search_metrics = SearchMetrics()
        self.start_time = datetime.now()

    def get_summary(self) -> Dict[str, Any]:
        """Get metrics summary."""
        total_time = (datetime.now() - self.start_time).total_seconds()

        return {
            "uptime_seconds": total_time,
            "nodes": {
                name: {
                    "execution_time": node.execution_time,
                    "total_execution_time": node.total_execution_time,
                    "error_count": node.error_count,
                    "success_count": node.success_count,
                }
                for name, node in self.node_metrics.items()
            },
            "search": {
                "total_queries": self.search_metrics.total_queries,
                "empty_queries": self.search_metrics.empty_queries,
                "total_results": self.search_metrics.total_results,
                "queries_by_mode": self.search_metrics.queries_by_mode,
                "average_search_time": self.search_metrics.average_search_time,
            },
        }


# Global metrics collector instance
metrics = MetricsCollector()

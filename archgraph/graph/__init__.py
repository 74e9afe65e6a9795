"""Graph package - pure queries over a loaded architecture graph.

- assembly: id lookup and adjacency
- impact: severity and dependents of a component
- trace: dataflow paths through the graph
- subgraph: focused slices and Mermaid export
"""

from .assembly import ArchitectureGraph
from .impact import AffectedComponent, ImpactAnalysis, ImpactSeverity, ImpactType, compute_impact, compute_severity
from .subgraph import SubgraphOptions, SubgraphResult, extract_subgraph, subgraph_to_mermaid
from .trace import TraceDirection, TraceOptions, TracePath, TraceResult, TraceStep, format_trace_output, trace_dataflow

__all__ = [
    "ArchitectureGraph",
    "AffectedComponent",
    "ImpactAnalysis",
    "ImpactSeverity",
    "ImpactType",
    "compute_impact",
    "compute_severity",
    "SubgraphOptions",
    "SubgraphResult",
    "extract_subgraph",
    "subgraph_to_mermaid",
    "TraceDirection",
    "TraceOptions",
    "TracePath",
    "TraceResult",
    "TraceStep",
    "format_trace_output",
    "trace_dataflow",
]

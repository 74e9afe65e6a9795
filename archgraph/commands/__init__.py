"""CLI commands, one module per command.

- scan: run the scanners and persist the graph
- impact: dependents of a component
- trace: dataflow paths from a component
- subgraph: focused slice as JSON or Mermaid
- summary: risks, blockers and next actions as a JSON envelope
- rules: architecture rule violations
- coverage: file coverage, confidence and mapping gaps
- timeline: recorded architecture changes
- diff: the latest recorded change in detail
"""

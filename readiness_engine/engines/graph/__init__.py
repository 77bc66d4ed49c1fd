"""
Prerequisite Graph - weighted, acyclic "is a building block of" edges between figures.
"""

from readiness_engine.engines.graph.prerequisite_graph import EdgeView, PrerequisiteGraph, path_exists

__all__ = ["EdgeView", "PrerequisiteGraph", "path_exists"]

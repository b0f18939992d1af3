"""
State backend resolver
Configuration -> ResourceGraph -> OutputSet in a single pure pass
"""

from typing import Any, Dict, Mapping, NamedTuple

from .builder import build_base_graph
from .features import compose_features
from .graph import ResourceGraph
from .naming import ResourceNames, resolve_names
from .outputs import project_outputs
from .validation import Configuration, validate_config


class Resolution(NamedTuple):
    config: Configuration
    names: ResourceNames
    graph: ResourceGraph
    outputs: Dict[str, Any]


def resolve(raw: Mapping[str, Any]) -> Resolution:
    """
    Resolve a raw configuration into the resource graph and its outputs

    Raises:
        InvalidConfig: on the first validation failure, before any graph is returned
    """
    config = validate_config(raw)
    names = resolve_names(config)
    graph = compose_features(build_base_graph(config, names), config, names)
    graph.validate()
    return Resolution(config, names, graph, project_outputs(graph))

"""
Resource graph model
Nodes are resource specifications keyed by logical name, edges are explicit
dependencies on other logical names in the same graph
"""

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import GraphError


class ResourceKind(str, Enum):
    BUCKET = "Bucket"
    ENCRYPTION_KEY = "EncryptionKey"
    LOCK_TABLE = "LockTable"
    OIDC_PROVIDER = "OidcProvider"
    IAM_ROLE = "IamRole"
    POLICY_ATTACHMENT = "PolicyAttachment"
    DATA_LOOKUP = "DataLookup"


def freeze(value: Any) -> Any:
    """Read-only copy: mappings become MappingProxyType, lists and tuples become tuples"""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Plain dict/list copy of a frozen value"""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [thaw(item) for item in value]
    return value


@dataclass(frozen=True)
class ResourceSpec:
    """A single resource the engine should create, or look up when kind is DataLookup"""

    kind: ResourceKind
    name: str
    attributes: Mapping = field(default_factory=dict)
    depends_on: Tuple[str, ...] = ()

    def __post_init__(self):
        # Attributes are read-only from here on, nested values included
        object.__setattr__(self, "attributes", freeze(self.attributes))
        object.__setattr__(self, "depends_on", tuple(self.depends_on))

    @property
    def is_lookup(self) -> bool:
        return self.kind is ResourceKind.DATA_LOOKUP

    def plain_attributes(self) -> Dict[str, Any]:
        """Mutable copy of the attributes, for handing to the engine"""
        return thaw(self.attributes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "attributes": self.plain_attributes(),
            "depends_on": sorted(self.depends_on),
        }


class ResourceGraph:
    """
    Ordered set of resource specs

    A node can only be added once all of its dependencies are present, so the
    graph stays acyclic and every reference resolves.
    """

    def __init__(self, specs: Optional[List[ResourceSpec]] = None):
        self._nodes: Dict[str, ResourceSpec] = {}
        for spec in specs or []:
            self.add(spec)

    def add(self, spec: ResourceSpec) -> ResourceSpec:
        if not spec.name:
            raise GraphError("resource spec has an empty logical name")
        if spec.name in self._nodes:
            raise GraphError(f"duplicate logical name '{spec.name}'")
        if spec.name in spec.depends_on:
            raise GraphError(f"'{spec.name}' depends on itself")
        missing = [dep for dep in spec.depends_on if dep not in self._nodes]
        if missing:
            raise GraphError(f"'{spec.name}' references unknown resources: {', '.join(missing)}")

        self._nodes[spec.name] = spec
        return spec

    def copy(self) -> "ResourceGraph":
        return ResourceGraph(list(self._nodes.values()))

    def get(self, name: str) -> ResourceSpec:
        try:
            return self._nodes[name]
        except KeyError:
            raise GraphError(f"no resource named '{name}'") from None

    def find(self, kind: ResourceKind) -> Optional[ResourceSpec]:
        """First node of the given kind, or None"""
        for spec in self._nodes.values():
            if spec.kind is kind:
                return spec
        return None

    def of_kind(self, kind: ResourceKind) -> List[ResourceSpec]:
        return [spec for spec in self._nodes.values() if spec.kind is kind]

    def kinds(self) -> List[ResourceKind]:
        return [spec.kind for spec in self._nodes.values()]

    def validate(self) -> None:
        """Re-check that every reference resolves and there is no cycle"""
        for spec in self._nodes.values():
            for dep in spec.depends_on:
                if dep not in self._nodes:
                    raise GraphError(f"'{spec.name}' references unknown resource '{dep}'")
        self.topological_order()

    def topological_order(self) -> List[ResourceSpec]:
        """Dependencies first, ties broken by insertion order"""
        order: List[ResourceSpec] = []
        state: Dict[str, str] = {}

        def visit(name: str, path: Tuple[str, ...]):
            mark = state.get(name)
            if mark == "done":
                return
            if mark == "visiting":
                cycle = " -> ".join(path + (name,))
                raise GraphError(f"dependency cycle: {cycle}")
            state[name] = "visiting"
            for dep in self._nodes[name].depends_on:
                visit(dep, path + (name,))
            state[name] = "done"
            order.append(self._nodes[name])

        for name in self._nodes:
            visit(name, ())
        return order

    def to_dict(self) -> Dict[str, Any]:
        return {"resources": [spec.to_dict() for spec in self._nodes.values()]}

    def to_json(self) -> str:
        """Canonical serialization, identical for identical graphs"""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    def __contains__(self, name: str) -> bool:
        return name in self._nodes

    def __iter__(self) -> Iterator[ResourceSpec]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ResourceGraph):
            return NotImplemented
        return self.to_json() == other.to_json()

    def __repr__(self) -> str:
        return f"ResourceGraph({', '.join(self._nodes)})"

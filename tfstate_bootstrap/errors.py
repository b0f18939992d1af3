"""
Errors raised while resolving the state backend resource graph
"""


class BootstrapError(Exception):
    """Base class for resolver errors"""


class InvalidConfig(BootstrapError):
    """A configuration field is missing, malformed or inconsistent with another"""

    def __init__(self, field: str, constraint: str):
        self.field = field
        self.constraint = constraint
        super().__init__(f"{field}: {constraint}")


class GraphError(BootstrapError):
    """The resource graph is structurally invalid"""

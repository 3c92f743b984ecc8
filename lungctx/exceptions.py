"""Exceptions raised while resolving plugin results across regions."""


class ContextHierarchyError(Exception):
    """Base class for lungctx errors."""

    pass


class UnknownRegionError(ContextHierarchyError, KeyError):
    """Raised when a region identifier is not registered."""

    def __init__(self, region_id):
        self.region_id = region_id
        super().__init__(f"Unknown region: {region_id!r}")

    def __str__(self) -> str:
        return self.args[0]


class UnknownRegionSetError(ContextHierarchyError, KeyError):
    """Raised when a region set identifier is not registered."""

    def __init__(self, set_id):
        self.set_id = set_id
        super().__init__(f"Unknown region set: {set_id!r}")

    def __str__(self) -> str:
        return self.args[0]


class UnknownRequestedRegionError(ContextHierarchyError, ValueError):
    """Raised when a requested output is neither a region nor a region set."""

    def __init__(self, requested):
        self.requested = requested
        super().__init__(
            f"I do not understand the requested output region: {requested!r}"
        )


class MissingAncestorError(ContextHierarchyError):
    """Raised when a result must be reduced from a parent region that does not exist."""

    def __init__(self, region_id, plugin_set):
        self.region_id = region_id
        self.plugin_set = plugin_set
        super().__init__(
            f"Cannot compute region {region_id} from region set {plugin_set}: "
            f"{region_id} has no parent region"
        )


class UnrelatedRegionSetsError(ContextHierarchyError):
    """Raised when the plugin's region set and the requested one are unrelated."""

    def __init__(self, plugin_set, requested_set):
        self.plugin_set = plugin_set
        self.requested_set = requested_set
        super().__init__(
            f"Unable to determine the relationship between plugin region set "
            f"{plugin_set} and requested region set {requested_set}"
        )


class RecursivePluginCallError(ContextHierarchyError):
    """Raised when a plugin asks, directly or indirectly, for its own result."""

    def __init__(self, plugin_name, region_id, chain):
        self.plugin_name = plugin_name
        self.region_id = region_id
        self.chain = list(chain)
        path = " -> ".join(f"{name}[{region}]" for name, region in self.chain)
        super().__init__(
            f"Recursive call to plugin {plugin_name!r} for region {region_id}: {path}"
        )


class UnknownPluginError(ContextHierarchyError, KeyError):
    """Raised when no registered plugin has the requested name."""

    def __init__(self, plugin_name, available=()):
        self.plugin_name = plugin_name
        self.available = list(available)
        super().__init__(
            f"No plugin named {plugin_name!r}. Available plugins: {self.available}"
        )

    def __str__(self) -> str:
        return self.args[0]

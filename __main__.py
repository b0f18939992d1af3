"""
Terraform State Backend Bootstrap
Resolves the backend resources from stack config and declares them with Pulumi
"""
import pulumi
from tfstate_bootstrap import backend_config, migration_commands, project_outputs, resolve
from tfstate_bootstrap.config import get_config
from tfstate_bootstrap.reconcile import reconcile

# Configuration
config = get_config()
config.resolve_account_id()

# 1. Resolve the resource graph (fails before anything is declared)
resolution = resolve(config.as_raw())

# 2. Declare resources in dependency order
resolved = reconcile(resolution.graph)

# Exports
for name, value in project_outputs(resolution.graph, resolved).items():
    pulumi.export(name, value)

pulumi.export("backend_config", backend_config(
    resolution.graph, resolution.config.region, config.state_key, resolved))
pulumi.export("migration_commands", migration_commands(
    resolution.graph, resolution.config.region, config.state_key, resolved))

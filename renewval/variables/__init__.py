"""Variable registry and asset-type templates."""

from renewval.variables.registry import DEFAULT_REGISTRY
from renewval.variables.registry import Range
from renewval.variables.registry import ToggleRule
from renewval.variables.registry import VariableDescriptor
from renewval.variables.registry import VariableRegistry
from renewval.variables.registry import list_variables
from renewval.variables.templates import create_template
from renewval.variables.templates import list_templates
from renewval.variables.templates import template_for

__all__ = [
    'DEFAULT_REGISTRY',
    'Range',
    'ToggleRule',
    'VariableDescriptor',
    'VariableRegistry',
    'create_template',
    'list_templates',
    'list_variables',
    'template_for',
]

from .aggregator import DashboardAggregator
from .config_parser import parse_pipeline_config
from .triggers import classify_build, classify_trigger
from .urls import ProjectUrls
from .variable_groups import VariableGroupIndex

__all__ = [
    "DashboardAggregator",
    "ProjectUrls",
    "VariableGroupIndex",
    "classify_build",
    "classify_trigger",
    "parse_pipeline_config",
]

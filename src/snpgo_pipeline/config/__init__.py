from .loader import load_config, load_config_with_overrides
from .schema import (
    APIConfig,
    ComputeConfig,
    DataSourceVersions,
    InputPaths,
    OntologyConfig,
    PipelineConfig,
    ProcedureConfig,
    WindowConfig,
)

__all__ = [
    "load_config",
    "load_config_with_overrides",
    "PipelineConfig",
    "DataSourceVersions",
    "InputPaths",
    "ProcedureConfig",
    "OntologyConfig",
    "WindowConfig",
    "APIConfig",
    "ComputeConfig",
]
